"""Services Layer — the moment service and its day-boundary refresh timer.

Invariants:
    - Services orchestrate core functions around store IO; no SQL here
"""
