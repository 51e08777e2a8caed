"""Core Layer — pure domain logic: calendar arithmetic, validation, projection.

Invariants:
    - No module in core/ imports from services/, infrastructure/, models/ or db/
    - All functions are pure and deterministic given an explicit `today`

Design Decisions:
    - Functional core separated from the imperative shell (store, live queries, timers)
"""
