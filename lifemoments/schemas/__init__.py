"""Pydantic Schemas — storage-boundary and UI payload models.

Invariants:
    - Schemas validate at system boundaries (store writes, payloads handed to the UI)
    - Domain enums from core.domain_types are used for enum fields
"""
