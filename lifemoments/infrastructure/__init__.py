"""Infrastructure Layer — SQLite session management, the store, live queries, logging.

Invariants:
    - Every driver exception is mapped to StorageError before leaving this layer
"""
