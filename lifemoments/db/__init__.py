"""Database Layer — SQLAlchemy declarative Base.

Invariants:
    - One Base for every table in the package
"""
