"""SQLAlchemy Declarative Base — shared base class for all ORM models.

Invariants:
    - All models inherit from Base
    - Base.metadata is what DatabaseSessionManager.create_schema() creates

Design Decisions:
    - Separate file for Base: models and the session manager both import it
      without importing each other
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all Life Moments ORM models."""
    pass
