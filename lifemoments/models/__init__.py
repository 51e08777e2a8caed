"""ORM Models — SQLAlchemy declarative models.

Design Decisions:
    - Imported here so Base.metadata knows every table before create_all runs
"""

from lifemoments.models.moment import Moment  # noqa: F401
