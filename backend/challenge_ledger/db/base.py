"""SQLAlchemy Declarative Base — shared metadata for every ledger table.

Invariants:
    - All models inherit from Base; Base.metadata is what create_all and alembic see
    - Constraints that is_unique_violation() matches on carry explicit names in the
      model, never generated ones

Design Decisions:
    - Index naming convention pinned to SQLAlchemy's default shape so the
      hand-written migration and the models agree on index names
"""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention={"ix": "ix_%(column_0_label)s"})
