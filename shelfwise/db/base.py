"""SQLAlchemy Declarative Base - the single metadata registry for Shelfwise tables.

Invariants:
    - Every ORM model inherits from Base; alembic/env.py reads Base.metadata
    - Unnamed indexes, unique constraints, foreign and primary keys get
      deterministic names, so migrations can drop them by name
"""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
