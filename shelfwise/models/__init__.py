"""ORM Models - SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Items and patrons are keyed by UUID and looked up by unique barcode

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete before create_all
      or alembic autogenerate runs
"""

from shelfwise.models.patron import Patron  # noqa: F401
from shelfwise.models.item import Item  # noqa: F401
from shelfwise.models.checkout_record import CheckoutRecord  # noqa: F401
from shelfwise.models.patron_borrowing import PatronBorrowing  # noqa: F401
from shelfwise.models.monthly_activity import MonthlyActivity  # noqa: F401
from shelfwise.models.activity_event import ActivityEvent  # noqa: F401
from shelfwise.models.book_summary import BookSummary  # noqa: F401
from shelfwise.models.attendance import Attendance  # noqa: F401
