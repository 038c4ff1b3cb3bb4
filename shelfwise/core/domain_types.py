"""Domain Types - rich types that replace bare primitives across the codebase.

Invariants:
    - PatronBarcode, ItemBarcode wrap str; SummaryId wraps UUID
    - All valid states encoded as Enums, no raw string matching in core logic

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and compare equal to the stored column value
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

PatronBarcode = NewType("PatronBarcode", str)
ItemBarcode = NewType("ItemBarcode", str)
SummaryId = NewType("SummaryId", UUID)


# ─── Value Types ─────────────────────────────────────────────────

Points = NewType("Points", int)              # >= 0
Rating = NewType("Rating", int)              # 1-5


# ─── Enums ───────────────────────────────────────────────────────

class SummaryStatus(str, Enum):
    """Review Workflow states. PENDING is the only non-terminal state."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PatronType(str, Enum):
    STUDENT = "student"
    STAFF = "staff"
    GUEST = "guest"
    TEACHER = "teacher"


class ClassType(str, Enum):
    """Kinds of class a patron can attend for points."""
    LITERACY = "literacy"
    READING_CLUB = "reading_club"
    BOOK_DISCUSSION = "book_discussion"
    WORKSHOP = "workshop"
    OTHER = "other"


class Role(str, Enum):
    """Caller roles as issued by the auth gateway."""
    ADMIN = "admin"
    ASST_ADMIN = "asst_admin"
    ICT = "ict"
    LIBRARIAN = "librarian"
    PATRON = "patron"


class Permission(str, Enum):
    """Actions guarded by role checks (see core/permissions.py)."""
    BOOK_CHECKOUT = "book_checkout"
    BOOK_CHECKIN = "book_checkin"
    BOOK_RENEW = "book_renew"
    CIRCULATION_VIEW = "circulation_view"
    ATTENDANCE_MARK = "attendance_mark"
    ATTENDANCE_VIEW = "attendance_view"
    SUMMARY_SUBMIT = "summary_submit"
    SUMMARY_REVIEW = "summary_review"
    SUMMARY_STAFF_CREATE = "summary_staff_create"
    SUMMARY_VIEW = "summary_view"
    ANALYTICS_VIEW = "analytics_view"
    ANALYTICS_RECOMPUTE = "analytics_recompute"
    DASHBOARD_VIEW = "dashboard_view"
