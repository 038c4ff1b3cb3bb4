"""Engagement Ledger Deltas - what a single real-world event adds to a monthly row.

Invariants:
    - Every ActivityDelta field is a non-negative integer (ledger only grows)
    - increments() returns only non-zero fields; an empty dict is a pure "touch"
    - Constructors (checkout, checkin, ...) are the single source of which
      counters each event source moves

Design Decisions:
    - Frozen dataclass over a free-form dict: a typo in a counter name fails at
      construction instead of silently creating nothing
    - Event keys are derived here so every caller names facts the same way
"""

from dataclasses import dataclass, fields
from uuid import UUID


COUNTER_FIELDS: tuple[str, ...] = (
    "books_checked_out",
    "books_returned",
    "classes_attended",
    "summaries_submitted",
    "summaries_approved",
)

POINT_FIELDS: tuple[str, ...] = (
    "total_points",
    "points_from_books",
    "points_from_attendance",
    "points_from_summaries",
)


@dataclass(frozen=True)
class ActivityDelta:
    """Partial counter increment for one (patron, year, month) row."""
    books_checked_out: int = 0
    books_returned: int = 0
    classes_attended: int = 0
    summaries_submitted: int = 0
    summaries_approved: int = 0
    total_points: int = 0
    points_from_books: int = 0
    points_from_attendance: int = 0
    points_from_summaries: int = 0

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise TypeError(f"{f.name} must be an int, got {type(value).__name__}")
            if value < 0:
                raise ValueError(f"{f.name} cannot be negative ({value})")

    def increments(self) -> dict[str, int]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name)
        }

    @property
    def is_empty(self) -> bool:
        return not self.increments()

    # ─── Event sources ───────────────────────────────────────────

    @classmethod
    def checkout(cls) -> "ActivityDelta":
        return cls(books_checked_out=1)

    @classmethod
    def checkin(cls, bonus_points: int) -> "ActivityDelta":
        return cls(
            books_returned=1,
            total_points=bonus_points,
            points_from_books=bonus_points,
        )

    @classmethod
    def attendance(cls, points: int) -> "ActivityDelta":
        return cls(
            classes_attended=1,
            total_points=points,
            points_from_attendance=points,
        )

    @classmethod
    def summary_submitted(cls, points: int) -> "ActivityDelta":
        return cls(
            summaries_submitted=1,
            total_points=points,
            points_from_summaries=points,
        )

    @classmethod
    def summary_approved(cls, bonus_points: int) -> "ActivityDelta":
        return cls(
            summaries_approved=1,
            total_points=bonus_points,
            points_from_summaries=bonus_points,
        )

    @classmethod
    def staff_summary(cls, points: int) -> "ActivityDelta":
        """Staff-created summaries are submitted and approved in one step."""
        return cls(
            summaries_submitted=1,
            summaries_approved=1,
            total_points=points,
            points_from_summaries=points,
        )


def apply_delta(current: dict[str, int], delta: ActivityDelta) -> dict[str, int]:
    """New counter values after adding delta. Pure; missing fields count as 0."""
    return {
        name: (current.get(name) or 0) + inc
        for name, inc in delta.increments().items()
    }


def event_key(source: str, fact_id: UUID | str) -> str:
    """Dedup key for the activity event log, e.g. 'checkin:<record id>'."""
    return f"{source}:{fact_id}"
