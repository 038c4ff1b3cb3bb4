"""Dashboard Stats - pure assembly of the staff dashboard from raw counts.

Invariants:
    - Inputs are counts already fetched by the shell (no IO here)
    - Missing patron types or genders count as 0
    - Returns nested dicts of integers (serializable as JSON)
"""

from typing import Iterable

from shelfwise.core.domain_types import PatronType


def compose_dashboard(
    *,
    total_items: int,
    total_borrowed: int,
    total_overdues: int,
    overdue_over_threshold: int,
    overdue_threshold_days: int,
    patron_counts: Iterable[tuple[str, str | None, int]],
    active_patrons: int,
) -> dict:
    """patron_counts holds (patron_type, gender, count) rows."""
    by_type: dict[str, int] = {}
    students_by_gender: dict[str, int] = {}
    for patron_type, gender, count in patron_counts:
        by_type[patron_type] = by_type.get(patron_type, 0) + count
        if patron_type == PatronType.STUDENT.value and gender:
            students_by_gender[gender] = students_by_gender.get(gender, 0) + count

    students = by_type.get(PatronType.STUDENT.value, 0)
    staff = by_type.get(PatronType.STAFF.value, 0)
    guests = by_type.get(PatronType.GUEST.value, 0)
    teachers = by_type.get(PatronType.TEACHER.value, 0)

    return {
        "circulation": {
            "total_borrowed": total_borrowed,
            "total_overdues": total_overdues,
            "overdue_over_threshold": overdue_over_threshold,
            "overdue_threshold_days": overdue_threshold_days,
        },
        "patrons": {
            "total_students": {
                "total": students,
                "male": students_by_gender.get("male", 0),
                "female": students_by_gender.get("female", 0),
            },
            "total_staff": staff,
            "total_guests": guests,
            "total_teachers": teachers,
            "active_patrons": active_patrons,
        },
        "summary": {
            "total_patrons": students + staff + guests + teachers,
            "total_items": total_items,
            "total_borrowed": total_borrowed,
            "active_patrons": active_patrons,
        },
    }
