"""Dashboard Stats - tests for composing dashboard counts."""

from shelfwise.core.dashboard_stats import compose_dashboard


def test_compose_dashboard_groups_counts():
    result = compose_dashboard(
        total_items=50,
        total_borrowed=7,
        total_overdues=3,
        overdue_over_threshold=1,
        overdue_threshold_days=30,
        patron_counts=[
            ("student", "male", 10),
            ("student", "female", 12),
            ("student", None, 1),
            ("staff", "female", 4),
            ("teacher", "male", 2),
        ],
        active_patrons=25,
    )
    assert result["circulation"] == {
        "total_borrowed": 7,
        "total_overdues": 3,
        "overdue_over_threshold": 1,
        "overdue_threshold_days": 30,
    }
    assert result["patrons"]["total_students"] == {"total": 23, "male": 10, "female": 12}
    assert result["patrons"]["total_staff"] == 4
    assert result["patrons"]["total_guests"] == 0
    assert result["patrons"]["total_teachers"] == 2
    assert result["summary"]["total_patrons"] == 29
    assert result["summary"]["total_items"] == 50


def test_compose_dashboard_empty_library():
    result = compose_dashboard(
        total_items=0, total_borrowed=0, total_overdues=0,
        overdue_over_threshold=0, overdue_threshold_days=30,
        patron_counts=[], active_patrons=0,
    )
    assert result["patrons"]["total_students"]["total"] == 0
    assert result["summary"]["total_patrons"] == 0
