"""Ranking Engine (pure half) - orders a month's ledger rows and assigns ranks.

Invariants:
    - Scores are recomputed from counters before sorting (stored scores are a cache)
    - Sort order: activity_score desc, then each tie-break key desc, then
      patron_barcode asc as the final stable key
    - rank is the 1-based position in that order; ties on every key still get
      distinct ranks
    - Same input rows -> same ranks, regardless of input order
    - Inputs are never mutated; ranked copies are returned

Design Decisions:
    - Rows are plain dicts (snapshots of ORM rows): the shell loads and persists,
      this module only decides order
"""

from typing import Any, Iterable, Sequence

from shelfwise.core.scoring import ScoreWeights, compute_activity_score, DEFAULT_WEIGHTS


TIE_BREAK_KEYS: frozenset[str] = frozenset({
    "total_points",
    "books_checked_out",
    "books_returned",
    "classes_attended",
    "summaries_submitted",
    "summaries_approved",
})

DEFAULT_TIE_BREAK: tuple[str, ...] = ("total_points",)


def validate_tie_break(keys: Iterable[str]) -> tuple[str, ...]:
    """Reject unknown or repeated keys; return them as a tuple."""
    keys = tuple(keys)
    unknown = [k for k in keys if k not in TIE_BREAK_KEYS]
    if unknown:
        raise ValueError(
            f"Unknown tie-break key(s): {', '.join(unknown)}. "
            f"Allowed: {', '.join(sorted(TIE_BREAK_KEYS))}"
        )
    if len(set(keys)) != len(keys):
        raise ValueError("Tie-break keys must not repeat")
    return keys


def _sort_key(row: dict, tie_break: Sequence[str]) -> tuple:
    return (
        -row["activity_score"],
        *(-(row.get(k) or 0) for k in tie_break),
        row.get("patron_barcode") or "",
    )


def rank_activities(
    rows: Iterable[dict[str, Any]],
    weights: ScoreWeights = DEFAULT_WEIGHTS,
    tie_break: Sequence[str] = DEFAULT_TIE_BREAK,
) -> list[dict[str, Any]]:
    """Score, sort and rank a month's rows. Returns new dicts with score and rank set."""
    tie_break = validate_tie_break(tie_break)
    scored = [
        {**row, "activity_score": compute_activity_score(row, weights)}
        for row in rows
    ]
    scored.sort(key=lambda r: _sort_key(r, tie_break))
    for position, row in enumerate(scored, start=1):
        row["rank"] = position
    return scored


def compute_month_stats(
    ranked: Sequence[dict[str, Any]], inactive_count: int,
) -> dict:
    """Aggregate stats for the leaderboard header. Never raises on empty input."""
    def total(name: str) -> int:
        return sum(r.get(name) or 0 for r in ranked)

    active = len(ranked)
    return {
        "total_active_patrons": active,
        "total_inactive_patrons": inactive_count,
        "total_books_checked_out": total("books_checked_out"),
        "total_books_returned": total("books_returned"),
        "total_classes_attended": total("classes_attended"),
        "total_summaries_submitted": total("summaries_submitted"),
        "total_summaries_approved": total("summaries_approved"),
        "total_points_awarded": total("total_points"),
        "average_activity_score": (
            round(total("activity_score") / active, 2) if active else 0
        ),
    }
