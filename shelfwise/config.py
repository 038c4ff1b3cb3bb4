"""Application Configuration - environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache): single instance per process
    - Business policy (score weights, tie-break keys, summary rules, loan period)
      lives here so a policy change is an env change, not a deploy

Design Decisions:
    - Core never imports Settings; score_weights() / summary_policy() hand it
      frozen policy dataclasses instead
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shelfwise.core.enforce_summary import SummaryPolicy
from shelfwise.core.ranking import validate_tie_break
from shelfwise.core.scoring import ScoreWeights


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://shelfwise:shelfwise@db:5432/shelfwise"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting platforms hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Circulation
    default_due_days: int = 2
    require_photo_for_checkout: bool = True
    overdue_alert_days: int = 30

    # Attendance
    attendance_points: int = 5

    # Review Workflow
    summary_min_length: int = 100
    summary_monthly_cap: int = 4
    summary_submission_points: int = 25
    summary_max_approval_bonus: int = 50
    summary_max_staff_bonus: int = 20

    # Ranking
    weight_books_checked_out: int = 10
    weight_books_returned: int = 15
    weight_classes_attended: int = 20
    weight_summaries_approved: int = 25
    weight_total_points: int = 1
    ranking_tie_break: list[str] = ["total_points"]
    leaderboard_limit: int = 100
    inactive_display_cap: int = 20
    persist_ranks_on_read: bool = True

    @field_validator("ranking_tie_break")
    @classmethod
    def check_tie_break(cls, v: list[str]) -> list[str]:
        return list(validate_tie_break(v))

    # API
    cors_origins: list[str] = ["http://localhost:3000"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    def score_weights(self) -> ScoreWeights:
        return ScoreWeights(
            books_checked_out=self.weight_books_checked_out,
            books_returned=self.weight_books_returned,
            classes_attended=self.weight_classes_attended,
            summaries_approved=self.weight_summaries_approved,
            total_points=self.weight_total_points,
        )

    def summary_policy(self) -> SummaryPolicy:
        return SummaryPolicy(
            min_length=self.summary_min_length,
            monthly_cap=self.summary_monthly_cap,
            submission_points=self.summary_submission_points,
            max_approval_bonus=self.summary_max_approval_bonus,
            max_staff_bonus=self.summary_max_staff_bonus,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
