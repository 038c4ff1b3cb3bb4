"""Initial schema - patrons, items, checkout log, ledger, summaries, attendance.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at", sa.DateTime(timezone=True), nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    op.create_table(
        "patrons",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("barcode", sa.String(64), nullable=False),
        sa.Column("firstname", sa.String(100), nullable=False),
        sa.Column("surname", sa.String(100), nullable=False),
        sa.Column("middlename", sa.String(100), nullable=True),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("parent_phone_number", sa.String(32), nullable=True),
        sa.Column("patron_type", sa.String(20), nullable=False, server_default="student"),
        sa.Column("gender", sa.String(10), nullable=True),
        sa.Column("active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("photo_public_id", sa.String(255), nullable=True),
        sa.Column("has_open_loan", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("points", sa.Integer, nullable=False, server_default="0"),
        _created_at(),
        sa.CheckConstraint("points >= 0", name="ck_patrons_points_non_negative"),
    )
    op.create_index("ix_patrons_barcode", "patrons", ["barcode"], unique=True)

    op.create_table(
        "items",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("barcode", sa.String(64), nullable=False),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("subtitle", sa.String(300), nullable=True),
        sa.Column("available", sa.Boolean, nullable=False, server_default="true"),
        _created_at(),
    )
    op.create_index("ix_items_barcode", "items", ["barcode"], unique=True)

    op.create_table(
        "checkout_records",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("item_id", UUID(as_uuid=True), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("patron_id", UUID(as_uuid=True), sa.ForeignKey("patrons.id"), nullable=False),
        sa.Column("borrower_barcode", sa.String(64), nullable=False),
        sa.Column("borrower_name", sa.String(300), nullable=False),
        sa.Column("contact_info", sa.String(64), nullable=False),
        sa.Column("event_title", sa.String(200), nullable=True),
        sa.Column("checked_out_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("renewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("returned_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("item_id", "sequence", name="uq_checkout_records_item_sequence"),
    )
    # At most one open record per item and per patron
    op.create_index(
        "uq_checkout_records_open_item", "checkout_records", ["item_id"],
        unique=True, postgresql_where=sa.text("returned_at IS NULL"),
    )
    op.create_index(
        "uq_checkout_records_open_patron", "checkout_records", ["patron_id"],
        unique=True, postgresql_where=sa.text("returned_at IS NULL"),
    )

    op.create_table(
        "patron_borrowings",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("patron_id", UUID(as_uuid=True), sa.ForeignKey("patrons.id"), nullable=False),
        sa.Column(
            "checkout_record_id", UUID(as_uuid=True),
            sa.ForeignKey("checkout_records.id"), nullable=False, unique=True,
        ),
        sa.Column("item_barcode", sa.String(64), nullable=False),
        sa.Column("item_title", sa.String(300), nullable=False),
        sa.Column("item_subtitle", sa.String(300), nullable=True),
        sa.Column("event_title", sa.String(200), nullable=True),
        sa.Column("checked_out_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("renewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("returned_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_patron_borrowings_patron_id", "patron_borrowings", ["patron_id"])

    op.create_table(
        "monthly_activities",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("patron_id", UUID(as_uuid=True), sa.ForeignKey("patrons.id"), nullable=False),
        sa.Column("patron_barcode", sa.String(64), nullable=False),
        sa.Column("patron_name", sa.String(300), nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("month", sa.Integer, nullable=False),
        *[
            sa.Column(name, sa.Integer, nullable=False, server_default="0")
            for name in (
                "books_checked_out", "books_returned", "classes_attended",
                "summaries_submitted", "summaries_approved",
                "total_points", "points_from_books", "points_from_attendance",
                "points_from_summaries", "activity_score", "rank",
            )
        ],
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="false"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("patron_id", "year", "month", name="uq_monthly_activities_patron_month"),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_monthly_activities_month"),
    )
    op.create_index(
        "ix_monthly_activities_month_score", "monthly_activities",
        ["year", "month", "activity_score"],
    )

    op.create_table(
        "activity_events",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("event_key", sa.String(200), nullable=False, unique=True),
        sa.Column("patron_id", UUID(as_uuid=True), sa.ForeignKey("patrons.id"), nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("month", sa.Integer, nullable=False),
        _created_at(),
    )

    op.create_table(
        "book_summaries",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("patron_id", UUID(as_uuid=True), sa.ForeignKey("patrons.id"), nullable=False),
        sa.Column("patron_barcode", sa.String(64), nullable=False),
        sa.Column("patron_name", sa.String(300), nullable=False),
        sa.Column("item_id", UUID(as_uuid=True), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("book_barcode", sa.String(64), nullable=False),
        sa.Column("book_title", sa.String(300), nullable=False),
        sa.Column("summary", sa.Text, nullable=False),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("feedback", sa.Text, nullable=True),
        sa.Column("reviewed_by", sa.String(200), nullable=True),
        sa.Column("review_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("staff_created", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("patron_barcode", "book_barcode", name="uq_book_summaries_patron_book"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_book_summaries_rating"),
    )
    op.create_index("ix_book_summaries_status", "book_summaries", ["status"])
    op.create_index(
        "ix_book_summaries_patron_submitted", "book_summaries",
        ["patron_barcode", "submitted_at"],
    )

    op.create_table(
        "attendances",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("patron_id", UUID(as_uuid=True), sa.ForeignKey("patrons.id"), nullable=False),
        sa.Column("patron_barcode", sa.String(64), nullable=False),
        sa.Column("patron_name", sa.String(300), nullable=False),
        sa.Column("class_type", sa.String(30), nullable=False, server_default="literacy"),
        sa.Column("class_name", sa.String(200), nullable=False),
        sa.Column("class_date", sa.Date, nullable=False),
        sa.Column("attended_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("marked_by", sa.String(200), nullable=False),
        sa.Column("points", sa.Integer, nullable=False, server_default="5"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.UniqueConstraint(
            "patron_barcode", "class_name", "class_date",
            name="uq_attendances_patron_class_date",
        ),
    )
    op.create_index("ix_attendances_class_date", "attendances", ["class_date"])


def downgrade() -> None:
    op.drop_table("attendances")
    op.drop_table("book_summaries")
    op.drop_table("activity_events")
    op.drop_table("monthly_activities")
    op.drop_table("patron_borrowings")
    op.drop_table("checkout_records")
    op.drop_table("items")
    op.drop_table("patrons")
