"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates all tables for the creator booking service:
users, creator_services, bookings, booking_deliverables,
booking_disputes, booking_mutations, scheduled_jobs.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum type names match SQLAlchemy's defaults for the model enums (lowercased class name).
user_role = sa.Enum("brand", "creator", "admin", name="userrole")
booking_status = sa.Enum("pending", "accepted", "declined", "cancelled", "completed", name="bookingstatus")
delivery_status = sa.Enum("in_progress", "delivered", "revision_requested", "confirmed", name="deliverystatus")
payment_status = sa.Enum("pending", "paid", "disputed", "refunded", name="paymentstatus")
dispute_status = sa.Enum("open", "under_review", "escalated", "resolved", name="disputestatus")
party_role = sa.Enum("brand", "creator", name="partyrole")
dispute_resolution = sa.Enum("release", "refund", "split", name="disputeresolution")
booking_action = sa.Enum(
    "create", "accept", "decline", "cancel", "submit_deliverables", "approve",
    "request_revision", "auto_release", "dispute_opened", "dispute_resolved",
    name="bookingaction",
)
job_type = sa.Enum(
    "review_reminder_48h", "review_reminder_24h", "auto_release",
    "dispute_reminder_48h", "dispute_reminder_24h", "dispute_escalation",
    "dispute_resolution_reminder",
    name="jobtype",
)
job_status = sa.Enum("pending", "done", "skipped", "cancelled", "failed", name="jobstatus")


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("display_name", sa.String(150), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("default_timezone", sa.String(50), nullable=False, server_default="UTC"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- creator_services ---
    op.create_table(
        "creator_services",
        sa.Column("service_id", sa.String(36), primary_key=True),
        sa.Column("creator_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False, index=True),
        sa.Column("service_type", sa.String(100), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("price_cents", sa.Integer, nullable=False),
        sa.Column("delivery_days", sa.Integer, nullable=False, server_default="7"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- bookings ---
    op.create_table(
        "bookings",
        sa.Column("booking_id", sa.String(36), primary_key=True),
        sa.Column("brand_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False, index=True),
        sa.Column("creator_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False, index=True),
        sa.Column("service_id", sa.String(36), sa.ForeignKey("creator_services.service_id"), nullable=True),
        sa.Column("service_name", sa.String(100), nullable=True),
        sa.Column("message", sa.String(2000), nullable=True),
        sa.Column("status", booking_status, nullable=False, server_default="pending"),
        sa.Column("delivery_status", delivery_status, nullable=True),
        sa.Column("payment_status", payment_status, nullable=False, server_default="pending"),
        sa.Column("total_price_cents", sa.Integer, nullable=False),
        sa.Column("delivery_days", sa.Integer, nullable=False, server_default="7"),
        sa.Column("delivery_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revision_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("revision_notes", sa.String(2000), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("revision_count BETWEEN 0 AND 2", name="ck_bookings_revision_count"),
        sa.CheckConstraint("total_price_cents > 0", name="ck_bookings_total_price_positive"),
    )

    # --- booking_deliverables ---
    op.create_table(
        "booking_deliverables",
        sa.Column("deliverable_id", sa.String(36), primary_key=True),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.booking_id"), nullable=False, index=True),
        sa.Column("creator_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column("file_size_bytes", sa.BigInteger, nullable=False),
        sa.Column("storage_key", sa.String(512), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("notes", sa.String(2000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("storage_key", name="uq_booking_deliverables_storage_key"),
    )

    # --- booking_disputes ---
    op.create_table(
        "booking_disputes",
        sa.Column("dispute_id", sa.String(36), primary_key=True),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.booking_id"), nullable=False, index=True),
        sa.Column("opened_by_user_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("opened_by_role", party_role, nullable=False),
        sa.Column("reason", sa.String(4000), nullable=False),
        sa.Column("evidence_description", sa.String(4000), nullable=True),
        sa.Column("status", dispute_status, nullable=False, server_default="open"),
        sa.Column("response_text", sa.String(4000), nullable=True),
        sa.Column("response_submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("response_deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("escalated_to_admin", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("escalated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution", dispute_resolution, nullable=True),
        sa.Column("refund_percentage", sa.Integer, nullable=True),
        sa.Column("admin_decision_reason", sa.String(4000), nullable=True),
        sa.Column("admin_notes", sa.String(4000), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by_user_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    # One unresolved dispute per booking.
    op.create_index(
        "uq_booking_disputes_one_unresolved",
        "booking_disputes",
        ["booking_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'resolved'"),
        sqlite_where=sa.text("status <> 'resolved'"),
    )

    # --- booking_mutations ---
    op.create_table(
        "booking_mutations",
        sa.Column("mutation_id", sa.String(36), primary_key=True),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.booking_id"), nullable=False, index=True),
        sa.Column("actor_user_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=True),
        sa.Column("action_type", booking_action, nullable=False),
        sa.Column("booking_version", sa.Integer, nullable=False),
        sa.Column("before_snapshot", sa.JSON, nullable=True),
        sa.Column("after_snapshot", sa.JSON, nullable=False),
        sa.Column("idempotency_key", sa.String(255), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- scheduled_jobs ---
    op.create_table(
        "scheduled_jobs",
        sa.Column("job_id", sa.String(36), primary_key=True),
        sa.Column("job_type", job_type, nullable=False),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.booking_id"), nullable=True, index=True),
        sa.Column("dispute_id", sa.String(36), sa.ForeignKey("booking_disputes.dispute_id"),
                  nullable=True, index=True),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("payload", sa.JSON, nullable=True),
        sa.Column("status", job_status, nullable=False, server_default="pending", index=True),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_error", sa.String(2000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("scheduled_jobs")
    op.drop_table("booking_mutations")
    op.drop_index("uq_booking_disputes_one_unresolved", table_name="booking_disputes")
    op.drop_table("booking_disputes")
    op.drop_table("booking_deliverables")
    op.drop_table("bookings")
    op.drop_table("creator_services")
    op.drop_table("users")
    for enum_type in (job_status, job_type, booking_action, dispute_resolution, party_role,
                      dispute_status, payment_status, delivery_status, booking_status, user_role):
        enum_type.drop(op.get_bind(), checkfirst=True)
