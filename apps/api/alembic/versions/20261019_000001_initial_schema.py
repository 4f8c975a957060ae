"""create initial schema

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:01.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("whatsapp_no", sa.String(), nullable=True),
        sa.Column("section", sa.String(), nullable=True),
        sa.Column("year", sa.String(), nullable=True),
        sa.Column("sem", sa.String(), nullable=True),
        sa.Column("branch", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("credits_remaining", sa.Integer(), nullable=True),
        sa.Column("total_orders", sa.Integer(), nullable=True),
        sa.Column("total_pages", sa.Integer(), nullable=True),
        sa.Column("referral_code", sa.String(), nullable=True),
        sa.Column("page_quota", sa.Integer(), nullable=True),
        sa.Column("total_orders_placed", sa.Integer(), nullable=True),
        sa.Column("total_pages_used", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("last_order_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_credit_rollover", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=False)
    op.create_index(op.f("ix_users_referral_code"), "users", ["referral_code"], unique=False)

    op.create_table(
        "admin_roles",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "orders",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("assignment_title", sa.String(), nullable=False),
        sa.Column("order_type", sa.String(), nullable=False),
        sa.Column("page_count", sa.Integer(), nullable=False),
        sa.Column("original_files", sa.JSON(), nullable=False),
        sa.Column("cloudinary_folder", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("student_email", sa.String(), nullable=True),
        sa.Column("student_name", sa.String(), nullable=True),
        sa.Column("student_branch", sa.String(), nullable=True),
        sa.Column("student_year", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("completed_file_url", sa.String(), nullable=True),
        sa.Column("turnaround_time_hours", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("user_id", "id"),
    )
    op.create_index(op.f("ix_orders_status"), "orders", ["status"], unique=False)
    op.create_index(op.f("ix_orders_created_at"), "orders", ["created_at"], unique=False)

    op.create_table(
        "file_cleanup_jobs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("student_id", sa.String(), nullable=False),
        sa.Column("cloudinary_folder", sa.String(), nullable=False),
        sa.Column("original_files", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("retry_count", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.String(), nullable=True),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_file_cleanup_jobs_order_id"), "file_cleanup_jobs", ["order_id"], unique=False)
    op.create_index(op.f("ix_file_cleanup_jobs_student_id"), "file_cleanup_jobs", ["student_id"], unique=False)
    op.create_index(op.f("ix_file_cleanup_jobs_status"), "file_cleanup_jobs", ["status"], unique=False)

    op.create_table(
        "referral_links",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("credits", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("clicks", sa.Integer(), nullable=False),
        sa.Column("signups", sa.Integer(), nullable=False),
        sa.Column("orders", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_by_email", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_referral_links_code"), "referral_links", ["code"], unique=True)

    op.create_table(
        "audit_log_entries",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("actor_email", sa.String(), nullable=True),
        sa.Column("target_type", sa.String(), nullable=True),
        sa.Column("target_id", sa.String(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_audit_log_entries_action"), "audit_log_entries", ["action"], unique=False)
    op.create_index(op.f("ix_audit_log_entries_actor_id"), "audit_log_entries", ["actor_id"], unique=False)
    op.create_index(op.f("ix_audit_log_entries_created_at"), "audit_log_entries", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_audit_log_entries_created_at"), table_name="audit_log_entries")
    op.drop_index(op.f("ix_audit_log_entries_actor_id"), table_name="audit_log_entries")
    op.drop_index(op.f("ix_audit_log_entries_action"), table_name="audit_log_entries")
    op.drop_table("audit_log_entries")
    op.drop_index(op.f("ix_referral_links_code"), table_name="referral_links")
    op.drop_table("referral_links")
    op.drop_index(op.f("ix_file_cleanup_jobs_status"), table_name="file_cleanup_jobs")
    op.drop_index(op.f("ix_file_cleanup_jobs_student_id"), table_name="file_cleanup_jobs")
    op.drop_index(op.f("ix_file_cleanup_jobs_order_id"), table_name="file_cleanup_jobs")
    op.drop_table("file_cleanup_jobs")
    op.drop_index(op.f("ix_orders_created_at"), table_name="orders")
    op.drop_index(op.f("ix_orders_status"), table_name="orders")
    op.drop_table("orders")
    op.drop_table("admin_roles")
    op.drop_index(op.f("ix_users_referral_code"), table_name="users")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
