"""engagements, analytical reviews and version history

Revision ID: 0001_analytical_reviews
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_analytical_reviews"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "engagements",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("client_id", sa.String(length=128), nullable=False),
        sa.Column("title", sa.String(length=256), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default=sa.text("'draft'")),
        sa.Column("year_end_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_engagements_client_id", "engagements", ["client_id"])

    op.create_table(
        "analytical_reviews",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("engagement_id", postgresql.UUID(as_uuid=True), nullable=False),

        sa.Column("auditor_id", sa.String(length=128), nullable=False),
        sa.Column("client_id", sa.String(length=128), nullable=False),

        sa.Column("ratios", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("commentary", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("conclusions", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("key_findings", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("risk_assessment", sa.String(length=16), nullable=False, server_default=sa.text("''")),

        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'draft'")),
        sa.Column("current_version", sa.Integer(), nullable=False, server_default=sa.text("1")),

        sa.Column("last_edited_by", sa.String(length=128), nullable=True),
        sa.Column("last_edited_at", sa.DateTime(timezone=True), nullable=True),

        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_by", sa.String(length=128), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.String(length=128), nullable=True),
        sa.Column("review_comments", sa.Text(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.String(length=128), nullable=True),

        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),

        sa.ForeignKeyConstraint(["engagement_id"], ["engagements.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("engagement_id", name="uq_analytical_reviews_engagement_id"),
        sa.CheckConstraint("current_version >= 1", name="ck_analytical_reviews_version_positive"),
    )
    op.create_index("ix_analytical_reviews_auditor_id", "analytical_reviews", ["auditor_id"])
    op.create_index("ix_analytical_reviews_last_edited_by", "analytical_reviews", ["last_edited_by"])
    op.create_index("ix_analytical_reviews_auditor_status", "analytical_reviews", ["auditor_id", "status"])
    op.create_index("ix_analytical_reviews_status_created", "analytical_reviews", ["status", "created_at"])
    op.create_index("ix_analytical_reviews_client", "analytical_reviews", ["client_id"])

    op.create_table(
        "analytical_review_versions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("review_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("data", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("edited_by", sa.String(length=128), nullable=False),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("change_note", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),

        sa.ForeignKeyConstraint(["review_id"], ["analytical_reviews.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("review_id", "version_number", name="uq_analytical_review_versions_review_version"),
        sa.CheckConstraint("version_number >= 1", name="ck_analytical_review_versions_positive"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("engagement_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("review_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("actor_user_id", sa.String(length=128), nullable=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("request_id", sa.String(length=128), nullable=True),
        sa.Column("details_json", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_audit_logs_review", "audit_logs", ["review_id"])
    op.create_index("ix_audit_logs_engagement", "audit_logs", ["engagement_id"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade():
    op.drop_index("ix_audit_logs_created_at", table_name="audit_logs")
    op.drop_index("ix_audit_logs_engagement", table_name="audit_logs")
    op.drop_index("ix_audit_logs_review", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_table("analytical_review_versions")

    op.drop_index("ix_analytical_reviews_client", table_name="analytical_reviews")
    op.drop_index("ix_analytical_reviews_status_created", table_name="analytical_reviews")
    op.drop_index("ix_analytical_reviews_auditor_status", table_name="analytical_reviews")
    op.drop_index("ix_analytical_reviews_last_edited_by", table_name="analytical_reviews")
    op.drop_index("ix_analytical_reviews_auditor_id", table_name="analytical_reviews")
    op.drop_table("analytical_reviews")

    op.drop_index("ix_engagements_client_id", table_name="engagements")
    op.drop_table("engagements")
