"""initial_ingestion_schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:12:44.513201

Tables for the ingestion pipeline:
- users / chatbots (owned by the CRUD layer, read and stamped by workers)
- scrape_history (one row per ingestion run)
- embeddings (pgvector, tagged with the generation that wrote them)
- deletion_requests (read by the scheduled deletion sweep)
"""

from alembic import op
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=False), primary_key=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column(
            "created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()")
        ),
    )

    op.create_table(
        "chatbots",
        sa.Column("id", UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "user_id",
            UUID(as_uuid=False),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("website_url", sa.String(), nullable=False),
        sa.Column("auto_scrape_enabled", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("scrape_frequency", sa.String(), nullable=False, server_default="manual"),
        sa.Column("last_scraped_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("pages_scraped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_pages", sa.Integer(), nullable=True),
        sa.Column(
            "created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()")
        ),
        sa.Column(
            "updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()")
        ),
    )
    op.create_index("ix_chatbots_user_id", "chatbots", ["user_id"])
    op.create_index(
        "ix_chatbots_auto_scrape", "chatbots", ["auto_scrape_enabled", "scrape_frequency"]
    )

    op.create_table(
        "scrape_history",
        sa.Column("id", UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "chatbot_id",
            UUID(as_uuid=False),
            sa.ForeignKey("chatbots.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("pages_scraped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("embeddings_created", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("triggered_by", sa.String(), nullable=False),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()")
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'failed')",
            name="ck_scrape_history_status",
        ),
        sa.CheckConstraint(
            "triggered_by IN ('manual', 'scheduled', 'initial')",
            name="ck_scrape_history_triggered_by",
        ),
    )
    op.create_index("ix_scrape_history_chatbot_id", "scrape_history", ["chatbot_id"])
    op.create_index(
        "ix_scrape_history_chatbot_status", "scrape_history", ["chatbot_id", "status"]
    )

    op.create_table(
        "embeddings",
        sa.Column("id", UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "chatbot_id",
            UUID(as_uuid=False),
            sa.ForeignKey("chatbots.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("page_url", sa.String(), nullable=False),
        sa.Column("embedding", Vector(1536), nullable=False),
        sa.Column("generation", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_embeddings_chatbot_generation", "embeddings", ["chatbot_id", "generation"]
    )

    op.create_table(
        "deletion_requests",
        sa.Column("id", UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "user_id",
            UUID(as_uuid=False),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("scheduled_deletion_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column(
            "created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()")
        ),
    )
    op.create_index("ix_deletion_requests_user_id", "deletion_requests", ["user_id"])
    op.create_index(
        "ix_deletion_requests_status_date",
        "deletion_requests",
        ["status", "scheduled_deletion_date"],
    )


def downgrade() -> None:
    op.drop_table("deletion_requests")
    op.drop_table("embeddings")
    op.drop_table("scrape_history")
    op.drop_table("chatbots")
    op.drop_table("users")
