"""create compliance tables

Revision ID: 0001_compliance_tables
Revises:
Create Date: 2026-10-18 12:00:00.000000

Creates the RuleSpec store (`subreddit_rules`), the append-only preview
event log (`post_previews`) and the known-community list with its rules
read-model (`reddit_communities`).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_compliance_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_DOCUMENT = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "subreddit_rules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("subreddit", sa.String(length=100), nullable=False),
        sa.Column("rules_json", JSON_DOCUMENT, nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("subreddit", name="uq_subreddit_rules_subreddit"),
    )

    op.create_table(
        "post_previews",
        sa.Column(
            "id",
            sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            primary_key=True,
            autoincrement=True,
        ),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("subreddit", sa.String(length=100), nullable=False),
        sa.Column("title_preview", sa.Text(), nullable=False),
        sa.Column("body_preview", sa.Text(), nullable=False),
        sa.Column("policy_state", sa.String(length=10), nullable=False),
        sa.Column("warnings", JSON_DOCUMENT, nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_post_previews_user_id_created_at", "post_previews", ["user_id", "created_at"]
    )

    op.create_table(
        "reddit_communities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("rules_json", JSON_DOCUMENT, nullable=True),
        sa.Column("rules_synced_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint("name", name="uq_reddit_communities_name"),
    )


def downgrade() -> None:
    op.drop_table("reddit_communities")
    op.drop_index("ix_post_previews_user_id_created_at", table_name="post_previews")
    op.drop_table("post_previews")
    op.drop_table("subreddit_rules")
