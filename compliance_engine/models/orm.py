"""SQLAlchemy ORM models for rule specs, preview events and known communities."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import BigInteger, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql.sqltypes import TIMESTAMP

from compliance_engine.models.base import Base, JSONDocument


class SubredditRuleORM(Base):
    """
    One compiled RuleSpec per community.

    Schema (see Alembic migration 0001_compliance_tables):
      id          INTEGER PK
      subreddit   VARCHAR(100) NOT NULL UNIQUE   -- lowercase community name
      rules_json  JSONB NOT NULL                 -- RuleSpec document
      created_at  TIMESTAMPTZ NOT NULL DEFAULT now()
      updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
    """
    __tablename__ = "subreddit_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subreddit: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    rules_json: Mapped[Dict[str, Any]] = mapped_column(JSONDocument, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<SubredditRuleORM(id={self.id}, subreddit='{self.subreddit}')>"


class PostPreviewORM(Base):
    """
    Append-only log of lint evaluations. Rows are never updated by the engine.
    """
    __tablename__ = "post_previews"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    subreddit: Mapped[str] = mapped_column(String(100), nullable=False)
    title_preview: Mapped[str] = mapped_column(Text, nullable=False)
    body_preview: Mapped[str] = mapped_column(Text, nullable=False)
    policy_state: Mapped[str] = mapped_column(String(10), nullable=False)
    warnings: Mapped[List[str]] = mapped_column(JSONDocument, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_post_previews_user_id_created_at", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<PostPreviewORM(id={self.id}, user_id={self.user_id}, "
            f"subreddit='{self.subreddit}', policy_state='{self.policy_state}')>"
        )


class RedditCommunityORM(Base):
    """
    Known communities. ``sync_all`` enumerates this table and writes the
    denormalized community rules read-model into ``rules_json``.
    """
    __tablename__ = "reddit_communities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    rules_json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONDocument, nullable=True)
    rules_synced_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<RedditCommunityORM(id={self.id}, name='{self.name}')>"
