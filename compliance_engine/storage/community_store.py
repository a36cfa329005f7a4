"""SQLAlchemy-backed community list and rules read-model (``reddit_communities`` table)."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from compliance_engine.errors import StoreUnavailableError
from compliance_engine.models.orm import RedditCommunityORM
from compliance_engine.models.rule_spec import normalize_subreddit_name
from compliance_engine.storage.database import SessionFactory, get_db

logger = logging.getLogger(__name__)


class SQLAlchemyCommunityStore:
    """Known communities, as enumerated by ``sync_all``."""

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self._session_factory = session_factory or get_db

    def list_community_names(self) -> List[str]:
        try:
            with self._session_factory() as db:
                names = db.execute(
                    select(RedditCommunityORM.name).order_by(RedditCommunityORM.name)
                ).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to list communities: {str(e)}")
            raise StoreUnavailableError("Community list read failed") from e
        return list(names)

    def add_community(self, name: str, display_name: Optional[str] = None) -> bool:
        """Register a community; returns False if it was already known."""
        key = normalize_subreddit_name(name)
        try:
            with self._session_factory() as db:
                exists = db.execute(
                    select(RedditCommunityORM.id).where(RedditCommunityORM.name == key)
                ).first()
                if exists:
                    return False
                try:
                    db.add(RedditCommunityORM(name=key, display_name=display_name or name))
                    db.commit()
                except SQLAlchemyError:
                    db.rollback()
                    raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to add community r/{key}: {str(e)}")
            raise StoreUnavailableError(f"Community write failed for r/{key}") from e
        return True

    def update_community_rules(
        self, name: str, rules: Dict[str, Any], synced_at: datetime
    ) -> bool:
        key = normalize_subreddit_name(name)
        try:
            with self._session_factory() as db:
                try:
                    result = db.execute(
                        update(RedditCommunityORM)
                        .where(RedditCommunityORM.name == key)
                        .values(rules_json=rules, rules_synced_at=synced_at)
                    )
                    db.commit()
                except SQLAlchemyError:
                    db.rollback()
                    raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to update community rules for r/{key}: {str(e)}")
            raise StoreUnavailableError(f"Community write failed for r/{key}") from e
        return result.rowcount > 0

    def get_community_rules(self, name: str) -> Optional[Dict[str, Any]]:
        key = normalize_subreddit_name(name)
        try:
            with self._session_factory() as db:
                return db.execute(
                    select(RedditCommunityORM.rules_json).where(RedditCommunityORM.name == key)
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Failed to read community rules for r/{key}: {str(e)}")
            raise StoreUnavailableError(f"Community read failed for r/{key}") from e
