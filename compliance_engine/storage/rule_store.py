"""SQLAlchemy-backed rule store (``subreddit_rules`` table)."""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from compliance_engine.errors import StoreUnavailableError
from compliance_engine.models.orm import SubredditRuleORM
from compliance_engine.models.rule_spec import (
    RuleSpec,
    coerce_rule_spec,
    normalize_subreddit_name,
)
from compliance_engine.storage.database import SessionFactory, get_db

logger = logging.getLogger(__name__)


class SQLAlchemyRuleStore:
    """Rule store persisting one RuleSpec JSON document per community."""

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        """
        Args:
            session_factory: Callable returning a session context manager.
                Defaults to the application-wide ``get_db``.
        """
        self._session_factory = session_factory or get_db

    def get_rule_spec(self, community: str) -> Optional[RuleSpec]:
        key = normalize_subreddit_name(community)
        try:
            with self._session_factory() as db:
                row = db.execute(
                    select(SubredditRuleORM.rules_json).where(SubredditRuleORM.subreddit == key)
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load rules for r/{key}: {str(e)}")
            raise StoreUnavailableError(f"Rule store read failed for r/{key}") from e

        if row is None:
            return None
        return coerce_rule_spec(row)

    def upsert_rule_spec(self, community: str, spec: RuleSpec) -> None:
        """
        Insert or update the rule document for ``community``.

        Uses a single ``INSERT ... ON CONFLICT (subreddit) DO UPDATE`` so
        concurrent syncs of the same community resolve to last writer wins.
        """
        key = normalize_subreddit_name(community)
        document = spec.to_document()

        try:
            with self._session_factory() as db:
                if db.bind.dialect.name == "sqlite":
                    stmt = sqlite.insert(SubredditRuleORM)
                else:
                    stmt = postgresql.insert(SubredditRuleORM)

                stmt = stmt.values(subreddit=key, rules_json=document)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["subreddit"],
                    set_={"rules_json": stmt.excluded.rules_json, "updated_at": func.now()},
                )
                try:
                    db.execute(stmt)
                    db.commit()
                except SQLAlchemyError:
                    db.rollback()
                    raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to upsert rules for r/{key}: {str(e)}")
            raise StoreUnavailableError(f"Rule store write failed for r/{key}") from e

        logger.debug(f"Upserted rules for r/{key}")
