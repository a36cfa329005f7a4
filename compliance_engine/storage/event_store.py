"""SQLAlchemy-backed preview event log (``post_previews`` table)."""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from compliance_engine.errors import StoreUnavailableError
from compliance_engine.models.orm import PostPreviewORM
from compliance_engine.models.preview import PolicyState, PreviewEvent
from compliance_engine.storage.database import SessionFactory, get_db

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # Naive datetimes are treated as UTC so SQLite and PostgreSQL compare alike
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SQLAlchemyPreviewEventStore:
    """Append-only preview event log. Rows are inserted and counted, never updated."""

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self._session_factory = session_factory or get_db

    def insert_preview_event(self, event: PreviewEvent) -> PreviewEvent:
        row = PostPreviewORM(
            user_id=event.user_id,
            subreddit=event.subreddit,
            title_preview=event.title_preview,
            body_preview=event.body_preview,
            policy_state=event.policy_state.value,
            warnings=list(event.warnings),
            created_at=_as_utc(event.created_at),
        )
        try:
            with self._session_factory() as db:
                try:
                    db.add(row)
                    db.commit()
                except SQLAlchemyError:
                    db.rollback()
                    raise
                event_id = row.id
        except SQLAlchemyError as e:
            logger.error(f"Failed to record preview event for user {event.user_id}: {str(e)}")
            raise StoreUnavailableError("Preview event write failed") from e

        return event.model_copy(update={"id": event_id})

    def count_preview_events(
        self,
        user_id: int,
        since: datetime,
        policy_state: Optional[PolicyState] = None,
    ) -> int:
        query = select(func.count(PostPreviewORM.id)).where(
            PostPreviewORM.user_id == user_id,
            PostPreviewORM.created_at >= _as_utc(since),
        )
        if policy_state is not None:
            query = query.where(PostPreviewORM.policy_state == policy_state.value)

        try:
            with self._session_factory() as db:
                return int(db.execute(query).scalar_one())
        except SQLAlchemyError as e:
            logger.error(f"Failed to count preview events for user {user_id}: {str(e)}")
            raise StoreUnavailableError("Preview event read failed") from e
