"""Engagement logging: query events, candidate actions and direct FAQ browses.

The action record is the source of truth. Derived counters (an event's
``read_count``, a FAQ's ``hit_count``) are best-effort and recomputed or bumped
inside savepoints, so their failure never undoes the record itself.
"""

import logging
import uuid
from datetime import datetime, timezone
from sqlalchemy import select, update, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestError, NotFoundError
from app.core.outcome import Absorbed, LogOutcome, Recorded, Skipped
from app.core.session_ref import AnonymousSession, KnownSession, SessionRef
from app.models.chatbot import Faq
from app.models.query import ACTION_VIEWED, QueryActionRecord, QueryEvent
from app.services.session_service import session_service

logger = logging.getLogger(__name__)


def new_event_id() -> str:
    return str(uuid.uuid4())


def _insert_for(db: AsyncSession):
    """Return the dialect's INSERT construct supporting ON CONFLICT."""
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert


class EngagementService:
    """Service recording what users were shown and what they did with it."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log_query(
        self,
        chatbot_id: str,
        session: SessionRef,
        query_text: str,
        result_count: int
    ) -> LogOutcome:
        """Create the QueryEvent for an answered question and bump the session counter.

        Anonymous requests leave no trail. Any failure is rolled back to a
        savepoint and reported as ``Absorbed``.
        """
        if isinstance(session, AnonymousSession):
            logger.info(f"No session for chatbot {chatbot_id}, query not logged")
            return Skipped("anonymous session")

        event_id = new_event_id()
        try:
            async with self.db.begin_nested():
                self.db.add(QueryEvent(
                    id=event_id,
                    chatbot_id=chatbot_id,
                    session_id=session.session_id,
                    query_text=query_text,
                    result_count=result_count,
                    read_count=0,
                ))
                await self.db.flush()
                await session_service.increment_query_count(self.db, session.session_id)
        except Exception as e:
            logger.warning(f"Failed to log query for session {session.session_id} (answer unaffected): {e}")
            return Absorbed("query_log", str(e))

        logger.info(f"Logged query event {event_id} (session {session.session_id}, results {result_count})")
        return Recorded(event_id)

    async def record_action(
        self,
        event_id: str,
        faq_id: str,
        action: str
    ) -> LogOutcome:
        """Upsert the user's action on one candidate of a query event.

        Raises NotFoundError for an unknown event or candidate and
        BadRequestError when the record itself cannot be written.
        """
        event_exists = await self.db.scalar(
            select(QueryEvent.id).where(QueryEvent.id == event_id)
        )
        if event_exists is None:
            logger.warning(f"Action for unknown event {event_id}")
            raise NotFoundError(f"No such event: {event_id}")

        faq_exists = await self.db.scalar(
            select(Faq.id).where(Faq.id == faq_id)
        )
        if faq_exists is None:
            logger.warning(f"Action for unknown candidate {faq_id}")
            raise NotFoundError(f"No such candidate: {faq_id}")

        now = datetime.now(timezone.utc)
        insert = _insert_for(self.db)
        stmt = insert(QueryActionRecord).values(
            event_id=event_id,
            faq_id=faq_id,
            action=action,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[QueryActionRecord.event_id, QueryActionRecord.faq_id],
            set_={"action": stmt.excluded.action, "updated_at": stmt.excluded.updated_at},
        )

        try:
            async with self.db.begin_nested():
                await self.db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Failed to record action {action} for event {event_id}, faq {faq_id}: {e}")
            raise BadRequestError("Record action failed")

        logger.info(f"Recorded action {action} for event {event_id}, faq {faq_id}")

        if action != ACTION_VIEWED:
            return Recorded(action)

        return await self._apply_view(event_id, faq_id)

    async def _apply_view(self, event_id: str, faq_id: str) -> LogOutcome:
        """Refresh the event's read_count and bump the candidate's hit counter."""
        try:
            async with self.db.begin_nested():
                viewed = await self.db.scalar(
                    select(func.count(func.distinct(QueryActionRecord.faq_id))).where(
                        QueryActionRecord.event_id == event_id,
                        QueryActionRecord.action == ACTION_VIEWED,
                    )
                ) or 0

                await self.db.execute(
                    update(QueryEvent)
                    .where(QueryEvent.id == event_id)
                    .values(read_count=viewed)
                )
                await self._bump_hit(faq_id)
        except Exception as e:
            logger.warning(f"Failed to update view counters for event {event_id} (action kept): {e}")
            return Absorbed("view_counters", str(e))

        logger.info(f"Updated read count for event {event_id}: {viewed} viewed")
        return Recorded(viewed)

    async def _bump_hit(self, faq_id: str) -> None:
        await self.db.execute(
            update(Faq)
            .where(Faq.id == faq_id)
            .values(hit_count=Faq.hit_count + 1, last_hit_at=datetime.now(timezone.utc))
        )

    async def record_browse(
        self,
        chatbot_id: str,
        faq_id: str,
        session: SessionRef
    ) -> LogOutcome:
        """Log a FAQ opened directly (e.g. from the knowledge base outline).

        A browse is logged as a one-result query that was fully read. Raises
        NotFoundError when the FAQ does not belong to the chatbot; everything
        after that is best-effort.
        """
        result = await self.db.execute(
            select(Faq.id, Faq.question).where(
                Faq.id == faq_id,
                Faq.chatbot_id == chatbot_id,
            )
        )
        faq = result.first()

        if faq is None:
            logger.warning(f"Browse of unknown FAQ {faq_id} for chatbot {chatbot_id}")
            raise NotFoundError(f"FAQ not found: {faq_id}")

        if not isinstance(session, KnownSession):
            logger.info(f"No session for browse of FAQ {faq_id}, not logged")
            return Skipped("anonymous session")

        event_id = new_event_id()
        try:
            async with self.db.begin_nested():
                self.db.add(QueryEvent(
                    id=event_id,
                    chatbot_id=chatbot_id,
                    session_id=session.session_id,
                    query_text=faq.question,
                    result_count=1,
                    read_count=1,
                ))
                await self.db.flush()
                self.db.add(QueryActionRecord(
                    event_id=event_id,
                    faq_id=faq_id,
                    action=ACTION_VIEWED,
                ))
                await self.db.flush()
                await self._bump_hit(faq_id)
                await session_service.increment_query_count(self.db, session.session_id)
        except Exception as e:
            logger.warning(f"Failed to log browse of FAQ {faq_id} (ignored): {e}")
            return Absorbed("browse_log", str(e))

        logger.info(f"Logged browse event {event_id} for FAQ {faq_id} (session {session.session_id})")
        return Recorded(event_id)
