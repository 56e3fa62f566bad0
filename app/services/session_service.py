"""Widget session verification and counters."""

import logging
from datetime import datetime, timezone
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidSessionTokenError, SessionTokenExpiredError
from app.models.chatbot import WidgetSession

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SessionService:
    """Service for widget session tokens."""

    async def verify_token(
        self,
        db: AsyncSession,
        token: str,
        chatbot_id: str
    ) -> WidgetSession:
        """Resolve a session token for a chatbot.

        Raises SessionTokenExpiredError for an expired session and
        InvalidSessionTokenError for an unknown token or a chatbot mismatch.
        """
        result = await db.execute(
            select(WidgetSession).where(WidgetSession.token == token)
        )
        session = result.scalar_one_or_none()

        if session is None:
            raise InvalidSessionTokenError("SESSION_NOT_FOUND")

        if _as_utc(session.expires_at) < datetime.now(timezone.utc):
            raise SessionTokenExpiredError()

        if session.chatbot_id != chatbot_id:
            raise InvalidSessionTokenError("CHATBOT_MISMATCH")

        return session

    async def increment_query_count(
        self,
        db: AsyncSession,
        session_id: str
    ) -> None:
        """Increment the session's cumulative query count."""
        await db.execute(
            update(WidgetSession)
            .where(WidgetSession.id == session_id)
            .values(query_count=WidgetSession.query_count + 1)
        )


# Singleton instance
session_service = SessionService()
