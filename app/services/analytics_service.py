"""Analytics over the engagement log."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any, Tuple
from sqlalchemy import select, func, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.models.chatbot import Chatbot, Faq
from app.models.query import ACTION_KINDS, ACTION_DISLIKE, QueryEvent, QueryActionRecord

logger = logging.getLogger(__name__)


def _window(query, start: Optional[datetime], end: Optional[datetime]):
    """Restrict a QueryEvent select to an inclusive creation-time window."""
    if start is not None:
        query = query.where(QueryEvent.created_at >= start)
    if end is not None:
        query = query.where(QueryEvent.created_at <= end)
    return query


def _rate(part: int, whole: int) -> float:
    if whole <= 0:
        return 0
    return round(part / whole * 100, 1)


class AnalyticsService:
    """Service for operator-facing query analytics."""

    async def get_chatbot(
        self,
        db: AsyncSession,
        chatbot_id: str
    ) -> Chatbot:
        chatbot = await db.get(Chatbot, chatbot_id)
        if not chatbot:
            raise NotFoundError(f"Chatbot not found: {chatbot_id}")
        return chatbot

    async def get_owned_chatbot(
        self,
        db: AsyncSession,
        chatbot_id: str,
        tenant_id: str
    ) -> Chatbot:
        """Get a chatbot, hiding chatbots of other tenants as not found."""
        chatbot = await self.get_chatbot(db, chatbot_id)
        if chatbot.tenant_id != tenant_id:
            logger.warning(f"Tenant {tenant_id} asked for chatbot {chatbot_id} of another tenant")
            raise NotFoundError(f"Chatbot not found: {chatbot_id}")
        return chatbot

    async def ensure_event_owner(
        self,
        db: AsyncSession,
        event_id: str,
        tenant_id: str
    ) -> None:
        owner = await db.scalar(
            select(Chatbot.tenant_id)
            .join(QueryEvent, QueryEvent.chatbot_id == Chatbot.id)
            .where(QueryEvent.id == event_id)
        )
        if owner is None or owner != tenant_id:
            raise NotFoundError(f"Query event not found: {event_id}")

    async def get_stats(
        self,
        db: AsyncSession,
        chatbot_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Count and average query events of a chatbot, optionally within a window.

        Averages over no events are 0.
        """
        base = _window(
            select(
                func.count(QueryEvent.id).label("total"),
                func.avg(QueryEvent.result_count).label("avg_result_count"),
                func.avg(QueryEvent.read_count).label("avg_read_count"),
            ).where(QueryEvent.chatbot_id == chatbot_id),
            start,
            end,
        )
        row = (await db.execute(base)).first()

        ignored_count = await db.scalar(
            _window(
                select(func.count(QueryEvent.id)).where(
                    QueryEvent.chatbot_id == chatbot_id,
                    QueryEvent.ignored == True,
                ),
                start,
                end,
            )
        )

        return {
            "total": row.total or 0,
            "avg_result_count": float(row.avg_result_count or 0),
            "avg_read_count": float(row.avg_read_count or 0),
            "ignored_count": ignored_count or 0,
        }

    async def list_events(
        self,
        db: AsyncSession,
        chatbot_id: str,
        session_id: Optional[str] = None,
        ignored: Optional[bool] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 20,
        offset: int = 0
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Get a page of query events, newest first, with their action counts."""
        filters = [QueryEvent.chatbot_id == chatbot_id]
        if session_id:
            filters.append(QueryEvent.session_id == session_id)
        if ignored is not None:
            filters.append(QueryEvent.ignored == ignored)

        total = await db.scalar(
            _window(select(func.count(QueryEvent.id)).where(*filters), start, end)
        ) or 0

        action_counts = (
            select(
                QueryActionRecord.event_id,
                func.count(QueryActionRecord.id).label("action_count"),
            )
            .group_by(QueryActionRecord.event_id)
            .subquery()
        )

        query = _window(
            select(QueryEvent, func.coalesce(action_counts.c.action_count, 0))
            .outerjoin(action_counts, action_counts.c.event_id == QueryEvent.id)
            .where(*filters),
            start,
            end,
        )
        query = query.order_by(QueryEvent.created_at.desc(), QueryEvent.id).offset(offset).limit(limit)

        result = await db.execute(query)
        events = [
            self._event_dict(event, action_count)
            for event, action_count in result.all()
        ]
        return events, total

    async def get_event(
        self,
        db: AsyncSession,
        event_id: str
    ) -> Dict[str, Any]:
        """Get one query event with its actions."""
        event = await db.get(QueryEvent, event_id)
        if not event:
            raise NotFoundError(f"Query event not found: {event_id}")

        actions = await self.list_actions(db, event_id)
        data = self._event_dict(event, len(actions))
        data["actions"] = actions
        return data

    async def list_actions(
        self,
        db: AsyncSession,
        event_id: str
    ) -> List[Dict[str, Any]]:
        """Get the action records of an event with their FAQ text, oldest first."""
        result = await db.execute(
            select(QueryActionRecord, Faq.question, Faq.answer)
            .join(Faq, Faq.id == QueryActionRecord.faq_id)
            .where(QueryActionRecord.event_id == event_id)
            .order_by(QueryActionRecord.created_at, QueryActionRecord.id)
        )
        return [
            {
                "event_id": record.event_id,
                "faq_id": record.faq_id,
                "action": record.action,
                "question": question,
                "answer": answer,
                "created_at": record.created_at,
                "updated_at": record.updated_at,
            }
            for record, question, answer in result.all()
        ]

    async def ignore_query(
        self,
        db: AsyncSession,
        chatbot_id: str,
        query_text: str,
        ignored: bool
    ) -> int:
        """Set the ignored flag on every event of the chatbot with exactly this text."""
        result = await db.execute(
            update(QueryEvent)
            .where(
                QueryEvent.chatbot_id == chatbot_id,
                QueryEvent.query_text == query_text,
            )
            .values(ignored=ignored)
        )
        logger.info(f"Set ignored={ignored} on {result.rowcount} events of chatbot {chatbot_id}")
        return result.rowcount

    async def delete_event(
        self,
        db: AsyncSession,
        event_id: str
    ) -> int:
        """Delete an event's action records, then the event itself.

        Returns the number of action records removed.
        """
        exists = await db.scalar(select(QueryEvent.id).where(QueryEvent.id == event_id))
        if exists is None:
            raise NotFoundError(f"Query event not found: {event_id}")

        actions = await db.execute(
            delete(QueryActionRecord).where(QueryActionRecord.event_id == event_id)
        )
        await db.execute(delete(QueryEvent).where(QueryEvent.id == event_id))
        logger.info(f"Deleted query event {event_id} and {actions.rowcount} action records")
        return actions.rowcount

    async def get_overview(
        self,
        db: AsyncSession,
        chatbot_id: str,
        days: int = 30
    ) -> Dict[str, Any]:
        """Get the dashboard overview for the last ``days`` days."""
        await self.get_chatbot(db, chatbot_id)
        since_date = datetime.now(timezone.utc) - timedelta(days=days)

        stats = await self.get_stats(db, chatbot_id, start=since_date)

        read_queries = await db.scalar(
            select(func.count(QueryEvent.id)).where(
                QueryEvent.chatbot_id == chatbot_id,
                QueryEvent.created_at >= since_date,
                QueryEvent.read_count > 0,
            )
        ) or 0

        # Feedback distribution
        feedback_rows = await db.execute(
            select(QueryActionRecord.action, func.count(QueryActionRecord.id))
            .join(QueryEvent, QueryEvent.id == QueryActionRecord.event_id)
            .where(
                QueryEvent.chatbot_id == chatbot_id,
                QueryEvent.created_at >= since_date,
            )
            .group_by(QueryActionRecord.action)
        )
        counts = {action: 0 for action in ACTION_KINDS}
        for action, count in feedback_rows.all():
            counts[action] = count

        # Most viewed FAQs
        top_rows = await db.execute(
            select(Faq.id, Faq.question, Faq.hit_count)
            .where(Faq.chatbot_id == chatbot_id)
            .order_by(Faq.hit_count.desc(), Faq.id)
            .limit(10)
        )

        # Most disliked FAQs
        dislike_count = func.count(QueryActionRecord.id).label("dislike_count")
        disliked_rows = await db.execute(
            select(Faq.id, Faq.question, dislike_count)
            .join(QueryActionRecord, QueryActionRecord.faq_id == Faq.id)
            .join(QueryEvent, QueryEvent.id == QueryActionRecord.event_id)
            .where(
                QueryEvent.chatbot_id == chatbot_id,
                QueryEvent.created_at >= since_date,
                QueryActionRecord.action == ACTION_DISLIKE,
            )
            .group_by(Faq.id, Faq.question)
            .order_by(dislike_count.desc(), Faq.id)
            .limit(10)
        )

        return {
            "period_days": days,
            "total": stats["total"],
            "ignored_count": stats["ignored_count"],
            "avg_result_count": round(stats["avg_result_count"], 1),
            "avg_read_count": round(stats["avg_read_count"], 1),
            "ignored_rate": _rate(stats["ignored_count"], stats["total"]),
            "conversion_rate": _rate(read_queries, stats["total"]),
            "feedback": {
                "viewed": counts["viewed"],
                "not_viewed": counts["not-viewed"],
                "like": counts["like"],
                "dislike": counts["dislike"],
            },
            "top_faqs": [
                {"id": faq_id, "question": question, "hit_count": hits or 0}
                for faq_id, question, hits in top_rows.all()
            ],
            "top_disliked_faqs": [
                {"id": faq_id, "question": question, "dislike_count": count}
                for faq_id, question, count in disliked_rows.all()
            ],
        }

    async def get_zero_result_queries(
        self,
        db: AsyncSession,
        chatbot_id: str,
        days: int = 30,
        limit: int = 20
    ) -> Dict[str, Any]:
        """Get the most frequent non-ignored questions that returned nothing."""
        await self.get_chatbot(db, chatbot_id)
        since_date = datetime.now(timezone.utc) - timedelta(days=days)

        count = func.count(QueryEvent.id).label("count")
        result = await db.execute(
            select(
                QueryEvent.query_text,
                count,
                func.max(QueryEvent.created_at).label("last_queried_at"),
            )
            .where(
                QueryEvent.chatbot_id == chatbot_id,
                QueryEvent.created_at >= since_date,
                QueryEvent.result_count == 0,
                QueryEvent.ignored == False,
            )
            .group_by(QueryEvent.query_text)
            .order_by(count.desc(), QueryEvent.query_text)
            .limit(limit)
        )

        queries = [
            {
                "query_text": row.query_text,
                "count": row.count,
                "last_queried_at": row.last_queried_at,
            }
            for row in result
        ]
        return {
            "queries": queries,
            "total": sum(q["count"] for q in queries),
            "period_days": days,
        }

    @staticmethod
    def _event_dict(event: QueryEvent, action_count: int) -> Dict[str, Any]:
        return {
            "id": event.id,
            "chatbot_id": event.chatbot_id,
            "session_id": event.session_id,
            "query_text": event.query_text,
            "result_count": event.result_count,
            "read_count": event.read_count,
            "ignored": event.ignored,
            "action_count": action_count or 0,
            "created_at": event.created_at,
        }


# Singleton instance
analytics_service = AnalyticsService()
