"""Monthly query quota enforcement per tenant plan."""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import NotFoundError, QuotaExceededError
from app.models.chatbot import Chatbot
from app.models.query import QueryEvent
from app.models.tenant import Tenant

logger = logging.getLogger(__name__)


def start_of_month(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class QuotaService:
    """Service checking a tenant's monthly query allowance."""

    async def get_monthly_query_count(
        self,
        db: AsyncSession,
        tenant_id: str
    ) -> int:
        """Count the tenant's non-ignored query events since the start of the month."""
        result = await db.execute(
            select(func.count(QueryEvent.id))
            .join(Chatbot, QueryEvent.chatbot_id == Chatbot.id)
            .where(
                Chatbot.tenant_id == tenant_id,
                QueryEvent.created_at >= start_of_month(),
                QueryEvent.ignored == False,
            )
        )
        return result.scalar() or 0

    async def check_query_quota(
        self,
        db: AsyncSession,
        chatbot_id: str
    ) -> Dict[str, Any]:
        """Check whether the chatbot's tenant may run another query."""
        start = time.time()

        result = await db.execute(
            select(Chatbot)
            .where(Chatbot.id == chatbot_id)
            .options(selectinload(Chatbot.tenant).selectinload(Tenant.plan))
        )
        chatbot = result.scalar_one_or_none()

        if not chatbot:
            raise NotFoundError(f"Chatbot not found: {chatbot_id}")

        limit = chatbot.tenant.plan.max_queries_per_month if chatbot.tenant and chatbot.tenant.plan else None

        # NULL limit means unlimited
        if limit is None:
            return {"allowed": True, "current": 0, "limit": None}

        current = await self.get_monthly_query_count(db, chatbot.tenant_id)
        duration = int((time.time() - start) * 1000)
        logger.info(f"Quota check for chatbot {chatbot_id}: {current}/{limit} in {duration}ms")

        if current >= limit:
            return {
                "allowed": False,
                "reason": "Monthly query limit reached, please upgrade your plan",
                "current": current,
                "limit": limit,
            }

        return {"allowed": True, "current": current, "limit": limit}

    async def ensure_query_quota(
        self,
        db: AsyncSession,
        chatbot_id: str
    ) -> None:
        """Raise QuotaExceededError when the tenant has used up its monthly queries."""
        check = await self.check_query_quota(db, chatbot_id)
        if not check["allowed"]:
            logger.warning(f"Query quota exceeded for chatbot {chatbot_id}: {check['current']}/{check['limit']}")
            raise QuotaExceededError(check["reason"])


# Singleton instance
quota_service = QuotaService()
