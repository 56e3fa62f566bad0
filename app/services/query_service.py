"""Query orchestration: turn a user question into a ranked set of FAQ answers."""

import time
from dataclasses import dataclass
from typing import List, Optional, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import logging

from app.core.config import settings
from app.core.exceptions import BadRequestError, InvalidStateError, NotFoundError, ServiceUnavailableError
from app.core.outcome import LogOutcome, recorded_value
from app.core.session_ref import SessionRef, ANONYMOUS
from app.models.chatbot import Chatbot, Faq
from app.schemas.query import AnswerSelection, ChatQueryResponse, QABlock
from app.services.embedding_service import get_embedding_service
from app.services.engagement_service import EngagementService
from app.services.llm_service import llm_service
from app.services.quota_service import quota_service
from app.services.search_service import search_service

logger = logging.getLogger(__name__)

# Hybrid search policy
TOP_K = 5
BM25_WEIGHT = 0.3
KNN_WEIGHT = 0.7
SIM_THRESHOLD = 0.45
RANK_CONSTANT = 60

# Substituted when the embedding call fails
FALLBACK_VECTOR_VALUE = 0.001

DEFAULT_LAYOUT = "text"


def fallback_vector(dimension: Optional[int] = None) -> List[float]:
    return [FALLBACK_VECTOR_VALUE] * (dimension or settings.EMBEDDING_DIMENSION)


@dataclass
class AnswerResult:
    """Answer payload plus the outcome of the best-effort logging step."""
    response: ChatQueryResponse
    logging: LogOutcome


class QueryService:
    """Service for answering chatbot questions."""

    def __init__(
        self,
        db: AsyncSession,
        embedder=None,
        searcher=None,
        selector=None,
        quota=None,
    ):
        self.db = db
        self.embedder = embedder or get_embedding_service()
        self.searcher = searcher or search_service
        self.selector = selector or llm_service
        self.quota = quota or quota_service

    async def answer(
        self,
        query: str,
        chatbot_id: str,
        session: SessionRef = ANONYMOUS,
        mode: str = "production"
    ) -> AnswerResult:
        """Answer a question with the chatbot's FAQs.

        A blank question is rejected with BadRequestError before any lookup.
        Embedding and search failures degrade ranking but still produce an
        answer; a selector failure raises ServiceUnavailableError.
        """
        query = query.strip()
        if not query:
            raise BadRequestError("Query text must not be empty")

        start_time = time.time()
        logger.info(f"Query for chatbot {chatbot_id}: {query!r}")

        # Step 0: validate chatbot, state and quota
        chatbot = await self.db.get(Chatbot, chatbot_id)
        if not chatbot:
            raise NotFoundError(f"Chatbot not found: {chatbot_id}")

        if not chatbot.is_active:
            if mode != "preview":
                logger.warning(f"Chatbot {chatbot_id} is not active (status: {chatbot.status})")
                raise InvalidStateError("Chatbot suspended")
            logger.info(f"Preview mode: serving inactive chatbot {chatbot_id} (status: {chatbot.status})")

        await self.quota.ensure_query_quota(self.db, chatbot_id)

        # Step 1: embed
        embed_start = time.time()
        try:
            vector = await self.embedder.generate_embedding(query)
            logger.info(f"Embedding generated ({len(vector)} dims) in {int((time.time() - embed_start) * 1000)}ms")
        except Exception as e:
            logger.error(f"Embedding failed, using fallback vector: {e}")
            vector = fallback_vector()

        # Step 2: hybrid search
        search_start = time.time()
        try:
            candidates = await self.searcher.hybrid_search(
                chatbot_id,
                query,
                vector,
                TOP_K,
                BM25_WEIGHT,
                KNN_WEIGHT,
                SIM_THRESHOLD,
                RANK_CONSTANT,
            )
            logger.info(f"Search found {len(candidates)} candidates in {int((time.time() - search_start) * 1000)}ms")
        except Exception as e:
            logger.error(f"Search failed, continuing without candidates: {e}")
            candidates = []

        # Step 3: select
        select_start = time.time()
        try:
            selection = await self.selector.select_answers(query, candidates)
            logger.info(f"Selection done in {int((time.time() - select_start) * 1000)}ms")
        except Exception as e:
            logger.error(f"Answer selection failed: {e}")
            raise ServiceUnavailableError(f"Answer service temporarily unavailable: {e}")

        # Step 4: materialize
        blocks = await self._materialize(chatbot_id, selection)

        # Step 5: log (best-effort)
        outcome = await EngagementService(self.db).log_query(
            chatbot_id=chatbot_id,
            session=session,
            query_text=query,
            result_count=len(blocks),
        )

        total_time = int((time.time() - start_time) * 1000)
        logger.info(f"Answered chatbot {chatbot_id} with {len(blocks)} candidates in {total_time}ms")

        return AnswerResult(
            response=ChatQueryResponse(
                intro=selection.intro or None,
                candidates=blocks,
                event_id=recorded_value(outcome),
            ),
            logging=outcome,
        )

    async def _materialize(
        self,
        chatbot_id: str,
        selection: AnswerSelection
    ) -> List[QABlock]:
        """Resolve selected FAQ ids to full display records, keeping selector order."""
        faq_ids: List[str] = []
        for decision in selection.decisions:
            if decision.include and decision.faq_id not in faq_ids:
                faq_ids.append(decision.faq_id)

        if not faq_ids:
            return []

        result = await self.db.execute(
            select(Faq).where(Faq.id.in_(faq_ids), Faq.chatbot_id == chatbot_id)
        )
        faqs: Dict[str, Faq] = {faq.id: faq for faq in result.scalars().all()}

        blocks = []
        for faq_id in faq_ids:
            faq = faqs.get(faq_id)
            if faq is None:
                logger.warning(f"Selected FAQ {faq_id} not found for chatbot {chatbot_id}, skipping")
                continue
            if not faq.answer:
                logger.warning(f"Selected FAQ {faq_id} has no answer, skipping")
                continue
            blocks.append(QABlock(
                faq_id=faq.id,
                question=faq.question,
                answer=faq.answer.replace("\\n", "\n"),
                layout=faq.layout or DEFAULT_LAYOUT,
                images=faq.images,
            ))

        return blocks
