"""Widget query API routes."""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.database import get_db
from app.core.exceptions import (
    InvalidSessionTokenError,
    PipelineError,
    SessionTokenExpiredError,
)
from app.core.outcome import recorded_value
from app.core.security import get_session_token
from app.core.session_ref import ANONYMOUS, KnownSession, SessionRef
from app.schemas.query import (
    ChatQueryRequest,
    ChatQueryResponse,
    FaqActionRequest,
    FaqActionResponse,
    FaqBrowseRequest,
    FaqBrowseResponse,
)
from app.services.engagement_service import EngagementService
from app.services.query_service import QueryService
from app.services.quota_service import quota_service
from app.services.session_service import session_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/query", tags=["Query"])


def _http_error(error: PipelineError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)


@router.post("/chat", response_model=ChatQueryResponse)
async def chat(
    request: ChatQueryRequest,
    token: Optional[str] = Depends(get_session_token),
    db: AsyncSession = Depends(get_db)
):
    """
    Ask a chatbot a question.

    Returns the selected FAQ candidates. When the request carries a valid
    session token the query is logged and ``event_id`` identifies it for
    later feedback.
    """
    session: SessionRef = ANONYMOUS
    if token:
        try:
            widget_session = await session_service.verify_token(db, token, request.chatbot_id)
        except SessionTokenExpiredError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="TOKEN_EXPIRED"
            )
        except InvalidSessionTokenError as e:
            logger.warning(f"Rejected session token for chatbot {request.chatbot_id}: {e.message}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid session token"
            )
        session = KnownSession(widget_session.id)

    query_service = QueryService(db)
    try:
        result = await query_service.answer(
            query=request.query,
            chatbot_id=request.chatbot_id,
            session=session,
            mode=request.mode
        )
    except PipelineError as e:
        raise _http_error(e)

    return result.response


@router.post("/faq-action", response_model=FaqActionResponse)
async def faq_action(
    request: FaqActionRequest,
    db: AsyncSession = Depends(get_db)
):
    """Record what the user did with one candidate of a logged query."""
    try:
        await EngagementService(db).record_action(
            event_id=request.event_id,
            faq_id=request.faq_id,
            action=request.action
        )
    except PipelineError as e:
        raise _http_error(e)

    return FaqActionResponse()


@router.post("/faq-browse", response_model=FaqBrowseResponse)
async def faq_browse(
    request: FaqBrowseRequest,
    token: Optional[str] = Depends(get_session_token),
    db: AsyncSession = Depends(get_db)
):
    """Record a FAQ opened directly from the knowledge base."""
    session: SessionRef = ANONYMOUS
    if token:
        try:
            widget_session = await session_service.verify_token(db, token, request.chatbot_id)
            session = KnownSession(widget_session.id)
        except InvalidSessionTokenError as e:
            logger.info(f"Browse with unusable session token, treating as anonymous: {e.message}")

    try:
        await quota_service.ensure_query_quota(db, request.chatbot_id)
        outcome = await EngagementService(db).record_browse(
            chatbot_id=request.chatbot_id,
            faq_id=request.faq_id,
            session=session
        )
    except PipelineError as e:
        raise _http_error(e)

    return FaqBrowseResponse(event_id=recorded_value(outcome))
