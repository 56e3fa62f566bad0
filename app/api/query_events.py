"""Query event analytics API routes for operators."""

from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import PipelineError
from app.core.security import get_current_tenant_id
from app.schemas.analytics import (
    IgnoreQueryRequest,
    IgnoreQueryResponse,
    OverviewStats,
    QueryActionResponse,
    QueryEventDetail,
    QueryEventList,
    QueryStats,
    ZeroResultQueryList,
)
from app.services.analytics_service import analytics_service

router = APIRouter(prefix="/query-events", tags=["Query Events"])


def _http_error(error: PipelineError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)


@router.get("", response_model=QueryEventList)
async def list_events(
    chatbot_id: str,
    session_id: Optional[str] = None,
    ignored: Optional[bool] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_current_tenant_id)
):
    """List a chatbot's query events, newest first."""
    try:
        await analytics_service.get_owned_chatbot(db, chatbot_id, tenant_id)
    except PipelineError as e:
        raise _http_error(e)

    events, total = await analytics_service.list_events(
        db,
        chatbot_id,
        session_id=session_id,
        ignored=ignored,
        start=start,
        end=end,
        limit=limit,
        offset=offset
    )
    return QueryEventList(events=events, total=total, limit=limit, offset=offset)


@router.get("/stats", response_model=QueryStats)
async def get_stats(
    chatbot_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_current_tenant_id)
):
    """Get query counts and averages for a chatbot."""
    try:
        await analytics_service.get_owned_chatbot(db, chatbot_id, tenant_id)
    except PipelineError as e:
        raise _http_error(e)

    return await analytics_service.get_stats(db, chatbot_id, start=start, end=end)


@router.get("/overview", response_model=OverviewStats)
async def get_overview(
    chatbot_id: str,
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_current_tenant_id)
):
    """Get the dashboard overview for a chatbot."""
    try:
        await analytics_service.get_owned_chatbot(db, chatbot_id, tenant_id)
        return await analytics_service.get_overview(db, chatbot_id, days)
    except PipelineError as e:
        raise _http_error(e)


@router.get("/zero-results", response_model=ZeroResultQueryList)
async def get_zero_result_queries(
    chatbot_id: str,
    days: int = Query(30, ge=1, le=365),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_current_tenant_id)
):
    """Get frequent questions the knowledge base could not answer."""
    try:
        await analytics_service.get_owned_chatbot(db, chatbot_id, tenant_id)
        return await analytics_service.get_zero_result_queries(db, chatbot_id, days, limit)
    except PipelineError as e:
        raise _http_error(e)


@router.post("/ignore", response_model=IgnoreQueryResponse)
async def ignore_query(
    request: IgnoreQueryRequest,
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_current_tenant_id)
):
    """Mark (or unmark) every event with this exact question as ignored."""
    try:
        await analytics_service.get_owned_chatbot(db, request.chatbot_id, tenant_id)
    except PipelineError as e:
        raise _http_error(e)

    affected = await analytics_service.ignore_query(
        db,
        request.chatbot_id,
        request.query_text,
        request.ignored
    )
    return IgnoreQueryResponse(affected_count=affected)


@router.get("/{event_id}", response_model=QueryEventDetail)
async def get_event(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_current_tenant_id)
):
    """Get a query event with its actions."""
    try:
        await analytics_service.ensure_event_owner(db, event_id, tenant_id)
        return await analytics_service.get_event(db, event_id)
    except PipelineError as e:
        raise _http_error(e)


@router.get("/{event_id}/actions", response_model=List[QueryActionResponse])
async def list_actions(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_current_tenant_id)
):
    """List the actions recorded for a query event."""
    try:
        await analytics_service.ensure_event_owner(db, event_id, tenant_id)
    except PipelineError as e:
        raise _http_error(e)

    return await analytics_service.list_actions(db, event_id)


@router.delete("/{event_id}")
async def delete_event(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_current_tenant_id)
):
    """Delete a query event and its action records."""
    try:
        await analytics_service.ensure_event_owner(db, event_id, tenant_id)
        deleted_actions = await analytics_service.delete_event(db, event_id)
    except PipelineError as e:
        raise _http_error(e)

    return {"message": "Query event deleted", "deleted_actions": deleted_actions}
