"""Pydantic schemas for request/response validation."""

from app.schemas.query import (
    ChatQueryRequest,
    ChatQueryResponse,
    QABlock,
    AnswerSelection,
    SelectionDecision,
    FaqActionRequest,
    FaqActionResponse,
    FaqBrowseRequest,
    FaqBrowseResponse,
)
from app.schemas.analytics import (
    QueryStats,
    QueryEventResponse,
    QueryEventList,
    QueryEventDetail,
    QueryActionResponse,
    IgnoreQueryRequest,
    IgnoreQueryResponse,
    OverviewStats,
    ZeroResultQueryList,
)

__all__ = [
    # Query
    "ChatQueryRequest",
    "ChatQueryResponse",
    "QABlock",
    "AnswerSelection",
    "SelectionDecision",
    "FaqActionRequest",
    "FaqActionResponse",
    "FaqBrowseRequest",
    "FaqBrowseResponse",
    # Analytics
    "QueryStats",
    "QueryEventResponse",
    "QueryEventList",
    "QueryEventDetail",
    "QueryActionResponse",
    "IgnoreQueryRequest",
    "IgnoreQueryResponse",
    "OverviewStats",
    "ZeroResultQueryList",
]
