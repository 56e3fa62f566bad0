"""Analytics schemas for the operator dashboard."""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime


class QueryStats(BaseModel):
    """Rollup of query events for a chatbot and optional window."""
    total: int
    avg_result_count: float
    avg_read_count: float
    ignored_count: int


class QueryEventResponse(BaseModel):
    """Schema for a logged query event."""
    id: str
    chatbot_id: str
    session_id: Optional[str] = None
    query_text: str
    result_count: int
    read_count: int
    ignored: bool
    action_count: int = 0
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class QueryEventList(BaseModel):
    """Schema for a page of query events."""
    events: List[QueryEventResponse]
    total: int
    limit: int
    offset: int


class QueryActionResponse(BaseModel):
    """Schema for an action recorded on a candidate."""
    event_id: str
    faq_id: str
    action: str
    question: Optional[str] = None
    answer: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QueryEventDetail(QueryEventResponse):
    """Query event with its action records."""
    actions: List[QueryActionResponse] = []


class IgnoreQueryRequest(BaseModel):
    chatbot_id: str = Field(..., min_length=1)
    query_text: str = Field(..., min_length=1)
    ignored: bool = True


class IgnoreQueryResponse(BaseModel):
    affected_count: int


class FeedbackDistribution(BaseModel):
    viewed: int = 0
    not_viewed: int = 0
    like: int = 0
    dislike: int = 0


class FaqHit(BaseModel):
    id: str
    question: str
    hit_count: int


class FaqDislike(BaseModel):
    id: str
    question: str
    dislike_count: int


class OverviewStats(BaseModel):
    """Dashboard overview for a chatbot."""
    period_days: int
    total: int
    ignored_count: int
    avg_result_count: float
    avg_read_count: float
    ignored_rate: float
    conversion_rate: float
    feedback: FeedbackDistribution
    top_faqs: List[FaqHit]
    top_disliked_faqs: List[FaqDislike]


class ZeroResultQuery(BaseModel):
    query_text: str
    count: int
    last_queried_at: Optional[datetime] = None


class ZeroResultQueryList(BaseModel):
    queries: List[ZeroResultQuery]
    total: int
    period_days: int
