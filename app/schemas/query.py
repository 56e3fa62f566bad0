"""Query schemas for request/response validation."""

from pydantic import BaseModel, Field
from typing import Optional, List, Literal

ActionKind = Literal["viewed", "not-viewed", "like", "dislike"]


class ChatQueryRequest(BaseModel):
    """Schema for a chatbot question."""
    query: str = Field(..., min_length=1, max_length=2000)
    chatbot_id: str = Field(..., min_length=1)
    # 'preview' skips the active-state check for design/authoring tools
    mode: Literal["preview", "production"] = "production"


class QABlock(BaseModel):
    """Schema for one answer candidate shown to the user."""
    faq_id: str
    question: str
    answer: str
    layout: Optional[str] = None
    images: Optional[str] = None


class ChatQueryResponse(BaseModel):
    """Schema for the answer to a chatbot question."""
    intro: Optional[str] = None
    candidates: List[QABlock] = []
    # Present only when the query was logged against a session
    event_id: Optional[str] = None


class SelectionDecision(BaseModel):
    """Whether the selector wants a candidate shown."""
    faq_id: str
    include: bool = True
    question: Optional[str] = None


class AnswerSelection(BaseModel):
    """Structured decision returned by the answer selector."""
    intro: Optional[str] = None
    decisions: List[SelectionDecision] = []


class FaqActionRequest(BaseModel):
    """Schema for recording a user action on a candidate."""
    event_id: str = Field(..., min_length=1)
    faq_id: str = Field(..., min_length=1)
    action: ActionKind


class FaqActionResponse(BaseModel):
    success: bool = True
    message: str = "Action recorded"


class FaqBrowseRequest(BaseModel):
    """Schema for recording a direct FAQ open outside a result list."""
    chatbot_id: str = Field(..., min_length=1)
    faq_id: str = Field(..., min_length=1)


class FaqBrowseResponse(BaseModel):
    success: bool = True
    message: str = "FAQ browse recorded"
    event_id: Optional[str] = None
