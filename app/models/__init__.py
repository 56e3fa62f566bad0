"""Database models."""

from app.models.tenant import Plan, Tenant
from app.models.chatbot import Chatbot, Faq, WidgetSession
from app.models.query import QueryEvent, QueryActionRecord

__all__ = [
    "Plan",
    "Tenant",
    "Chatbot",
    "Faq",
    "WidgetSession",
    "QueryEvent",
    "QueryActionRecord",
]
