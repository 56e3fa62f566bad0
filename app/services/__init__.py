"""Services module."""

from app.services.query_service import QueryService
from app.services.engagement_service import EngagementService
from app.services.analytics_service import AnalyticsService, analytics_service
from app.services.llm_service import LLMService
from app.services.embedding_service import EmbeddingService, get_embedding_service
from app.services.search_service import SearchService, search_service

__all__ = [
    "QueryService",
    "EngagementService",
    "AnalyticsService",
    "analytics_service",
    "LLMService",
    "EmbeddingService",
    "get_embedding_service",
    "SearchService",
    "search_service"
]
