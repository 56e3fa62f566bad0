"""Health check API routes."""

from fastapi import APIRouter
from app.services.search_service import search_service
from app.core.config import settings

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """Basic health check."""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION
    }


@router.get("/detailed")
async def detailed_health_check():
    """Detailed health check for all services."""
    from sqlalchemy import text
    from app.core.database import async_session_maker

    health = {
        "status": "healthy",
        "services": {}
    }

    # Check PostgreSQL
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
        health["services"]["postgresql"] = {"status": "healthy"}
    except Exception as e:
        health["services"]["postgresql"] = {"status": "unhealthy", "error": str(e)}
        health["status"] = "degraded"

    # Check Elasticsearch
    if await search_service.health_check():
        health["services"]["elasticsearch"] = {"status": "healthy"}
    else:
        health["services"]["elasticsearch"] = {"status": "unhealthy"}
        health["status"] = "degraded"

    # Check embedding and LLM configuration
    for name, api_key, provider in (
        ("embedding", settings.EMBEDDING_API_KEY, settings.EMBEDDING_PROVIDER),
        ("llm", settings.LLM_API_KEY, settings.LLM_PROVIDER),
    ):
        if api_key:
            health["services"][name] = {"status": "configured", "provider": provider}
        else:
            health["services"][name] = {"status": "not_configured"}

    return health
