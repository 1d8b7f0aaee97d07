"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from datetime import datetime, timezone
import logging

from app.database import get_db
from app.dependencies.services import get_ai_client, get_document_store
from app.models.schemas import HealthCheckResponse
from app.services.ai_client import AIServiceClient
from app.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
    ai_client: AIServiceClient = Depends(get_ai_client),
):
    """
    Health check endpoint to verify system status.

    Returns:
        HealthCheckResponse with status of the database, document store and AI service
    """
    # Check database connection
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        db_status = "error"

    # Check document store
    store_status = "ok" if await store.check_health() else "error"

    # Check AI service
    ai_status = "ok" if await ai_client.check_health() else "error"

    # Overall status
    statuses = (db_status, store_status, ai_status)
    overall_status = "healthy" if all(s == "ok" for s in statuses) else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        document_store=store_status,
        ai_service=ai_status,
        timestamp=datetime.now(timezone.utc),
    )
