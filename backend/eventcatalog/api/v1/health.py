"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from eventcatalog.config import settings
from eventcatalog.dependencies import get_db
from eventcatalog.schemas import HealthCheckResponse

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """Return service health status.

    Checks:
    - Database connectivity
    - Extraction service credential

    Status is "ok" when both pass, otherwise "degraded".
    """
    services = {}

    # Check database connectivity
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    services["database"] = db_status

    extraction_status = "ok" if settings.is_extraction_configured else "error: FIRECRAWL_API_KEY not configured"
    services["extraction"] = extraction_status

    overall_status = "ok" if all(s == "ok" for s in services.values()) else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        extraction=extraction_status,
        services=services,
    )
