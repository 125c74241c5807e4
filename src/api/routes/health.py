from fastapi import APIRouter
from sqlalchemy import text

from src.config import settings
from src.infrastructure.database.connection import AsyncSessionLocal

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict:  # type: ignore[type-arg]
    """Liveness + dependency health check."""
    db_status = "connected"
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        db_status = f"error: {exc}"

    storage_status = (
        "configured"
        if settings.storage_url and settings.storage_service_key
        else "error: missing storage URL or service key"
    )

    overall = "healthy" if db_status == "connected" and storage_status == "configured" else "degraded"

    return {
        "status": overall,
        "database": db_status,
        "storage": storage_status,
        "events": "rabbitmq" if settings.publish_events else "disabled",
    }
