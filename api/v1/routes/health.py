from fastapi import APIRouter
from sqlalchemy import text

from common.db.scoped import get_session
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/")
async def health_check():
    # No logging - k8s health checks hit this every 5-10s
    return {"status": "healthy", "service": "hris-billing"}


@router.get("/db")
async def db_check():
    try:
        async with get_session(readonly=True) as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "database": "disconnected"}
