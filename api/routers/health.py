"""
Health check endpoint.

Checks both the database and the Redis broker behind the enrollment queue.
Load balancers and container orchestrators use it to decide whether the
service is ready to receive traffic.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from starlette.concurrency import run_in_threadpool

from api.dependencies import get_db, get_job_store
from jobstore.store import RedisJobStore

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    store: RedisJobStore = Depends(get_job_store),
) -> dict:
    """Check that the database and Redis are reachable."""
    await db.execute(text("SELECT 1"))
    await run_in_threadpool(store.ping)
    return {"status": "healthy", "database": "ok", "redis": "ok"}
