"""
FastAPI application factory.

This file:
1. Creates the FastAPI app
2. Runs startup logic (create DB tables, connect to Redis, build the job store)
3. Registers all routers (courses, queue, health)
4. Runs shutdown logic (drain embedded workers, close connections)

With RUN_WORKERS_IN_API=true the lifespan also starts a WorkerPool and a
Housekeeper in this process, which is handy for local development. In
production run `python -m worker.main` separately.

To run:  uvicorn api.main:app --host 0.0.0.0 --port 8000 --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from redis import Redis
from starlette.concurrency import run_in_threadpool

from config.settings import settings
from jobstore.store import RedisJobStore
from models.base import async_engine, Base, SyncSessionLocal
from models import course, user  # noqa: F401  (register tables on Base.metadata)
from api.routers import courses, queue, health

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Runs on startup (before yield) and shutdown (after yield).

    Startup:
    - Creates all DB tables if they don't exist (safe to run multiple times)
    - Connects to Redis and builds the enrollment job store
    - Optionally starts embedded workers

    Shutdown:
    - Stops embedded workers, letting in-flight jobs finish
    - Closes the Redis connection
    - Disposes the DB engine (closes connection pool)
    """
    # ── Startup ─────────────────────────────────────────────────
    logger.info("Creating database tables...")
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app.state.redis = Redis.from_url(settings.redis_url, decode_responses=True)
    app.state.job_store = RedisJobStore(app.state.redis)

    embedded = []
    if settings.RUN_WORKERS_IN_API:
        from worker.housekeeping import Housekeeper
        from worker.pool import WorkerPool

        embedded = [Housekeeper(app.state.job_store), WorkerPool(app.state.job_store, SyncSessionLocal)]
        for component in embedded:
            component.start()

    logger.info(f"API ready — enrollment queue: {settings.QUEUE_NAME}")

    yield  # app is running and serving requests between startup and shutdown

    # ── Shutdown ────────────────────────────────────────────────
    for component in embedded:
        await run_in_threadpool(component.stop)
    app.state.redis.close()
    await async_engine.dispose()
    logger.info("API shut down")


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    app = FastAPI(
        title="E-Learning Enrollment Service",
        description="Queued course enrollment with capacity-bounded, at-most-once seat allocation",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Register routers
    app.include_router(health.router)
    app.include_router(courses.router)
    app.include_router(queue.router)

    return app


# This is what uvicorn imports: `uvicorn api.main:app`
app = create_app()
