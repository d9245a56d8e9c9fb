"""
FastAPI dependency injection.

How this works:
- An endpoint declares `db: AsyncSession = Depends(get_db)`
- FastAPI calls get_db() before your endpoint runs, creating a DB session
- Your endpoint receives the session and uses it
- After the endpoint returns (or raises), the session is automatically closed

The caller's identity arrives in the X-User-Id header, set by the auth
gateway in front of this service after it has verified the token.
get_current_user() only resolves that id to a User row.
"""

import uuid
from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment.queries import user_by_id
from jobstore.store import RedisJobStore
from models.base import AsyncSessionLocal
from models.enums import UserRole
from models.user import User
from services.queue_status import QueueStatusService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yields an async database session, auto-closes when the request ends."""
    async with AsyncSessionLocal() as session:
        yield session


async def get_job_store(request: Request) -> RedisJobStore:
    """Returns the job store created on the app during startup."""
    return request.app.state.job_store


async def get_queue_status(store: RedisJobStore = Depends(get_job_store)) -> QueueStatusService:
    return QueueStatusService(store)


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Authentication required")

    user = (await db.execute(user_by_id(user_id))).scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user


def require_roles(*roles: UserRole):
    """Dependency factory: 403 unless the caller has one of `roles`."""
    allowed = {role.value for role in roles}

    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(
                status_code=403,
                detail=f"Insufficient permissions: requires one of {sorted(allowed)}",
            )
        return user

    return checker
