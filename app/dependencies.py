"""
FastAPI dependencies resolving services from the application container.
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.container import Container
from app.database import get_db
from app.models.user import User
from app.services.generation import GenerationService


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_generation_service(container: Container = Depends(get_container)) -> GenerationService:
    return container.generation


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the requesting user from the X-User-Id header.

    Raises:
        401: header missing or user unknown
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail='Unauthorized')
    user = await db.get(User, x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail='Unauthorized')
    return user
