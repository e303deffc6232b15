"""
Credit balance endpoint.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.dependencies import get_current_user
from app.models.user import User


router = APIRouter(tags=['credits'])


class CreditsResponse(BaseModel):
    credits: int


@router.get('/credits', response_model=CreditsResponse)
async def get_credits(user: User = Depends(get_current_user)) -> CreditsResponse:
    """Current credit balance of the caller."""
    return CreditsResponse(credits=user.credits)
