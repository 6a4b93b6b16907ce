from fastapi import APIRouter, Depends, Query, Request, status
from typing import List
import logging

from bloglab.api.deps import get_services
from bloglab.schemas import Post, UserActivity, UserCreate, UserPublic, UserStats, UserUpdate
from bloglab.services import Services
from bloglab.utils.rate_limit import limit_writes

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post(
    "/",
    response_model=UserPublic,
    status_code=status.HTTP_201_CREATED
)
@limit_writes
async def register_user(
    request: Request,
    user_data: UserCreate,
    services: Services = Depends(get_services)
):
    """Register a new user"""
    user = await services.users.register_user(user_data)
    return UserPublic.model_validate(user)

@router.get("/{user_id}", response_model=UserPublic)
async def get_user(user_id: int, services: Services = Depends(get_services)):
    """Get a user by ID"""
    return UserPublic.model_validate(await services.users.get_user(user_id))

@router.patch("/{user_id}", response_model=UserPublic)
@limit_writes
async def update_profile(
    request: Request,
    user_id: int,
    user_update: UserUpdate,
    services: Services = Depends(get_services)
):
    """Update profile fields"""
    user = await services.users.update_profile(user_id, user_update)
    return UserPublic.model_validate(user)

@router.post("/{user_id}/deactivate", response_model=UserPublic)
@limit_writes
async def deactivate_user(request: Request, user_id: int, services: Services = Depends(get_services)):
    """Deactivate a user; their content stays"""
    return UserPublic.model_validate(await services.users.deactivate_user(user_id))

@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
@limit_writes
async def delete_user(request: Request, user_id: int, services: Services = Depends(get_services)):
    """Delete a user together with their posts, likes and comments"""
    await services.users.delete_user(user_id)

@router.get("/{user_id}/posts", response_model=List[Post])
async def get_user_posts(
    user_id: int,
    include_unpublished: bool = Query(True),
    services: Services = Depends(get_services)
):
    """Posts by a user, newest first"""
    return await services.posts.posts_by_user(user_id, include_unpublished=include_unpublished)

@router.get("/{user_id}/stats", response_model=UserStats)
async def get_user_stats(user_id: int, services: Services = Depends(get_services)):
    """Engagement received across the user's posts"""
    return await services.posts.user_stats(user_id)

@router.get("/{user_id}/activity", response_model=UserActivity)
async def get_user_activity(user_id: int, services: Services = Depends(get_services)):
    """Posts created, likes given and comments made"""
    return await services.users.activity(user_id)
