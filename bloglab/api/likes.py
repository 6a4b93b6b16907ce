from fastapi import APIRouter, Depends, Query, Request, status
from typing import List
import logging

from bloglab.api.deps import get_services
from bloglab.schemas import Like, LikeCreate, LikeResult
from bloglab.services import Services
from bloglab.utils.rate_limit import limit_writes

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post(
    "/posts/{post_id}/like",
    response_model=LikeResult,
    status_code=status.HTTP_201_CREATED
)
@limit_writes
async def like_post(
    request: Request,
    post_id: int,
    like_data: LikeCreate,
    services: Services = Depends(get_services)
):
    """Like a post. Liking twice is not an error; the second call reports already_liked."""
    liked = await services.likes.add_like(post_id, like_data.user_id)
    post = await services.posts.get_post(post_id)
    return LikeResult(
        post_id=post_id,
        user_id=like_data.user_id,
        liked=True,
        already_liked=not liked,
        like_count=post.like_count
    )

@router.get("/posts/{post_id}/like", response_model=LikeResult)
async def check_like(post_id: int, user_id: int = Query(...), services: Services = Depends(get_services)):
    """Check whether a user has liked a post"""
    post = await services.posts.get_post(post_id)
    liked = await services.likes.has_liked(post_id, user_id)
    return LikeResult(
        post_id=post_id,
        user_id=user_id,
        liked=liked,
        already_liked=liked,
        like_count=post.like_count
    )

@router.get("/posts/{post_id}", response_model=List[Like])
async def get_post_likes(post_id: int, services: Services = Depends(get_services)):
    """Like records of a post, oldest first"""
    return await services.likes.likes_for_post(post_id)
