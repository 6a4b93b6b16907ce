from fastapi import APIRouter, Depends, Query, Request, status
from typing import List, Optional
import logging

from bloglab.api.deps import get_services
from bloglab.schemas import Post, PostCreate, PostDetails, PostUpdate
from bloglab.services import Services
from bloglab.utils.rate_limit import limit_writes

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post(
    "/",
    response_model=Post,
    status_code=status.HTTP_201_CREATED
)
@limit_writes
async def create_post(
    request: Request,
    post_data: PostCreate,
    user_id: int = Query(...),
    services: Services = Depends(get_services)
):
    """Create a new post"""
    return await services.posts.create_post(user_id, post_data)

@router.get("/", response_model=List[Post])
async def list_posts(
    limit: Optional[int] = Query(None, ge=1, le=100),
    services: Services = Depends(get_services)
):
    """Published posts, newest first"""
    return await services.posts.list_published(limit=limit)

@router.get("/search", response_model=List[Post])
async def search_posts(
    q: str = Query(..., min_length=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    services: Services = Depends(get_services)
):
    """Published posts whose title contains the query"""
    return await services.posts.search_posts(q, limit=limit)

@router.get("/most-liked", response_model=List[Post])
async def most_liked_posts(
    limit: int = Query(5, ge=1, le=100),
    services: Services = Depends(get_services)
):
    """Published posts with the most likes"""
    return await services.posts.most_liked(limit=limit)

@router.get("/{post_id}", response_model=PostDetails)
async def get_post(
    post_id: int,
    count_view: bool = Query(True),
    services: Services = Depends(get_services)
):
    """Get a post with its author and engagement score"""
    if count_view:
        return await services.posts.record_view(post_id)
    return await services.posts.get_post_details(post_id)

@router.patch("/{post_id}", response_model=Post)
@limit_writes
async def update_post(
    request: Request,
    post_id: int,
    post_update: PostUpdate,
    services: Services = Depends(get_services)
):
    """Update a post"""
    return await services.posts.update_post(post_id, post_update)

@router.post("/{post_id}/publish", response_model=Post)
@limit_writes
async def publish_post(request: Request, post_id: int, services: Services = Depends(get_services)):
    return await services.posts.set_published(post_id, True)

@router.post("/{post_id}/unpublish", response_model=Post)
@limit_writes
async def unpublish_post(request: Request, post_id: int, services: Services = Depends(get_services)):
    return await services.posts.set_published(post_id, False)

@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
@limit_writes
async def delete_post(request: Request, post_id: int, services: Services = Depends(get_services)):
    """Delete a post with its likes and comments"""
    await services.posts.delete_post(post_id)
