from fastapi import APIRouter, Depends, Request, status
from typing import List
import logging

from bloglab.api.deps import get_services
from bloglab.schemas import Comment, CommentCreate, CommentNode
from bloglab.services import Services
from bloglab.utils.rate_limit import limit_writes

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post(
    "/posts/{post_id}/comments",
    response_model=Comment,
    status_code=status.HTTP_201_CREATED
)
@limit_writes
async def create_comment(
    request: Request,
    post_id: int,
    comment_data: CommentCreate,
    services: Services = Depends(get_services)
):
    """Comment on a post, or reply to a top-level comment"""
    return await services.comments.add_comment(
        post_id=post_id,
        user_id=comment_data.user_id,
        content=comment_data.content,
        parent_comment_id=comment_data.parent_comment_id
    )

@router.get("/posts/{post_id}/comments", response_model=List[Comment])
async def get_post_comments(post_id: int, services: Services = Depends(get_services)):
    """Visible comments, top-level first, then replies"""
    return await services.comments.list_comments(post_id)

@router.get("/posts/{post_id}/thread", response_model=List[CommentNode])
async def get_comment_thread(post_id: int, services: Services = Depends(get_services)):
    """Top-level comments with their replies nested"""
    return await services.comments.comment_thread(post_id)

@router.get("/{comment_id}", response_model=Comment)
async def get_comment(comment_id: int, services: Services = Depends(get_services)):
    return await services.comments.get_comment(comment_id)

@router.delete("/{comment_id}")
@limit_writes
async def delete_comment(request: Request, comment_id: int, services: Services = Depends(get_services)):
    """Soft-delete a comment; replies stay visible"""
    deleted = await services.comments.soft_delete_comment(comment_id)
    return {"comment_id": comment_id, "deleted": deleted}
