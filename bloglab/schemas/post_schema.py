from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime

from bloglab.schemas.common import Payload, NonEmptyStr, reject_null

class PostCreate(Payload):
    title: NonEmptyStr = Field(..., max_length=200)
    body: NonEmptyStr
    slug: Optional[NonEmptyStr] = Field(None, max_length=250)
    image_url: Optional[str] = Field(None, max_length=255)
    is_published: bool = True

class PostUpdate(Payload):
    title: Optional[NonEmptyStr] = Field(None, max_length=200)
    body: Optional[NonEmptyStr] = None
    image_url: Optional[str] = Field(None, max_length=255)
    is_published: Optional[bool] = None

    @field_validator("title", "body", "is_published")
    @classmethod
    def not_null(cls, value):
        return reject_null(value)

class Post(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    user_id: int
    title: str
    body: str
    image_url: Optional[str] = None
    slug: str
    is_published: bool = True
    created_at: datetime
    updated_at: datetime
    like_count: int = 0
    comment_count: int = 0
    view_count: int = 0
    # Only the document adapter stores these; copied once at creation
    author_username: Optional[str] = None
    author_display_name: Optional[str] = None

class PostDetails(Post):
    """Post joined with author data and its engagement score"""
    engagement_score: float = 0.0

class UserStats(BaseModel):
    """Engagement an author has received across their posts"""
    user_id: int
    total_posts: int = 0
    total_likes: int = 0
    total_comments: int = 0
    total_views: int = 0
