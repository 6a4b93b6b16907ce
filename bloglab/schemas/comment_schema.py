from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime

from bloglab.schemas.common import Payload, NonEmptyStr

DELETED_PLACEHOLDER = "[deleted]"

class CommentCreate(Payload):
    user_id: int
    content: NonEmptyStr = Field(..., max_length=2000)
    parent_comment_id: Optional[int] = None

class Comment(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    user_id: int
    post_id: int
    content: str
    parent_comment_id: Optional[int] = None
    is_deleted: bool = False
    created_at: datetime
    updated_at: datetime

    @property
    def is_top_level(self) -> bool:
        return self.parent_comment_id is None

class CommentNode(BaseModel):
    """Rendered comment: deleted content never leaves the service"""
    id: int
    user_id: int
    post_id: int
    content: str
    parent_comment_id: Optional[int] = None
    is_deleted: bool = False
    created_at: datetime
    replies: List['CommentNode'] = []

# For nested models
CommentNode.model_rebuild()
