"""
Relational models for the blogging lab
"""
from bloglab.db.base import Base, BaseModel
from bloglab.models.user import User
from bloglab.models.post import Post
from bloglab.models.like import Like
from bloglab.models.comment import Comment

__all__ = [
    'Base',
    'BaseModel',
    'User',
    'Post',
    'Like',
    'Comment',
]
