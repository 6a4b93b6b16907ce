"""
Entity shapes shared by every store adapter
"""
from bloglab.schemas.common import Payload, parse_payload
from bloglab.schemas.user_schema import User, UserCreate, UserUpdate, UserPublic, UserActivity
from bloglab.schemas.post_schema import Post, PostCreate, PostUpdate, PostDetails, UserStats
from bloglab.schemas.like_schema import Like, LikeCreate, LikeResult
from bloglab.schemas.comment_schema import Comment, CommentCreate, CommentNode
from bloglab.schemas.ranking_schema import RankedPost

__all__ = [
    'Payload',
    'parse_payload',
    'User',
    'UserCreate',
    'UserUpdate',
    'UserPublic',
    'UserActivity',
    'Post',
    'PostCreate',
    'PostUpdate',
    'PostDetails',
    'UserStats',
    'Like',
    'LikeCreate',
    'LikeResult',
    'Comment',
    'CommentCreate',
    'CommentNode',
    'RankedPost',
]
