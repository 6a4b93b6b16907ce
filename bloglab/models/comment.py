from sqlalchemy import Column, Text, Integer, ForeignKey, Boolean, DateTime, Index
from sqlalchemy.orm import relationship
from bloglab.db.base import BaseModel, utcnow

class Comment(BaseModel):
    __tablename__ = "comments"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    parent_comment_id = Column(Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    post = relationship("Post", back_populates="comments")
    user = relationship("User", back_populates="comments")

    __table_args__ = (
        Index('idx_comments_user_id', 'user_id'),
        Index('idx_comments_post_id', 'post_id'),
        Index('idx_comments_parent_comment_id', 'parent_comment_id'),
    )
