from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from bloglab.db.base import BaseModel

class Like(BaseModel):
    __tablename__ = "likes"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)

    # Relationships
    user = relationship("User", back_populates="likes")
    post = relationship("Post", back_populates="likes")

    __table_args__ = (
        # Prevent duplicate likes
        UniqueConstraint('user_id', 'post_id', name='unique_user_post_like'),

        # Indexes for performance
        Index('idx_likes_user_id', 'user_id'),
        Index('idx_likes_post_id', 'post_id'),
    )
