from sqlalchemy import Column, String, Text, Integer, ForeignKey, Boolean, DateTime, Index
from sqlalchemy.orm import relationship
from bloglab.db.base import BaseModel, utcnow

class Post(BaseModel):
    __tablename__ = "posts"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(200), nullable=False)
    body = Column(Text, nullable=False)
    image_url = Column(String(255))
    slug = Column(String(250), unique=True, nullable=False)
    is_published = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Denormalized counts, kept in step with the likes/comments tables
    like_count = Column(Integer, default=0, nullable=False)
    comment_count = Column(Integer, default=0, nullable=False)
    view_count = Column(Integer, default=0, nullable=False)

    # Relationships
    user = relationship("User", back_populates="posts")
    likes = relationship("Like", back_populates="post", passive_deletes=True)
    comments = relationship("Comment", back_populates="post", passive_deletes=True)

    # Indexes for performance
    __table_args__ = (
        Index('idx_posts_user_id', 'user_id'),
        Index('idx_posts_created_at', 'created_at'),
        Index('idx_posts_published', 'is_published'),
        Index('idx_posts_slug', 'slug'),
    )
