from sqlalchemy import Column, String, Boolean, Text, DateTime, Index
from sqlalchemy.orm import relationship
from bloglab.db.base import BaseModel, utcnow

class User(BaseModel):
    __tablename__ = "users"

    username = Column(String(50), unique=True, nullable=False)
    email = Column(String(100), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    bio = Column(Text)
    avatar_url = Column(String(255))
    is_active = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    posts = relationship("Post", back_populates="user", passive_deletes=True)
    likes = relationship("Like", back_populates="user", passive_deletes=True)
    comments = relationship("Comment", back_populates="user", passive_deletes=True)

    # Indexes for performance
    __table_args__ = (
        Index('idx_username', 'username'),
        Index('idx_email', 'email'),
    )
