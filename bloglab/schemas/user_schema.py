from pydantic import BaseModel, EmailStr, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime

from bloglab.schemas.common import Payload, NonEmptyStr, reject_null

# Widths of the relational columns
NAME_LENGTH = 50
EMAIL_LENGTH = 100
URL_LENGTH = 255

class UserCreate(Payload):
    username: NonEmptyStr = Field(..., max_length=NAME_LENGTH)
    email: EmailStr
    password: NonEmptyStr
    first_name: NonEmptyStr = Field(..., max_length=NAME_LENGTH)
    last_name: NonEmptyStr = Field(..., max_length=NAME_LENGTH)
    bio: Optional[str] = None
    avatar_url: Optional[str] = Field(None, max_length=URL_LENGTH)

    @field_validator("email")
    @classmethod
    def email_fits(cls, value):
        if len(value) > EMAIL_LENGTH:
            raise ValueError(f"must be at most {EMAIL_LENGTH} characters")
        return value

class UserUpdate(Payload):
    first_name: Optional[NonEmptyStr] = Field(None, max_length=NAME_LENGTH)
    last_name: Optional[NonEmptyStr] = Field(None, max_length=NAME_LENGTH)
    bio: Optional[str] = None
    avatar_url: Optional[str] = Field(None, max_length=URL_LENGTH)

    @field_validator("first_name", "last_name")
    @classmethod
    def not_null(cls, value):
        return reject_null(value)

class User(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    username: str
    email: str
    password_hash: str
    first_name: str
    last_name: str
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

class UserPublic(BaseModel):
    """User as shown to other users (no credential hash)"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    display_name: str
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    is_active: bool
    created_at: datetime

class UserActivity(BaseModel):
    """What a user has done on the platform"""
    user_id: int
    username: str
    full_name: str
    posts_created: int = 0
    likes_given: int = 0
    comments_made: int = 0
