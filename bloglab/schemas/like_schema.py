from pydantic import BaseModel, ConfigDict
from datetime import datetime

from bloglab.schemas.common import Payload

class LikeCreate(Payload):
    user_id: int

class Like(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    user_id: int
    post_id: int
    created_at: datetime

class LikeResult(BaseModel):
    post_id: int
    user_id: int
    liked: bool
    already_liked: bool = False
    like_count: int
