from pydantic import BaseModel

from bloglab.schemas.post_schema import Post

class RankedPost(BaseModel):
    rank: int
    score: float
    post: Post
