from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime


# Body for creating or editing a review
class ReviewCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=1, max_length=1000)


class ReviewOut(BaseModel):
    id: int
    product_id: int
    user_id: int
    user_name: str
    user_email: Optional[str] = None
    product_name: Optional[str] = None
    product_image_url: Optional[str] = None
    rating: int
    comment: str
    created_at: Optional[datetime] = None
    is_approved: bool

    model_config = ConfigDict(from_attributes=True)
