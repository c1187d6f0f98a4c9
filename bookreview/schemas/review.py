from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from bookreview.schemas.user import UserPublic


def strip_text(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Review text cannot be empty")
    return value


Rating = Annotated[int, Field(ge=1, le=5)]
ReviewText = Annotated[str, Field(max_length=500), AfterValidator(strip_text)]


class Review(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    book_id: int
    user: UserPublic
    rating: int
    review_text: str
    created_at: datetime
    updated_at: datetime


class ReviewCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    book_id: int
    rating: Rating
    review_text: ReviewText


class ReviewUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rating: Rating | None = None
    review_text: ReviewText | None = None
