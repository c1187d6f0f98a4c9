from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from bookreview.schemas.review import Review
from bookreview.schemas.user import User

MIN_PUBLISHED_YEAR = 1000


def check_published_year(value: int) -> int:
    current_year = datetime.now().year
    if not MIN_PUBLISHED_YEAR <= value <= current_year:
        raise ValueError(
            f"Published year must be between {MIN_PUBLISHED_YEAR} and {current_year}"
        )
    return value


def strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Field cannot be empty")
    return value


PublishedYear = Annotated[int, AfterValidator(check_published_year)]
Title = Annotated[str, Field(max_length=200), AfterValidator(strip_required)]
Author = Annotated[str, Field(max_length=100), AfterValidator(strip_required)]
Description = Annotated[str, Field(max_length=1000), AfterValidator(strip_required)]
Genre = Annotated[str, Field(max_length=50), AfterValidator(strip_required)]


class Book(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    author: str
    description: str
    genre: str
    published_year: int
    image_url: str | None = None
    added_by: User
    created_at: datetime
    updated_at: datetime


class BookSummary(Book):
    average_rating: float = 0
    review_count: int = 0


class BookDetail(BookSummary):
    reviews: list[Review] = []


class BookCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Title
    author: Author
    description: Description
    genre: Genre
    published_year: PublishedYear
    image_url: str | None = None


class BookUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Title | None = None
    author: Author | None = None
    description: Description | None = None
    genre: Genre | None = None
    published_year: PublishedYear | None = None
    image_url: str | None = None

    @field_validator(
        "title", "author", "description", "genre", "published_year", mode="before"
    )
    @classmethod
    def reject_null(cls, value):
        # Only image_url may be cleared
        if value is None:
            raise ValueError("Field cannot be null")
        return value
