import logging
import math

from sqlalchemy.orm import Session

import bookreview.repositories.book as book_repo
import bookreview.repositories.review as review_repo
from bookreview.db.models import Book as BookModel
from bookreview.db.models import User as UserModel
from bookreview.domain.ownership import OwnershipPolicy
from bookreview.errors import NotFoundError
from bookreview.schemas.book import BookCreate, BookDetail, BookSummary, BookUpdate
from bookreview.schemas.pagination import PaginatedResponse
from bookreview.schemas.review import Review

logger = logging.getLogger(__name__)


def round_rating(average: float | None) -> float:
    """Average rating to one decimal, 0 for an unreviewed book."""
    if average is None:
        return 0.0
    return math.floor(float(average) * 10 + 0.5) / 10


def list_books(
    db: Session,
    page: int = 1,
    page_size: int = 5,
    search: str | None = None,
    genre: str | None = None,
) -> PaginatedResponse[BookSummary]:
    """
    List books with pagination, search, and rating aggregates.

    ``has_more`` is true while ``page * page_size`` is below the total.
    """
    search = search.strip() if search else None
    genre = genre.strip() if genre else None

    rows, total = book_repo.get_books_paginated(
        db, page=page, page_size=page_size, search=search, genre=genre
    )
    items = [
        BookSummary.model_validate(book).model_copy(
            update={
                "average_rating": round_rating(average),
                "review_count": count or 0,
            }
        )
        for book, average, count in rows
    ]
    return PaginatedResponse[BookSummary](
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size),
        has_more=page * page_size < total,
    )


def get_book_detail(db: Session, book_id: int) -> BookDetail:
    """
    Get one book with its reviews and rating aggregate.

    Raises:
        NotFoundError: If the book doesn't exist
    """
    book = book_repo.get_book_by_id(db, book_id)
    if not book:
        raise NotFoundError("Book not found")

    reviews = review_repo.get_reviews_by_book_id(db, book_id)
    average, count = book_repo.get_book_rating(db, book_id)
    return BookDetail.model_validate(book).model_copy(
        update={
            "reviews": [Review.model_validate(review) for review in reviews],
            "average_rating": round_rating(average),
            "review_count": count,
        }
    )


def create_book(db: Session, book_data: BookCreate, current_user: UserModel) -> BookModel:
    """Create a book owned by the current user."""
    book = book_repo.create_book(
        db,
        added_by_id=current_user.id,
        title=book_data.title,
        author=book_data.author,
        description=book_data.description,
        genre=book_data.genre,
        published_year=book_data.published_year,
        image_url=book_data.image_url,
    )
    logger.info("User %s added book %s", current_user.id, book.id)
    return book


def update_book(
    db: Session, book_id: int, book_data: BookUpdate, current_user: UserModel
) -> BookModel:
    """
    Update a book with ownership check.

    Raises:
        NotFoundError: If book doesn't exist
        ForbiddenError: If the current user did not add the book
    """
    book = book_repo.get_book_by_id(db, book_id)
    if not book:
        raise NotFoundError("Book not found")

    OwnershipPolicy(current_user.id).ensure(
        owner_id=book.added_by_id, action="update", resource="book"
    )

    # Only fields present in the request change; an explicit null clears image_url
    return book_repo.update_book(
        db, book_id, **book_data.model_dump(exclude_unset=True)
    )


def delete_book(db: Session, book_id: int, current_user: UserModel) -> None:
    """
    Delete a book and all its reviews, with ownership check.

    Raises:
        NotFoundError: If book doesn't exist
        ForbiddenError: If the current user did not add the book
    """
    book = book_repo.get_book_by_id(db, book_id)
    if not book:
        raise NotFoundError("Book not found")

    OwnershipPolicy(current_user.id).ensure(
        owner_id=book.added_by_id, action="delete", resource="book"
    )

    book_repo.delete_book(db, book_id)
    logger.info("User %s deleted book %s", current_user.id, book_id)
