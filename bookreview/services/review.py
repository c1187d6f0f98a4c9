import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import bookreview.repositories.book as book_repo
import bookreview.repositories.review as review_repo
from bookreview.db.models import Review as ReviewModel
from bookreview.db.models import User as UserModel
from bookreview.domain.ownership import OwnershipPolicy
from bookreview.errors import DuplicateResourceError, NotFoundError
from bookreview.schemas.review import ReviewCreate, ReviewUpdate

logger = logging.getLogger(__name__)


def list_reviews_for_book(db: Session, book_id: int) -> list[ReviewModel]:
    """Reviews of a book, newest first. Unknown books simply have none."""
    return review_repo.get_reviews_by_book_id(db, book_id)


def create_review(
    db: Session, review_data: ReviewCreate, current_user: UserModel
) -> ReviewModel:
    """
    Create the current user's review of a book.

    One review per user per book is enforced by the database unique
    constraint, so concurrent duplicates are rejected atomically.

    Raises:
        NotFoundError: If the book doesn't exist, or is deleted mid-insert
        DuplicateResourceError: If the user already reviewed the book
    """
    if not book_repo.get_book_by_id(db, review_data.book_id):
        raise NotFoundError("Book not found")

    try:
        review = review_repo.create_review(
            db,
            book_id=review_data.book_id,
            user_id=current_user.id,
            rating=review_data.rating,
            review_text=review_data.review_text,
        )
    except IntegrityError:
        db.rollback()
        # The book may have been deleted since the check above
        if not book_repo.get_book_by_id(db, review_data.book_id):
            raise NotFoundError("Book not found")
        raise DuplicateResourceError("You have already reviewed this book")

    logger.info(
        "User %s reviewed book %s", current_user.id, review_data.book_id
    )
    return review


def update_review(
    db: Session, review_id: int, review_data: ReviewUpdate, current_user: UserModel
) -> ReviewModel:
    """
    Update a review with ownership check.

    Raises:
        NotFoundError: If review doesn't exist
        ForbiddenError: If the current user did not write the review
    """
    review = review_repo.get_review_by_id(db, review_id)
    if not review:
        raise NotFoundError("Review not found")

    OwnershipPolicy(current_user.id).ensure(
        owner_id=review.user_id, action="update", resource="review"
    )

    return review_repo.update_review(
        db,
        review_id=review_id,
        rating=review_data.rating,
        review_text=review_data.review_text,
    )


def delete_review(db: Session, review_id: int, current_user: UserModel) -> None:
    """
    Delete a review with ownership check.

    Raises:
        NotFoundError: If review doesn't exist
        ForbiddenError: If the current user did not write the review
    """
    review = review_repo.get_review_by_id(db, review_id)
    if not review:
        raise NotFoundError("Review not found")

    OwnershipPolicy(current_user.id).ensure(
        owner_id=review.user_id, action="delete", resource="review"
    )

    review_repo.delete_review(db, review_id)
