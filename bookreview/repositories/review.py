from sqlalchemy.orm import Session, joinedload

from bookreview.db.models import Review as ReviewModel
from bookreview.errors import NotFoundError


def get_review_by_id(db: Session, review_id: int) -> ReviewModel | None:
    """Get a review by ID."""
    return db.query(ReviewModel).filter(ReviewModel.id == review_id).first()


def get_reviews_by_book_id(db: Session, book_id: int) -> list[ReviewModel]:
    """Get all reviews of a book, newest first."""
    return (
        db.query(ReviewModel)
        .options(joinedload(ReviewModel.user))
        .filter(ReviewModel.book_id == book_id)
        .order_by(ReviewModel.created_at.desc(), ReviewModel.id.desc())
        .all()
    )


def create_review(
    db: Session,
    book_id: int,
    user_id: int,
    rating: int,
    review_text: str,
) -> ReviewModel:
    """
    Insert a review. Pure data access - no business logic.

    The (book_id, user_id) unique constraint is the only duplicate check;
    callers handle the resulting IntegrityError.
    """
    db_review = ReviewModel(
        book_id=book_id,
        user_id=user_id,
        rating=rating,
        review_text=review_text,
    )
    db.add(db_review)
    db.commit()
    db.refresh(db_review)
    return db_review


def update_review(
    db: Session,
    review_id: int,
    rating: int | None = None,
    review_text: str | None = None,
) -> ReviewModel:
    """Update a review. Only provided fields will be updated."""
    review = get_review_by_id(db, review_id)
    if not review:
        raise NotFoundError("Review not found")

    if rating is not None:
        review.rating = rating
    if review_text is not None:
        review.review_text = review_text

    db.commit()
    db.refresh(review)
    return review


def delete_review(db: Session, review_id: int) -> None:
    """Delete a review."""
    review = get_review_by_id(db, review_id)
    if not review:
        raise NotFoundError("Review not found")

    db.delete(review)
    db.commit()
