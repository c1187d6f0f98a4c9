from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from bookreview.api.deps import get_current_user, get_db
from bookreview.db.models import User as UserModel
from bookreview.schemas.review import Review, ReviewCreate, ReviewUpdate
from bookreview.schemas.user import Message
from bookreview.services import review as review_service

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.post("", response_model=Review, status_code=status.HTTP_201_CREATED)
def create_new_review(
    review_data: ReviewCreate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    """Review a book. Each user can review a book once."""
    review = review_service.create_review(db, review_data, current_user)
    return Review.model_validate(review)


@router.get("/book/{book_id}", response_model=list[Review])
def get_reviews_for_book(book_id: int, db: Session = Depends(get_db)):
    reviews = review_service.list_reviews_for_book(db, book_id)
    return [Review.model_validate(review) for review in reviews]


@router.put("/{review_id}", response_model=Review)
def update_review_by_id(
    review_id: int,
    review_data: ReviewUpdate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    """Update a review. Only its author can update it."""
    review = review_service.update_review(db, review_id, review_data, current_user)
    return Review.model_validate(review)


@router.delete("/{review_id}", response_model=Message)
def delete_review_by_id(
    review_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    """Delete a review. Only its author can delete it."""
    review_service.delete_review(db, review_id, current_user)
    return Message(message="Review deleted successfully")
