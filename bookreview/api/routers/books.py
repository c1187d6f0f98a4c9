from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from bookreview.api.deps import get_current_user, get_db
from bookreview.db.models import User as UserModel
from bookreview.schemas.book import Book, BookCreate, BookDetail, BookSummary, BookUpdate
from bookreview.schemas.pagination import PaginatedResponse
from bookreview.schemas.user import Message
from bookreview.services import book as book_service

router = APIRouter(prefix="/books", tags=["books"])


@router.get("", response_model=PaginatedResponse[BookSummary])
def get_books_paginated(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(5, ge=1, le=50, description="Number of books per page"),
    search: str | None = Query(None, description="Match title, author or description"),
    genre: str | None = Query(None, description="Filter by genre (partial match)"),
    db: Session = Depends(get_db),
):
    """
    List books, newest first, with average rating and review count.
    """
    return book_service.list_books(
        db, page=page, page_size=limit, search=search, genre=genre
    )


@router.get("/{book_id}", response_model=BookDetail)
def get_book_by_id(book_id: int, db: Session = Depends(get_db)):
    """Get a book with its reviews."""
    return book_service.get_book_detail(db, book_id)


@router.post("", response_model=Book, status_code=status.HTTP_201_CREATED)
def create_new_book(
    book_data: BookCreate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    """Add a book. The current user becomes its owner."""
    book = book_service.create_book(db, book_data, current_user)
    return Book.model_validate(book)


@router.put("/{book_id}", response_model=Book)
def update_book_by_id(
    book_id: int,
    book_data: BookUpdate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    """Update a book. Only the user who added it can update it."""
    book = book_service.update_book(db, book_id, book_data, current_user)
    return Book.model_validate(book)


@router.delete("/{book_id}", response_model=Message)
def delete_book_by_id(
    book_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    """
    Delete a book and all of its reviews. Only the user who added it can delete it.
    """
    book_service.delete_book(db, book_id, current_user)
    return Message(message="Book and associated reviews deleted successfully")
