from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from bookreview.db.models import Book as BookModel
from bookreview.db.models import Review as ReviewModel
from bookreview.errors import NotFoundError


def _rating_stats(db: Session):
    """Per-book average rating and review count, as a joinable subquery."""
    return (
        db.query(
            ReviewModel.book_id.label("book_id"),
            func.avg(ReviewModel.rating).label("average_rating"),
            func.count(ReviewModel.id).label("review_count"),
        )
        .group_by(ReviewModel.book_id)
        .subquery()
    )


def get_book_by_id(db: Session, book_id: int) -> BookModel | None:
    """Get a book by ID."""
    return (
        db.query(BookModel)
        .options(joinedload(BookModel.added_by))
        .filter(BookModel.id == book_id)
        .first()
    )


def get_book_rating(db: Session, book_id: int) -> tuple[float | None, int]:
    """Return (average rating, review count) for one book."""
    average, count = (
        db.query(func.avg(ReviewModel.rating), func.count(ReviewModel.id))
        .filter(ReviewModel.book_id == book_id)
        .one()
    )
    return average, count


def get_books_paginated(
    db: Session,
    page: int = 1,
    page_size: int = 5,
    search: str | None = None,
    genre: str | None = None,
) -> tuple[list[tuple[BookModel, float | None, int | None]], int]:
    """
    Get books with pagination, newest first, with their rating aggregates.

    Args:
        page: Page number (1-indexed)
        page_size: Number of items per page
        search: Optional case-insensitive match on title, author or description
        genre: Optional case-insensitive partial match on genre

    Returns:
        Tuple of (list of (book, average rating, review count), total count)
    """
    query = db.query(BookModel)
    if search:
        query = query.filter(
            or_(
                BookModel.title.icontains(search, autoescape=True),
                BookModel.author.icontains(search, autoescape=True),
                BookModel.description.icontains(search, autoescape=True),
            )
        )
    if genre:
        query = query.filter(BookModel.genre.icontains(genre, autoescape=True))

    total = query.count()

    stats = _rating_stats(db)
    skip = (page - 1) * page_size
    rows = (
        query.outerjoin(stats, stats.c.book_id == BookModel.id)
        .add_columns(stats.c.average_rating, stats.c.review_count)
        .options(joinedload(BookModel.added_by))
        .order_by(BookModel.created_at.desc(), BookModel.id.desc())
        .offset(skip)
        .limit(page_size)
        .all()
    )
    return [tuple(row) for row in rows], total


def create_book(
    db: Session,
    added_by_id: int,
    title: str,
    author: str,
    description: str,
    genre: str,
    published_year: int,
    image_url: str | None = None,
) -> BookModel:
    """Create a new book in the database. Pure data access - no business logic."""
    db_book = BookModel(
        title=title,
        author=author,
        description=description,
        genre=genre,
        published_year=published_year,
        image_url=image_url,
        added_by_id=added_by_id,
    )
    db.add(db_book)
    db.commit()
    db.refresh(db_book)
    return db_book


def update_book(db: Session, book_id: int, **fields) -> BookModel:
    """
    Update a book. Only the given fields are written, so passing
    ``image_url=None`` clears the cover while omitting it keeps it.
    """
    book = get_book_by_id(db, book_id)
    if not book:
        raise NotFoundError("Book not found")

    for field, value in fields.items():
        setattr(book, field, value)

    db.commit()
    db.refresh(book)
    return book


def delete_book(db: Session, book_id: int) -> None:
    """Delete a book and every review of it in one transaction."""
    book = get_book_by_id(db, book_id)
    if not book:
        raise NotFoundError("Book not found")

    # Reviews go with it through the relationship cascade
    db.delete(book)
    db.commit()
