from bookreview.db.models.user import User
from bookreview.db.models.book import Book
from bookreview.db.models.review import Review

__all__ = ["User", "Book", "Review"]
