from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from bookreview.db.base import Base, utcnow


class Book(Base):
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    author = Column(String(100), nullable=False)
    description = Column(String(1000), nullable=False)
    genre = Column(String(50), nullable=False, index=True)
    published_year = Column(Integer, nullable=False)
    image_url = Column(String, nullable=True)
    added_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    # Relationships
    added_by = relationship("User", backref="books")
    reviews = relationship(
        "Review",
        back_populates="book",
        cascade="all, delete-orphan",
    )
