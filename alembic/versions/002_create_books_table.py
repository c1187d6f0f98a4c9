"""create books table

Revision ID: 002
Revises: 001
Create Date: 2026-10-12 18:10:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "books",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("author", sa.String(100), nullable=False),
        sa.Column("description", sa.String(1000), nullable=False),
        sa.Column("genre", sa.String(50), nullable=False),
        sa.Column("published_year", sa.Integer(), nullable=False),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("added_by_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["added_by_id"], ["users.id"]),
    )
    op.create_index("ix_books_id", "books", ["id"], unique=False)
    op.create_index("ix_books_genre", "books", ["genre"], unique=False)
    op.create_index("ix_books_added_by_id", "books", ["added_by_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_books_added_by_id", table_name="books")
    op.drop_index("ix_books_genre", table_name="books")
    op.drop_index("ix_books_id", table_name="books")
    op.drop_table("books")
