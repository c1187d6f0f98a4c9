import os
import tempfile

# Set environment variables BEFORE any imports that might use settings
# Use a temporary directory for test database to avoid permission issues
_test_db_dir = tempfile.mkdtemp()
_test_db_path = os.path.join(_test_db_dir, "test_bookreview.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_test_db_path}"
os.environ["SECRET_KEY"] = "test-secret-key-min-32-characters-long-for-testing"
os.environ["ALGORITHM"] = "HS256"
os.environ["ACCESS_TOKEN_EXPIRE_MINUTES"] = "30"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "development"
os.environ["PASSWORD_TRANSPORT_KEY"] = ""
os.environ["SMTP_HOST"] = ""
os.environ["FRONTEND_URL"] = ""

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session

from bookreview.main import app
from bookreview.core.security import create_access_token, get_password_hash
from bookreview.db.models import Book as BookModel
from bookreview.db.models import User as UserModel


@pytest.fixture(scope="function")
def session_factory():
    """Create a fresh database for each test, run migrations, and yield a session factory."""
    temp_db_dir = tempfile.mkdtemp()
    test_db_path = os.path.join(temp_db_dir, "test.db")
    test_db_url = f"sqlite:///{test_db_path}"

    test_engine = create_engine(
        test_db_url,
        connect_args={"check_same_thread": False},
    )

    # Enable WAL mode to reduce locking issues
    @event.listens_for(test_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=test_engine
    )

    # Run Alembic migrations to set up the database schema
    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("sqlalchemy.url", test_db_url)
    command.upgrade(alembic_cfg, "head")

    try:
        yield TestingSessionLocal
    finally:
        test_engine.dispose()

        # Clean up - remove test database file and directory
        for suffix in ["", "-wal", "-shm"]:
            path = f"{test_db_path}{suffix}"
            if os.path.exists(path):
                os.remove(path)
        if os.path.exists(temp_db_dir):
            os.rmdir(temp_db_dir)


@pytest.fixture(scope="function")
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client with database dependency override."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    from bookreview.api.deps import get_db

    app.dependency_overrides[get_db] = override_get_db

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def db(db_session):
    """Alias for db_session to match test naming conventions."""
    return db_session


def make_user(db: Session, name: str, email: str, password: str) -> dict:
    user = UserModel(
        name=name,
        email=email,
        password_hash=get_password_hash(password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "password": password,
    }


def make_book(db: Session, owner_id: int, **fields) -> BookModel:
    values = {
        "title": "The Left Hand of Darkness",
        "author": "Ursula K. Le Guin",
        "description": "An envoy visits the planet Gethen.",
        "genre": "Science Fiction",
        "published_year": 1969,
    }
    values.update(fields)
    book = BookModel(added_by_id=owner_id, **values)
    db.add(book)
    db.commit()
    db.refresh(book)
    return book


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def user_dict(db: Session) -> dict:
    """The main test user."""
    return make_user(db, "Alice", "alice@example.com", "secret1")


@pytest.fixture(scope="function")
def user_token(user_dict: dict) -> str:
    """Get JWT token for the main test user."""
    return create_access_token(data={"sub": user_dict["id"]})


@pytest.fixture(scope="function")
def other_user_dict(db: Session) -> dict:
    """A second user who owns nothing the main user created."""
    return make_user(db, "Bob", "bob@example.com", "hunter22")


@pytest.fixture(scope="function")
def other_token(other_user_dict: dict) -> str:
    return create_access_token(data={"sub": other_user_dict["id"]})


@pytest.fixture(scope="function")
def book(db: Session, user_dict: dict) -> dict:
    """A book added by the main test user."""
    book = make_book(db, user_dict["id"])
    return {"id": book.id, "title": book.title, "added_by_id": book.added_by_id}
