import os

# Must be set before the app (and its settings) are imported
os.environ["ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["SECRET_KEY"] = "test-secret-key-do-not-use-in-production"
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from main import app
from core.database import Base
from models.users import User, UserRole
from utils.deps import get_db
from utils.hashing import get_password_hash

# SYNC SQLite for testing (matches sync service layer)
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

TEST_PASSWORD = "TestPassword123!"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False}
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    Uses SYNC SQLAlchemy to match the service layer.
    """
    # Create all tables
    Base.metadata.create_all(bind=engine)

    # Create session
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    # Drop all tables (cleanup)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
async def client(session: Session):
    """
    Yields an HTTP client that interacts with the app using the test database.
    The client is async (for FastAPI), but the DB session is sync.
    """
    # Override the get_db dependency to use our test session
    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    # Clean up
    app.dependency_overrides.clear()


@pytest.fixture
def token_service():
    return app.state.token_service


@pytest.fixture
def make_user(session: Session):
    """Factory for users with a known password (TEST_PASSWORD unless given)."""
    def _make_user(
        username: str,
        role: UserRole = UserRole.CLIENT,
        password: str = TEST_PASSWORD,
        email: str | None = None,
        is_active: bool = True,
        **fields
    ) -> User:
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            password_hash=get_password_hash(password),
            role=role,
            first_name=fields.pop("first_name", username.capitalize()),
            last_name=fields.pop("last_name", "Tester"),
            is_active=is_active,
            **fields
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def admin_user(make_user) -> User:
    return make_user("admin", role=UserRole.ADMIN)


@pytest.fixture
def therapist_user(make_user) -> User:
    return make_user("therapist", role=UserRole.THERAPIST)


@pytest.fixture
def client_user(make_user) -> User:
    return make_user("patient", role=UserRole.CLIENT, phone_number="+15551234567")


@pytest.fixture
def auth_headers(token_service):
    """Bearer headers for any user, signed by the app's token service."""
    def _auth_headers(user: User) -> dict:
        return {"Authorization": f"Bearer {token_service.issue_access_token(user)}"}

    return _auth_headers


@pytest.fixture
def admin_headers(admin_user, auth_headers) -> dict:
    return auth_headers(admin_user)
