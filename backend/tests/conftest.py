import pytest
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import JSON, create_engine, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Import all models FIRST to ensure Base.metadata is populated
from duplicate_detector.core.database import Base, get_db
import duplicate_detector.models.users
import duplicate_detector.models.sessions
import duplicate_detector.models.projects
import duplicate_detector.models.patterns
import duplicate_detector.models.duplicates

# Now import the app
from duplicate_detector.main import app
from duplicate_detector.core.config import settings
from duplicate_detector.core.security import ALGORITHM
from duplicate_detector.services.projects import upsert_project
from duplicate_detector.services.users import upsert_user


# Replace the app's lifespan with a no-op version to skip the PostgreSQL check
@asynccontextmanager
async def _empty_lifespan(_app):
    """Empty lifespan for testing - skips logging setup and DB verification."""
    yield

app.router.lifespan_context = _empty_lifespan


def _patch_jsonb_columns():
    """
    SQLite has no JSONB. Swap every JSONB column for the generic JSON type,
    which SQLite stores as text and hands back as Python objects.
    In production PostgreSQL the real JSONB type is used.
    """
    for table in Base.metadata.tables.values():
        for column in table.columns:
            if isinstance(column.type, JSONB):
                column.type = JSON()


# DATABASE FIXTURES

@pytest.fixture(scope="function")
def db_session():
    """
    Fresh SQLite in-memory database for each test function.
    StaticPool keeps a single connection so every session sees the same tables.
    """
    _patch_jsonb_columns()

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine
    )
    session = TestingSessionLocal()
    try:

        yield session

    finally:

        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def client(db_session):
    """
    FastAPI TestClient with the get_db dependency overridden
    to use the SQLite in-memory session from db_session fixture.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


# DOMAIN FIXTURES

@pytest.fixture
def profile() -> dict:
    """Identity profile as delivered by the OAuth provider."""
    return {
        "id"               : "user-1",
        "email"            : "ada@example.com",
        "first_name"       : "Ada",
        "last_name"        : "Lovelace",
        "profile_image_url": "https://img.example.com/ada.png",
    }


@pytest.fixture
def user(db_session, profile):
    return upsert_user(db_session, profile)


@pytest.fixture
def other_user(db_session):
    return upsert_user(db_session, {"id": "user-2", "email": "grace@example.com"})


@pytest.fixture
def project(db_session, user):
    """A cached JavaScript project owned by `user`."""
    return upsert_project(db_session, user.id, "repl-1", {
        "title"     : "Todo App",
        "url"       : "https://replit.com/@ada/todo-app",
        "language"  : "javascript",
        "file_count": 12,
    })


@pytest.fixture
def snippet() -> str:
    return "function add(a, b) {\n  return a + b;\n}"


@pytest.fixture
def pattern_payload(snippet):
    """Factory for extraction entries with sensible defaults."""
    def _make(**overrides) -> dict:
        data = {
            "file_path"   : "src/math.js",
            "code_snippet": snippet,
            "pattern_type": "function",
            "line_start"  : 1,
            "line_end"    : 3,
        }
        data.update(overrides)
        return data
    return _make


# AUTH FIXTURES

def make_id_token(claims: dict, secret: str = None, expires_in: int = 300) -> str:
    """Signs an id token the way the identity provider does."""
    payload = dict(claims)
    payload["exp"] = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    return jwt.encode(payload, secret or settings.OAUTH_CLIENT_SECRET, algorithm=ALGORITHM)


@pytest.fixture
def id_token(profile) -> str:
    return make_id_token({
        "sub"              : profile["id"],
        "email"            : profile["email"],
        "first_name"       : profile["first_name"],
        "last_name"        : profile["last_name"],
        "profile_image_url": profile["profile_image_url"],
    })


@pytest.fixture
def auth_token(client, id_token) -> str:
    """
    Logs in through the OAuth callback and returns the session token.
    """
    response = client.post("/api/v1/auth/callback", json={"id_token": id_token})
    assert response.status_code == 200, (
        f"Setup failed: could not log in test user. "
        f"Response: {response.json()}"
    )
    return response.json()["data"]["access_token"]


@pytest.fixture
def auth_headers(auth_token) -> dict:
    """Returns Authorization header dict for authenticated requests."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def id_token_factory():
    """Exposes make_id_token to tests that need custom claims or secrets."""
    return make_id_token
