"""
Pytest configuration and fixtures for StudyMind backend tests.

Provides:
- In-memory test database, recreated for every test
- FastAPI app with database, gateway and storage dependencies overridden
- Bearer token minting for authenticated endpoints
- Material fixtures backed by a temporary bucket
"""

import pytest
import os
import tempfile
from typing import Generator, Dict
from datetime import datetime, timedelta
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AI_GATEWAY_API_KEY"] = "test-key-not-real"
os.environ["AUTH_JWT_SECRET"] = "test-jwt-secret"
os.environ["MATERIALS_STORAGE_DIR"] = tempfile.mkdtemp(prefix="studymind-materials-")
os.environ.pop("SENTRY_DSN", None)

from studymind.main import app
from studymind.database import Base, get_db, get_session_factory
from studymind.models.models import Material, MaterialChunk
from studymind.services.ai_gateway import get_gateway
from studymind.services.storage import MaterialStorage, get_storage
from tests.mocks import FakeGateway


TEST_USER_ID = "test-user-123"
OTHER_USER_ID = "other-user-456"

# One shared in-memory connection so the app, background writers and the
# test itself all see the same data
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class FailingCommitSessionFactory:
    """
    Session factory whose sessions fail on commit, as a locked or
    unreachable database would.

    The first `healthy_sessions` sessions behave normally so a request can
    get part way before its writes start failing.
    """

    def __init__(self, healthy_sessions: int = 0):
        self.remaining_healthy = healthy_sessions
        self.failed_commits = 0

    def __call__(self) -> Session:
        session = TestingSessionLocal()
        if self.remaining_healthy > 0:
            self.remaining_healthy -= 1
            return session

        def fail_commit():
            self.failed_commits += 1
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        session.commit = fail_commit
        return session


@pytest.fixture(scope="function", autouse=True)
def setup_test_database():
    """Fresh tables for every test"""
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Provide a database session for the test body"""
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def storage(tmp_path) -> MaterialStorage:
    return MaterialStorage(str(tmp_path / "materials"))


@pytest.fixture
def test_app(fake_gateway: FakeGateway, storage: MaterialStorage):
    """
    The app with all external dependencies overridden.

    Tests that assert on background persistence open their own
    `with TestClient(test_app)` block: leaving it runs the lifespan
    shutdown, which waits for detached tasks.
    """
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.dependency_overrides[get_gateway] = lambda: fake_gateway
    app.dependency_overrides[get_storage] = lambda: storage
    yield app
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    """Provide FastAPI test client with dependency overrides"""
    with TestClient(test_app) as test_client:
        yield test_client


# =========================================================================
# Auth Fixtures
# =========================================================================

def make_token(user_id: str, audience: str = "authenticated", expires_in: timedelta = timedelta(hours=1),
               secret: str = "test-jwt-secret") -> str:
    """Mint an HS256 bearer token the way the auth provider does"""
    claims = {
        "sub": user_id,
        "aud": audience,
        "role": "authenticated",
        "exp": datetime.utcnow() + expires_in,
    }
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(TEST_USER_ID)}"}


@pytest.fixture
def other_auth_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(OTHER_USER_ID)}"}


# =========================================================================
# Material Fixtures
# =========================================================================

def three_paragraph_text() -> str:
    """About 2500 characters in three paragraphs of 800, 800 and 900"""
    return "\n\n".join(["a" * 800, "b" * 800, "c" * 900])


@pytest.fixture
def text_material(db: Session, storage: MaterialStorage) -> Material:
    """A plain-text material whose file is in the bucket but not yet processed"""
    storage_path = f"{TEST_USER_ID}/notes.txt"
    storage.upload(storage_path, three_paragraph_text().encode("utf-8"))

    material = Material(
        user_id=TEST_USER_ID,
        file_name="notes.txt",
        storage_path=storage_path,
        content_type="text/plain",
        file_size=2504,
        processing_status="processing",
    )
    db.add(material)
    db.commit()
    db.refresh(material)
    return material


@pytest.fixture
def ready_material(db: Session) -> Material:
    """A processed material with two chunks"""
    material = Material(
        user_id=TEST_USER_ID,
        file_name="biology.pdf",
        storage_path=f"{TEST_USER_ID}/biology.pdf",
        content_type="application/pdf",
        extracted_text="Cells are the basic unit of life.\n\nMitochondria make ATP.",
        processing_status="ready",
    )
    db.add(material)
    db.flush()
    db.add_all([
        MaterialChunk(material_id=material.id, chunk_index=0, chunk_text="Cells are the basic unit of life."),
        MaterialChunk(material_id=material.id, chunk_index=1, chunk_text="Mitochondria make ATP."),
    ])
    db.commit()
    db.refresh(material)
    return material
