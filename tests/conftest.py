"""
Test configuration and fixtures.

Provides:
- SQLite database per test (schema built from the ORM metadata)
- Private storage and staging directories under tmp_path
- JWT token minting for authenticated requests
- HTTPX AsyncClient with get_db overridden
"""
import os
from dataclasses import dataclass
from typing import AsyncGenerator, Callable, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENV"] = "test"

from formbuilder.core.config import settings
from formbuilder.core.deps import get_db, get_scanner
from formbuilder.core.security import create_session_token
from formbuilder.db.base import Base
from formbuilder.db.models import Field, Form
from formbuilder.main import app
from formbuilder.services.file_scanner import FileScanner


OWNER_ID = "owner-1"
SUBMITTER_ID = "submitter-1"
OTHER_ID = "stranger-1"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'formbuilder.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def storage_dirs(tmp_path, monkeypatch):
    """Point storage and staging at per-test directories."""
    storage_dir = tmp_path / "storage"
    temp_dir = tmp_path / "staging"
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "local")
    monkeypatch.setattr(settings, "STORAGE_DIR", str(storage_dir))
    monkeypatch.setattr(settings, "TEMP_DIR", str(temp_dir))
    monkeypatch.setattr(settings, "MAX_FILE_SIZE", 10 * 1024 * 1024)
    monkeypatch.setattr(settings, "ALLOWED_FILE_TYPES", "image/jpeg,image/png,application/pdf")
    return storage_dir, temp_dir


@pytest.fixture
def storage_dir(storage_dirs):
    return storage_dirs[0]


@pytest.fixture
def temp_dir(storage_dirs):
    return storage_dirs[1]


@pytest.fixture
def scanner() -> FileScanner:
    return FileScanner(enabled=True)


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def make_form(db: Session) -> Callable[..., Form]:
    """Create a form with fields given as (label, type) or (label, type, options)."""

    def _make_form(
        fields=(("Name", "text"), ("Notes", "textarea")),
        *,
        owner: str = OWNER_ID,
        published: bool = True,
        title: str = "Intake",
    ) -> Form:
        form = Form(title=title, published=published, created_by=owner)
        db.add(form)
        db.flush()
        for position, definition in enumerate(fields):
            label, field_type, *rest = definition
            db.add(
                Field(
                    form_id=form.id,
                    label=label,
                    type=field_type,
                    options=list(rest[0]) if rest else [],
                    order=position,
                )
            )
        db.commit()
        db.refresh(form)
        return form

    return _make_form


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Authorization headers for one caller identity."""
    caller_id: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def auth_for(caller_id: str) -> TestAuth:
    return TestAuth(caller_id=caller_id, token=create_session_token(caller_id))


@pytest.fixture
def owner_auth() -> TestAuth:
    return auth_for(OWNER_ID)


@pytest.fixture
def submitter_auth() -> TestAuth:
    return auth_for(SUBMITTER_ID)


@pytest.fixture
def other_auth() -> TestAuth:
    return auth_for(OTHER_ID)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session, scanner: FileScanner) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient without credentials; pass auth headers per request."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_scanner] = lambda: scanner

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
