from pathlib import Path
import os
import shutil
import tempfile
import uuid
import pytest

# Settings are read when `quizcraft` is first imported, so the test
# environment must be in place before any test module imports the app.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="quizcraft-tests-"))
os.environ["JWT_SECRET"] = "test-secret"
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'quizcraft.db'}"

from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import SQLModel, Session, create_engine  # noqa: E402

from quizcraft.main import app  # noqa: E402
from quizcraft.database import get_session  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def reset_db():
    """Use a throwaway SQLite database for the whole test session."""
    yield
    shutil.rmtree(_TMP_DIR, ignore_errors=True)


@pytest.fixture
def fresh_client(tmp_path):
    """A client bound to an empty database, so ids start at 1."""
    engine = create_engine(f"sqlite:///{tmp_path / 'fresh.db'}", connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(engine)

    def _session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _session
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_session, None)
        engine.dispose()


def unique_name(prefix: str = "user") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def register_and_login(client, username=None, password="pw1"):
    """Register `username` and return `(username, headers)` carrying its token."""
    username = username or unique_name()
    r = client.post('/api/register', json={'username': username, 'password': password})
    assert r.status_code == 201
    r = client.post('/api/login', json={'username': username, 'password': password})
    assert r.status_code == 200
    return username, {'Authorization': r.json()['token']}
