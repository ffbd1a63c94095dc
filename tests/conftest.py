import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient

from debate_archive.auth import create_session_token
from debate_archive.config import Settings
from debate_archive.database import Base, build_engine, build_session_factory
from debate_archive.main import create_app
from debate_archive.models import Entry, EntryStatus
from debate_archive.services.verifiers import VerifierRegistry

SECRET_KEY = "test-secret-key-for-session-tokens-0123456789"


class FakeClock:
    """Settable clock for the rate limiter."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        SECRET_KEY=SECRET_KEY,
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(settings, clock):
    return create_app(settings, clock=clock)


@pytest.fixture
def client(app):
    """TestClient inside its context so the lifespan creates tables."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db_session(tmp_path):
    """Bare session for service-level tests."""
    engine = build_engine(f"sqlite:///{tmp_path / 'services.db'}")
    Base.metadata.create_all(bind=engine)
    session = build_session_factory(engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def auth_headers(settings):
    def _headers(user_id, roles=None):
        token = create_session_token(user_id, roles=roles, settings=settings)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def make_verifier(app, client, settings):
    def _make(user_id):
        with app.state.session_factory() as db:
            VerifierRegistry(db, salt=settings.IDENTIFIER_HASH_SALT).add_verifier(user_id, user_id)
            db.commit()
    return _make


@pytest.fixture
def verifier_headers(make_verifier, auth_headers):
    make_verifier("user_mod")
    return auth_headers("user_mod")


@pytest.fixture
def make_entry(app, client):
    """Insert an entry directly, bypassing submission rate limits."""
    def _make(question="What is the best argument?", status=EntryStatus.VERIFIED,
              is_locked=False, answer_summary=None, video_id="abc123"):
        with app.state.session_factory() as db:
            entry = Entry(
                question=question,
                answer_summary=answer_summary,
                video_id=video_id,
                start_seconds=0,
                submitted_by="user_seed",
                verified_status=status,
                is_locked=is_locked,
            )
            db.add(entry)
            db.commit()
            return entry.id
    return _make


@pytest.fixture
def sample_submission():
    return {
        "question": "Is the universe fine-tuned?",
        "answer_summary": "Cites the cosmological constant.",
        "youtube_url": "https://youtu.be/abc123?t=90",
        "stats": [
            {"description": "1 in 10^120", "source_url": "https://example.com/cc"},
        ],
        "bible_verses": [],
        "bible_verse_ranges": [
            {"book": "John", "start_chapter": 3, "start_verse": 16, "end_chapter": 3, "end_verse": 17},
        ],
    }
