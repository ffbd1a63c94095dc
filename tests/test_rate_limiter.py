from datetime import timedelta

import pytest

from debate_archive.auth import hash_identifier
from debate_archive.errors import RateLimited
from debate_archive.models import RateLimitAction, RateLimitRecord
from debate_archive.services.rate_limiter import RateLimiter

SUBMIT = RateLimitAction.SUBMIT_ENTRY.value
VOTE = RateLimitAction.VOTE.value
IP = hash_identifier("203.0.113.7")


@pytest.fixture
def limiter(db_session, clock):
    return RateLimiter(db_session, clock=clock)


def _submit_allowed(limiter, actor="user_1", ip=IP):
    return limiter.allow(actor, ip, SUBMIT, actor_limit=5, ip_limit=10, window_minutes=10)


def test_sixth_submission_in_window_is_rejected(limiter):
    for _ in range(5):
        assert _submit_allowed(limiter)
        limiter.record("user_1", IP, SUBMIT)
    assert not _submit_allowed(limiter)


def test_window_slides(limiter, clock):
    for _ in range(5):
        limiter.record("user_1", IP, SUBMIT)
        clock.advance(minutes=1)
    assert not _submit_allowed(limiter)

    # First record is now exactly 10 minutes old and drops out
    clock.advance(minutes=5)
    assert _submit_allowed(limiter)


def test_ip_axis_limits_across_actors(limiter):
    for i in range(10):
        limiter.record(f"user_{i}", IP, SUBMIT)
    assert not _submit_allowed(limiter, actor="fresh_user")
    assert _submit_allowed(limiter, actor="fresh_user", ip=hash_identifier("198.51.100.1"))


def test_actions_are_counted_separately(limiter):
    for _ in range(5):
        limiter.record("user_1", IP, SUBMIT)
    assert not _submit_allowed(limiter)
    assert limiter.allow("user_1", IP, VOTE, actor_limit=10, ip_limit=20, window_minutes=1)


def test_enforce_raises_with_retry_after(limiter):
    for _ in range(5):
        limiter.record("user_1", IP, SUBMIT)
    with pytest.raises(RateLimited) as excinfo:
        limiter.enforce("user_1", IP, SUBMIT, actor_limit=5, ip_limit=10, window_minutes=10)
    assert excinfo.value.status_code == 429
    assert excinfo.value.headers["Retry-After"] == "600"


def test_actor_stored_hashed(limiter, db_session):
    limiter.record("user_1", IP, SUBMIT)
    row = db_session.query(RateLimitRecord).one()
    assert row.actor_hash == hash_identifier("user_1")
    assert row.actor_hash != "user_1"


def test_prune(limiter, clock, db_session):
    limiter.record("user_1", IP, SUBMIT)
    clock.advance(hours=25)
    limiter.record("user_1", IP, SUBMIT)

    assert limiter.prune(timedelta(hours=24)) == 1
    assert db_session.query(RateLimitRecord).count() == 1
