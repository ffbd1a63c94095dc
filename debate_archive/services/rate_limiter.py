"""
Two-axis rate limiting for write endpoints.

Counts rate_limits rows per actor and per IP hash inside a trailing
window. Callers check with allow(), perform the gated action, then
record() in the same transaction, so a request rejected by validation
does not consume quota.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session
from debate_archive.auth import hash_identifier
from debate_archive.errors import RateLimited
from debate_archive.models import RateLimitRecord

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


class RateLimiter:
    """
    Sliding-window limiter backed by the store.

    Correctness under concurrent requests rests on the store; there is
    no in-process state beyond the session and clock.
    """

    def __init__(self, db: Session, clock: Optional[Clock] = None, salt: str = ""):
        self.db = db
        self.clock = clock or system_clock
        self.salt = salt

    def _count(self, column, value: str, action_type: str, since: datetime) -> int:
        return self.db.execute(
            select(func.count(RateLimitRecord.id)).where(
                column == value,
                RateLimitRecord.action_type == action_type,
                RateLimitRecord.created_at > since,
            )
        ).scalar_one()

    def allow(
        self,
        actor_id: str,
        ip_hash: str,
        action_type: str,
        actor_limit: int,
        ip_limit: int,
        window_minutes: int,
    ) -> bool:
        """True only if both the actor count and the IP count are strictly below their limits."""
        since = self.clock() - timedelta(minutes=window_minutes)
        actor_hash = hash_identifier(actor_id, self.salt)

        actor_count = self._count(RateLimitRecord.actor_hash, actor_hash, action_type, since)
        if actor_count >= actor_limit:
            logger.warning(
                f"Rate limit hit: action={action_type} actor={actor_hash[:12]} "
                f"count={actor_count} limit={actor_limit}"
            )
            return False

        ip_count = self._count(RateLimitRecord.ip_hash, ip_hash, action_type, since)
        if ip_count >= ip_limit:
            logger.warning(
                f"Rate limit hit: action={action_type} ip={ip_hash[:12]} "
                f"count={ip_count} limit={ip_limit}"
            )
            return False

        return True

    def enforce(
        self,
        actor_id: str,
        ip_hash: str,
        action_type: str,
        actor_limit: int,
        ip_limit: int,
        window_minutes: int,
    ) -> None:
        """allow() or raise RateLimited (429)."""
        if not self.allow(actor_id, ip_hash, action_type, actor_limit, ip_limit, window_minutes):
            raise RateLimited(retry_after_seconds=window_minutes * 60)

    def record(self, actor_id: str, ip_hash: str, action_type: str) -> RateLimitRecord:
        row = RateLimitRecord(
            actor_hash=hash_identifier(actor_id, self.salt),
            ip_hash=ip_hash,
            action_type=action_type,
            created_at=self.clock(),
        )
        self.db.add(row)
        self.db.flush()
        return row

    def prune(self, older_than: timedelta) -> int:
        """Delete rows older than the retention window. Returns rows removed."""
        cutoff = self.clock() - older_than
        result = self.db.execute(
            delete(RateLimitRecord).where(RateLimitRecord.created_at < cutoff)
        )
        return result.rowcount or 0
