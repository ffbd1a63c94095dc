"""
Delete rate-limit rows older than the retention window.
Usage:
    python scripts/prune_rate_limits.py [hours]

hours defaults to RATE_LIMIT_RETENTION_HOURS. It must exceed the
longest rate-limit window or limits would reset early.
"""
import sys
from datetime import timedelta
from debate_archive.config import get_settings
from debate_archive.database import build_engine, build_session_factory
from debate_archive.services.rate_limiter import RateLimiter

def prune(hours: int):
    settings = get_settings()
    longest_window = max(settings.SUBMIT_WINDOW_MINUTES, settings.VOTE_WINDOW_MINUTES)
    if hours * 60 < longest_window:
        print(f"Retention must be at least {longest_window} minutes")
        sys.exit(1)

    engine = build_engine(settings.DATABASE_URL)
    db = build_session_factory(engine)()
    try:
        removed = RateLimiter(db).prune(timedelta(hours=hours))
        db.commit()
        print(f"Pruned {removed} rate-limit rows older than {hours}h")
    except Exception as e:
        db.rollback()
        print(f"Database error: {e}")
        sys.exit(1)
    finally:
        db.close()
        engine.dispose()

if __name__ == "__main__":
    if len(sys.argv) > 2:
        print("Usage: python scripts/prune_rate_limits.py [hours]")
        sys.exit(1)

    prune(int(sys.argv[1]) if len(sys.argv) == 2 else get_settings().RATE_LIMIT_RETENTION_HOURS)
