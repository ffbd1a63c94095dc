"""
One-time script to seed the first verifier.
Usage:
    python scripts/bootstrap_verifier.py <identity_provider_user_id>

After this, verifiers are managed through POST/DELETE /verifiers by
existing verifiers only.

Security:
- Only the SHA-256 hash of the id is stored
- The seed records itself as its own grantor
"""
import sys
from debate_archive.config import get_settings
from debate_archive.database import Base, build_engine, build_session_factory
from debate_archive.services.verifiers import VerifierRegistry

def bootstrap_verifier(user_id: str):
    """Add user_id to the allow-list; no-op if already present"""
    user_id = user_id.strip()
    if not user_id:
        print("User ID required")
        sys.exit(1)

    settings = get_settings()
    engine = build_engine(settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    db = build_session_factory(engine)()
    try:
        registry = VerifierRegistry(db, salt=settings.IDENTIFIER_HASH_SALT)
        created = registry.add_verifier(user_id, user_id)
        db.commit()

        if created:
            print(f"Verifier added: {registry.hash_identifier(user_id)}")
        else:
            print(f"Already a verifier: {registry.hash_identifier(user_id)}")
        print(f"    Verifiers on list: {registry.count()}")

    except Exception as e:
        db.rollback()
        print(f"Database error: {e}")
        sys.exit(1)
    finally:
        db.close()
        engine.dispose()

if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python scripts/bootstrap_verifier.py <user_id>")
        sys.exit(1)

    bootstrap_verifier(sys.argv[1])
