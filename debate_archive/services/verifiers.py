"""
Verifier registry: hashed allow-list of moderators.

Only SHA-256 hashes of user ids are stored. Membership can be checked
and changed by callers who know the plaintext id; the current set
cannot be enumerated back into ids.
"""
import logging
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from debate_archive.auth import hash_identifier
from debate_archive.models import VerifierAllowlistEntry

logger = logging.getLogger(__name__)


class VerifierRegistry:

    def __init__(self, db: Session, salt: str = ""):
        self.db = db
        self.salt = salt

    def hash_identifier(self, user_id: str) -> str:
        return hash_identifier(user_id, self.salt)

    def is_verifier(self, user_id: str) -> bool:
        id_hash = self.hash_identifier(user_id)
        return self.db.get(VerifierAllowlistEntry, id_hash) is not None

    def add_verifier(self, new_user_id: str, added_by_user_id: str) -> bool:
        """
        Grant verifier access. Returns True if a row was inserted, False
        if the id was already on the list (the original grant is kept).
        Caller must already have checked that added_by is a verifier.
        """
        id_hash = self.hash_identifier(new_user_id)
        if self.db.get(VerifierAllowlistEntry, id_hash) is not None:
            return False

        self.db.add(VerifierAllowlistEntry(
            id_hash=id_hash,
            added_by_hash=self.hash_identifier(added_by_user_id),
        ))
        self.db.flush()
        logger.info(f"Verifier granted: {id_hash[:12]}")
        return True

    def remove_verifier(self, user_id: str) -> bool:
        """
        Revoke verifier access. Returns True if a row was deleted.
        Removing the last verifier is allowed; scripts/bootstrap_verifier.py
        seeds a new one.
        """
        id_hash = self.hash_identifier(user_id)
        row = self.db.get(VerifierAllowlistEntry, id_hash)
        if row is None:
            return False

        self.db.delete(row)
        self.db.flush()
        logger.info(f"Verifier revoked: {id_hash[:12]}")
        return True

    def count(self) -> int:
        return self.db.execute(
            select(func.count()).select_from(VerifierAllowlistEntry)
        ).scalar_one()
