"""
Moderation capability check.

"Is this caller allowed to moderate?" has two interchangeable answers:
the hashed allow-list, or a role claim carried in the session token.
Endpoints depend on ModerationCapability only; settings pick the
strategy.
"""
from typing import Iterable
from sqlalchemy.orm import Session
from debate_archive.auth import Identity
from debate_archive.config import Settings
from debate_archive.services.verifiers import VerifierRegistry


class ModerationCapability:
    def is_moderator(self, identity: Identity) -> bool:
        raise NotImplementedError


class AllowlistCapability(ModerationCapability):
    def __init__(self, registry: VerifierRegistry):
        self.registry = registry

    def is_moderator(self, identity: Identity) -> bool:
        return self.registry.is_verifier(identity.user_id)


class RoleClaimCapability(ModerationCapability):
    def __init__(self, moderator_roles: Iterable[str]):
        self.moderator_roles = frozenset(moderator_roles)

    def is_moderator(self, identity: Identity) -> bool:
        return bool(identity.roles & self.moderator_roles)


def build_capability(settings: Settings, db: Session) -> ModerationCapability:
    if settings.MODERATION_CAPABILITY == "role_claim":
        return RoleClaimCapability(settings.MODERATOR_ROLES)
    return AllowlistCapability(VerifierRegistry(db, salt=settings.IDENTIFIER_HASH_SALT))
