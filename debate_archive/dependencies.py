"""
FastAPI dependency injection for database sessions, identity and
moderation capability.
Design principles:
1. Dependencies are stateless (no side effects)
2. Each dependency has a single responsibility
3. Auth failures raise domain errors (the app's handlers render them)
4. Database sessions auto-close via the get_db generator
"""
from fastapi import Depends, Query, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Annotated, Optional
from debate_archive.auth import Identity, decode_session_token, hash_identifier, identity_from_claims
from debate_archive.config import Settings
from debate_archive.database import get_db
from debate_archive.errors import AuthenticationRequired, AuthorizationDenied, ValidationFailed
from debate_archive.services.capabilities import ModerationCapability, build_capability
from debate_archive.services.rate_limiter import RateLimiter
from debate_archive.services.verifiers import VerifierRegistry

# =======================================
# SETTINGS / DATABASE DEPENDENCIES
# =======================================

def get_app_settings(request: Request) -> Settings:
    """Settings the app was built with (see create_app)."""
    return request.app.state.settings

AppSettings = Annotated[Settings, Depends(get_app_settings)]

# Type alias for cleaner endpoint signatures
DbSession = Annotated[Session, Depends(get_db)]

# ===============================
# AUTHENTICATION DEPENDENCIES
# ==============================

# HTTP Bearer token scheme (Authorization: Bearer <token>)
# auto_error=False: a missing header must be 401, not FastAPI's default
security = HTTPBearer(
    scheme_name="Bearer",
    description="Identity provider session token",
    auto_error=False
)


async def get_current_identity(
    settings: AppSettings,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    """
    Verify the session token and return the caller's Identity.

    Failure modes:
    - Missing token -> 401
    - Invalid/expired token -> decode_session_token returns None -> 401
    - Token without a subject -> 401
    """
    if credentials is None:
        raise AuthenticationRequired("Unauthorized")

    payload = decode_session_token(credentials.credentials, settings)
    if payload is None:
        raise AuthenticationRequired("Invalid or expired token")

    identity = identity_from_claims(payload, settings)
    if identity is None:
        raise AuthenticationRequired("Invalid token payload")
    return identity

# Type alias for authenticated endpoints
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]

# ===================================
# AUTHORIZATION DEPENDENCIES
# ==================================

def get_capability(settings: AppSettings, db: DbSession) -> ModerationCapability:
    return build_capability(settings, db)


async def require_verifier(
    identity: CurrentIdentity,
    capability: Annotated[ModerationCapability, Depends(get_capability)],
) -> Identity:
    """
    Enforce moderator-only access.
    Runs after authentication (dependency chain), before any store write.
    Non-moderator -> 403.
    """
    if not capability.is_moderator(identity):
        raise AuthorizationDenied("Verifier access required")
    return identity

# Type alias for verifier-only endpoints
VerifierIdentity = Annotated[Identity, Depends(require_verifier)]

# ============================================================
# SERVICES
# ===============================================================

def get_verifier_registry(settings: AppSettings, db: DbSession) -> VerifierRegistry:
    return VerifierRegistry(db, salt=settings.IDENTIFIER_HASH_SALT)

Registry = Annotated[VerifierRegistry, Depends(get_verifier_registry)]


def get_rate_limiter(request: Request, settings: AppSettings, db: DbSession) -> RateLimiter:
    return RateLimiter(db, clock=request.app.state.clock, salt=settings.IDENTIFIER_HASH_SALT)

Limiter = Annotated[RateLimiter, Depends(get_rate_limiter)]

# ============================================================
# HELPER FUNCTIONS
# ===============================================================

def client_ip(request: Request) -> str:
    """
    First X-Forwarded-For hop, else X-Real-IP, else the socket peer.
    Only ever used hashed.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_ip_hash(request: Request) -> str:
    # Plain SHA-256, no salt: IP hashes are compared across tables only
    return hash_identifier(client_ip(request))

IpHash = Annotated[str, Depends(get_ip_hash)]


class Pagination:
    def __init__(self, limit: int, offset: int):
        self.limit = limit
        self.offset = offset


def get_pagination(
    settings: AppSettings,
    limit: Optional[int] = Query(None),
    offset: int = Query(0),
) -> Pagination:
    """
    Limit constraints:
    - Defaults to DEFAULT_PAGE_SIZE
    - Min 1, max MAX_PAGE_SIZE (prevents oversized responses)
    """
    if limit is None:
        limit = settings.DEFAULT_PAGE_SIZE
    if limit < 1:
        raise ValidationFailed("Limit must be >= 1")
    if limit > settings.MAX_PAGE_SIZE:
        raise ValidationFailed(f"Limit max {settings.MAX_PAGE_SIZE}")
    if offset < 0:
        raise ValidationFailed("Offset must be >= 0")
    return Pagination(limit=limit, offset=offset)

PageParams = Annotated[Pagination, Depends(get_pagination)]
