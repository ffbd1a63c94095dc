"""
Identity provider session tokens and one-way identifier hashing.

Authentication itself is delegated to the external identity provider.
This module only verifies the bearer tokens it issues and turns them
into an Identity. create_session_token() mints equivalent tokens for
local development and tests (HS256 with SECRET_KEY).
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import FrozenSet, Optional
import hashlib
import jwt
from debate_archive.config import Settings, get_settings


@dataclass(frozen=True)
class Identity:
    """Authenticated caller: stable opaque user id plus optional role claims."""
    user_id: str
    roles: FrozenSet[str] = field(default_factory=frozenset)


def hash_identifier(value: str, salt: str = "") -> str:
    """
    One-way SHA-256 hex digest of a user id or IP address.
    With an empty salt this matches a plain sha256(value) digest.
    """
    return hashlib.sha256((salt + value).encode("utf-8")).hexdigest()


def create_session_token(
    user_id: str,
    roles: Optional[list] = None,
    expires_delta: Optional[timedelta] = None,
    settings: Optional[Settings] = None,
) -> str:
    """
    Generate a session token shaped like the identity provider's.
    Token structure:
    {
    "sub": "user_2abc...",          # Subject (user identifier)
    "role": "verifier",             # Optional role claim (ROLE_CLAIM)
    "exp": 1234567890               # Expiration (UTC timestamp)
    }
    Only HS256 tokens can be minted locally.
    """
    settings = settings or get_settings()
    to_encode = {"sub": user_id}
    if roles:
        to_encode[settings.ROLE_CLAIM] = roles[0] if len(roles) == 1 else list(roles)
    if settings.SESSION_TOKEN_ISSUER:
        to_encode["iss"] = settings.SESSION_TOKEN_ISSUER
    if settings.SESSION_TOKEN_AUDIENCE:
        to_encode["aud"] = settings.SESSION_TOKEN_AUDIENCE

    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.SESSION_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm="HS256")


def decode_session_token(token: str, settings: Optional[Settings] = None) -> Optional[dict]:
    """
    Validate and decode a session token.
    Returns payload if valid, None otherwise.
    Failure modes:
    - Expired token -> jwt.ExpiredSignatureError
    - Invalid signature / issuer / audience -> jwt.InvalidTokenError
    - Malformed token -> jwt.DecodeError

    All exceptions caught and return None (fail-safe).
    """
    settings = settings or get_settings()
    if settings.SESSION_TOKEN_ALGORITHM == "RS256":
        key = settings.SESSION_TOKEN_PUBLIC_KEY
    else:
        key = settings.SECRET_KEY

    options = {"require": ["exp", "sub"]}
    kwargs = {}
    if settings.SESSION_TOKEN_ISSUER:
        kwargs["issuer"] = settings.SESSION_TOKEN_ISSUER
    if settings.SESSION_TOKEN_AUDIENCE:
        kwargs["audience"] = settings.SESSION_TOKEN_AUDIENCE
    else:
        options["verify_aud"] = False

    try:
        return jwt.decode(
            token,
            key,
            algorithms=[settings.SESSION_TOKEN_ALGORITHM],
            options=options,
            **kwargs
        )
    except jwt.ExpiredSignatureError:
        # Token expired (normal once the provider session lapses)
        return None
    except jwt.InvalidTokenError:
        # Tampered/malformed token
        return None


def identity_from_claims(payload: dict, settings: Optional[Settings] = None) -> Optional[Identity]:
    """
    Build an Identity from decoded claims. The role claim may be a string
    or a list; it may also be nested under "metadata" / "public_metadata"
    as some providers do.
    """
    settings = settings or get_settings()
    user_id = payload.get("sub")
    if not user_id or not isinstance(user_id, str):
        return None

    raw_roles = payload.get(settings.ROLE_CLAIM)
    if raw_roles is None:
        for container in ("metadata", "public_metadata"):
            nested = payload.get(container)
            if isinstance(nested, dict) and settings.ROLE_CLAIM in nested:
                raw_roles = nested[settings.ROLE_CLAIM]
                break

    if isinstance(raw_roles, str):
        roles = frozenset([raw_roles])
    elif isinstance(raw_roles, (list, tuple)):
        roles = frozenset(r for r in raw_roles if isinstance(r, str))
    else:
        roles = frozenset()

    return Identity(user_id=user_id, roles=roles)
