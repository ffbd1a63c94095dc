from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List, Literal, Optional

class Settings(BaseSettings):
    """
    Application configuration loaded from environment variables.

    Security: SECRET_KEY must be 32+ bytes. Fails loudly if missing.
    Session tokens are issued by the external identity provider; this
    service only verifies them (HS256 with SECRET_KEY, or RS256 with
    SESSION_TOKEN_PUBLIC_KEY).
    """
    SECRET_KEY: str
    DATABASE_URL: str = "sqlite:///./debate_archive.db"

    # Identity provider session tokens
    SESSION_TOKEN_ALGORITHM: Literal["HS256", "RS256"] = "HS256"
    SESSION_TOKEN_PUBLIC_KEY: Optional[str] = None
    SESSION_TOKEN_ISSUER: Optional[str] = None
    SESSION_TOKEN_AUDIENCE: Optional[str] = None
    SESSION_TOKEN_EXPIRE_MINUTES: int = 60  # Only used when minting dev/test tokens

    # Moderation capability
    MODERATION_CAPABILITY: Literal["allowlist", "role_claim"] = "allowlist"
    ROLE_CLAIM: str = "role"
    MODERATOR_ROLES: List[str] = ["admin", "verifier"]
    IDENTIFIER_HASH_SALT: str = ""

    # Rate limits
    SUBMIT_ACTOR_LIMIT: int = 5
    SUBMIT_IP_LIMIT: int = 10
    SUBMIT_WINDOW_MINUTES: int = 10
    VOTE_ACTOR_LIMIT: int = 10
    VOTE_IP_LIMIT: int = 20
    VOTE_WINDOW_MINUTES: int = 1
    RATE_LIMIT_RETENTION_HOURS: int = 24

    # Business rules
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100
    MAX_VERSES_PER_SUBMISSION: int = 500

    # Runtime
    LOG_LEVEL: str = "INFO"
    SQL_ECHO: bool = False
    AUTO_CREATE_TABLES: bool = True
    CORS_ORIGINS: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Validate SECRET_KEY length (prevents weak keys)
        if len(self.SECRET_KEY) < 32:
            raise ValueError(
                "SECRET_KEY must be at least 32 characters. "
                "Generate with: openssl rand -hex 32"
            )

        if not self.DATABASE_URL.startswith(("sqlite:///", "postgresql")):
            raise ValueError(
                "DATABASE_URL must start with sqlite:/// or postgresql"
            )

        if self.SESSION_TOKEN_ALGORITHM == "RS256" and not self.SESSION_TOKEN_PUBLIC_KEY:
            raise ValueError(
                "SESSION_TOKEN_PUBLIC_KEY is required when SESSION_TOKEN_ALGORITHM is RS256"
            )

        for name in (
            "SUBMIT_ACTOR_LIMIT", "SUBMIT_IP_LIMIT", "SUBMIT_WINDOW_MINUTES",
            "VOTE_ACTOR_LIMIT", "VOTE_IP_LIMIT", "VOTE_WINDOW_MINUTES",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")

        if not (1 <= self.DEFAULT_PAGE_SIZE <= self.MAX_PAGE_SIZE):
            raise ValueError(
                "DEFAULT_PAGE_SIZE must be between 1 and MAX_PAGE_SIZE"
            )

@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings singleton.
    Why cached: Settings loaded once at startup, reused across requests.
    """
    return Settings()
