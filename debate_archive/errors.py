"""
Domain error taxonomy.

Services raise these; create_app() registers one handler that renders
them as {"detail": message} with the class status code. Routers never
build error responses by hand.
"""
from typing import Dict, Optional
from fastapi import status


class ArchiveError(Exception):
    """Base class for errors that map onto an HTTP response."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "Internal error"

    def __init__(self, detail: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        self.detail = detail or self.detail
        self.headers = headers
        super().__init__(self.detail)


class AuthenticationRequired(ArchiveError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Authentication required"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationDenied(ArchiveError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Verifier access required"


class ValidationFailed(ArchiveError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid request"


class NotFound(ArchiveError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Not found"


class Conflict(ArchiveError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Conflict"


class EntryLocked(Conflict):
    detail = "Entry is locked; content edits are not allowed"


class RateLimited(ArchiveError):
    """
    Distinct from ValidationFailed so clients back off instead of
    correcting input. Retry-After carries the window length.
    """
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    detail = "Rate limit exceeded"

    def __init__(self, retry_after_seconds: int, detail: Optional[str] = None):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(detail, headers={"Retry-After": str(retry_after_seconds)})


class StoreFailure(ArchiveError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "Store failure"
