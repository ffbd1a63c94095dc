"""
Verifiers router: check, grant and revoke moderation access.

Business rules:
1. Any signed-in user may ask whether they are a verifier
2. Only existing verifiers may add or remove verifiers
3. The allow-list holds hashes only; the plaintext id is never stored
"""
from fastapi import APIRouter, Query
from debate_archive.dependencies import CurrentIdentity, Registry, VerifierIdentity
from debate_archive.errors import NotFound
from debate_archive.schemas import VerifierChangeResponse, VerifierCreate, VerifierStatusResponse

router = APIRouter()


@router.get(
    "/verifiers",
    response_model=VerifierStatusResponse,
    summary="Am I a verifier?",
    responses={401: {"description": "Not authenticated"}}
)
async def get_verifier_status(identity: CurrentIdentity, registry: Registry):
    """
    Reports allow-list membership of the caller and the hash stored for
    their id (useful to operators seeding the list).
    """
    return VerifierStatusResponse(
        is_verifier=registry.is_verifier(identity.user_id),
        hashed_id=registry.hash_identifier(identity.user_id),
    )


@router.post(
    "/verifiers",
    response_model=VerifierChangeResponse,
    summary="Grant verifier access",
    responses={
        400: {"description": "User ID required"},
        401: {"description": "Not authenticated"},
        403: {"description": "Verifier access required"}
    }
)
async def add_verifier(request: VerifierCreate, verifier: VerifierIdentity, registry: Registry):
    """
    Idempotent: granting an existing verifier succeeds and keeps the
    original grant record.
    """
    created = registry.add_verifier(request.clerk_user_id, verifier.user_id)
    return VerifierChangeResponse(
        success=True,
        message="Verifier added successfully" if created else "Already a verifier",
        hashed_id=registry.hash_identifier(request.clerk_user_id),
    )


@router.delete(
    "/verifiers",
    response_model=VerifierChangeResponse,
    summary="Revoke verifier access",
    responses={
        401: {"description": "Not authenticated"},
        403: {"description": "Verifier access required"},
        404: {"description": "Not a verifier"}
    }
)
async def remove_verifier(
    verifier: VerifierIdentity,
    registry: Registry,
    clerk_user_id: str = Query(..., min_length=1),
):
    if not registry.remove_verifier(clerk_user_id):
        raise NotFound("Verifier not found")
    return VerifierChangeResponse(success=True, message="Verifier removed successfully")
