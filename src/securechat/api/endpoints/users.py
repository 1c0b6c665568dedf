"""Profile, public key and user search endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query

from securechat.api.dependencies import CurrentUserDep, IdentityStoreDep
from securechat.schemas.user import (
    NicknameUpdateRequest,
    PublicKeyResponse,
    PublicKeyUploadRequest,
    UserPublicKeysResponse,
    UserResponse,
)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def read_me(current_user: CurrentUserDep) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    payload: NicknameUpdateRequest,
    current_user: CurrentUserDep,
    identities: IdentityStoreDep,
) -> UserResponse:
    """Change the caller's display name."""
    user = identities.update_nickname(current_user, payload.nickname)
    return UserResponse.model_validate(user)


@router.put("/me/keys/signing", response_model=UserPublicKeysResponse)
async def upload_signing_key(
    payload: PublicKeyUploadRequest,
    current_user: CurrentUserDep,
    identities: IdentityStoreDep,
) -> UserPublicKeysResponse:
    """Store the caller's Ed25519 public key."""
    user = identities.set_signing_key(current_user, payload.public_key)
    return UserPublicKeysResponse.model_validate(user)


@router.put("/me/keys/key-exchange", response_model=UserPublicKeysResponse)
async def upload_key_exchange_key(
    payload: PublicKeyUploadRequest,
    current_user: CurrentUserDep,
    identities: IdentityStoreDep,
) -> UserPublicKeysResponse:
    """Store the caller's X25519 public key."""
    user = identities.set_key_exchange_key(current_user, payload.public_key)
    return UserPublicKeysResponse.model_validate(user)


@router.get("/search", response_model=list[UserResponse])
async def search_users(
    current_user: CurrentUserDep,
    identities: IdentityStoreDep,
    q: str = Query(..., min_length=1, description="Username prefix"),
) -> list[UserResponse]:
    users = identities.search(q, exclude=current_user.id)
    return [UserResponse.model_validate(user) for user in users]


@router.get("/{username}/keys", response_model=UserPublicKeysResponse)
async def read_public_keys(
    username: str,
    current_user: CurrentUserDep,
    identities: IdentityStoreDep,
) -> UserPublicKeysResponse:
    """Return whatever key material ``username`` has uploaded so far."""
    user = identities.get_public_keys(username)
    return UserPublicKeysResponse.model_validate(user)


@router.get("/{username}/keys/signing", response_model=PublicKeyResponse)
async def read_signing_key(
    username: str,
    current_user: CurrentUserDep,
    identities: IdentityStoreDep,
) -> PublicKeyResponse:
    """Return ``username``'s Ed25519 key; 404 until it is uploaded."""
    return PublicKeyResponse(username=username, public_key=identities.get_signing_key(username))


@router.get("/{username}/keys/key-exchange", response_model=PublicKeyResponse)
async def read_key_exchange_key(
    username: str,
    current_user: CurrentUserDep,
    identities: IdentityStoreDep,
) -> PublicKeyResponse:
    """Return ``username``'s X25519 key; 404 until it is uploaded."""
    return PublicKeyResponse(username=username, public_key=identities.get_key_exchange_key(username))
