"""Identity and authentication Pydantic schemas."""

import uuid

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """Schema for registering a new identity."""

    username: str = Field(..., min_length=1, max_length=64, description="Unique, immutable login handle")
    password: str = Field(..., description="Plain password; only its hash is stored")
    nickname: str | None = Field(None, max_length=128, description="Display name, defaults to username")


class LoginRequest(BaseModel):
    """Schema for login submissions."""

    username: str
    password: str


class AuthResponse(BaseModel):
    """Session token returned after registration or login."""

    access_token: str = Field(..., description="JWT session token")
    token_type: str = Field("bearer", description="Token type (always 'bearer')")
    username: str


class UserResponse(BaseModel):
    """Public profile of an identity."""

    id: uuid.UUID
    username: str
    nickname: str

    model_config = ConfigDict(from_attributes=True)


class NicknameUpdateRequest(BaseModel):
    """Schema for changing the caller's display name."""

    nickname: str = Field(..., min_length=1, max_length=128)


class PublicKeyUploadRequest(BaseModel):
    """Schema for uploading one public key (base64 or hex, raw 32 bytes)."""

    public_key: str = Field(..., min_length=1)


class UserPublicKeysResponse(BaseModel):
    """Public key material a peer needs to encrypt for and verify an identity."""

    username: str
    nickname: str
    signing_public_key: str | None
    key_exchange_public_key: str | None

    model_config = ConfigDict(from_attributes=True)


class PublicKeyResponse(BaseModel):
    """A single public key of an identity."""

    username: str
    public_key: str
