"""Credential hashing, session token and public key helpers."""

from __future__ import annotations

import base64
import binascii
from datetime import UTC, datetime, timedelta
from typing import Any

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PublicKey
from jose import JWTError, jwt

from securechat.core.settings import settings

PUBKEY_LENGTH_BYTES = 32

_password_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    """Return an argon2id hash of ``password``."""
    return _password_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Return True if ``password`` matches the stored hash."""
    try:
        return _password_hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def create_access_token(subject: str, extra_claims: dict[str, str] | None = None) -> str:
    """Create a signed JWT whose ``sub`` claim is ``subject``."""
    to_encode: dict[str, Any] = {"sub": subject}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str) -> str | None:
    """Return the subject of a valid token, or None if it cannot be trusted."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None
    subject = payload.get("sub")
    return subject if isinstance(subject, str) else None


def _decode_key_bytes(encoded: str) -> bytes:
    """Decode base64 (standard or URL-safe, padding optional) or hex key text."""
    cleaned = encoded.strip()
    errors: list[str] = []
    padded = cleaned + "=" * (-len(cleaned) % 4)
    for decoder in (base64.b64decode, base64.urlsafe_b64decode):
        try:
            result = decoder(padded)
        except (binascii.Error, ValueError) as err:
            errors.append(str(err))
            continue
        if len(result) == PUBKEY_LENGTH_BYTES:
            return result
        errors.append("public keys must be 32 bytes")
    try:
        result = bytes.fromhex(cleaned)
    except ValueError as err:
        errors.append(str(err))
    else:
        if len(result) == PUBKEY_LENGTH_BYTES:
            return result
        errors.append("public keys must be 32 bytes")
    raise ValueError(f"Invalid public key format: {'; '.join(errors)}")


def validate_signing_public_key(encoded: str) -> bytes:
    """Validate an Ed25519 public key and return its raw bytes."""
    raw = _decode_key_bytes(encoded)
    Ed25519PublicKey.from_public_bytes(raw)
    return raw


def validate_key_exchange_public_key(encoded: str) -> bytes:
    """Validate an X25519 public key and return its raw bytes."""
    raw = _decode_key_bytes(encoded)
    X25519PublicKey.from_public_bytes(raw)
    return raw
