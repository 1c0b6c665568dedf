"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .file import FileUploadResponse
from .message import MessageResponse, SendMessageRequest
from .relationship import (
    AuthorizationStatusResponse,
    FriendRequestCreate,
    FriendStatusResponse,
    PeerRequest,
    PendingRequestResponse,
    RelationshipResponse,
)
from .user import (
    AuthResponse,
    LoginRequest,
    NicknameUpdateRequest,
    PublicKeyResponse,
    PublicKeyUploadRequest,
    RegisterRequest,
    UserPublicKeysResponse,
    UserResponse,
)

__all__ = [
    "FileUploadResponse",
    "MessageResponse", "SendMessageRequest",
    "AuthorizationStatusResponse", "FriendRequestCreate", "FriendStatusResponse",
    "PeerRequest", "PendingRequestResponse", "RelationshipResponse",
    "AuthResponse", "LoginRequest", "NicknameUpdateRequest", "PublicKeyResponse", "PublicKeyUploadRequest",
    "RegisterRequest", "UserPublicKeysResponse", "UserResponse",
]
