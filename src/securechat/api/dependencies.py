"""Shared API dependencies for authentication and service wiring."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from securechat.db.session import get_db
from securechat.models import User
from securechat.services.auth import AuthService
from securechat.services.files import FileStorageService
from securechat.services.identity import IdentityStore
from securechat.services.messaging import MessagingService
from securechat.services.relationships import RelationshipEngine
from securechat.services.sessions import SessionRegistry, get_session_registry

# Missing credentials are reported by AuthService so every auth failure is a 401.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_registry() -> SessionRegistry:
    """Return the process-wide session registry."""
    return get_session_registry()


RegistryDep = Annotated[SessionRegistry, Depends(get_registry)]


def get_identity_store(db: SessionDep) -> IdentityStore:
    return IdentityStore(db)


def get_auth_service(db: SessionDep) -> AuthService:
    return AuthService(db)


def get_relationship_engine(db: SessionDep) -> RelationshipEngine:
    return RelationshipEngine(db)


def get_messaging_service(db: SessionDep, registry: RegistryDep) -> MessagingService:
    return MessagingService(db, registry=registry)


def get_file_storage(db: SessionDep) -> FileStorageService:
    return FileStorageService(db)


IdentityStoreDep = Annotated[IdentityStore, Depends(get_identity_store)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
RelationshipEngineDep = Annotated[RelationshipEngine, Depends(get_relationship_engine)]
MessagingServiceDep = Annotated[MessagingService, Depends(get_messaging_service)]
FileStorageDep = Annotated[FileStorageService, Depends(get_file_storage)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    auth: AuthServiceDep,
) -> User:
    """Get the current authenticated user from the bearer token.

    Raises:
        InvalidTokenError: If the token is missing, invalid or names no user
    """
    token = credentials.credentials if credentials is not None else None
    return auth.validate_session_token(token)


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]
