"""Authentication endpoints for the SecureChat API."""

from __future__ import annotations

from fastapi import APIRouter, status

from securechat.api.dependencies import AuthServiceDep, IdentityStoreDep
from securechat.schemas.user import AuthResponse, LoginRequest, RegisterRequest

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    identities: IdentityStoreDep,
    auth: AuthServiceDep,
) -> AuthResponse:
    """Register a new identity and return a session token for it."""
    user = identities.register(payload.username, payload.password, payload.nickname)
    return AuthResponse(access_token=auth.issue_session_token(user), username=user.username)


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, auth: AuthServiceDep) -> AuthResponse:
    """Exchange a username and password for a session token."""
    user = auth.authenticate(payload.username, payload.password)
    return AuthResponse(access_token=auth.issue_session_token(user), username=user.username)
