"""Friend request, friendship and block endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from securechat.api.dependencies import CurrentUserDep, IdentityStoreDep, RelationshipEngineDep
from securechat.models import Relationship, User
from securechat.schemas.relationship import (
    AuthorizationStatusResponse,
    FriendRequestCreate,
    FriendStatusResponse,
    PeerRequest,
    PendingRequestResponse,
    RelationshipResponse,
)

router = APIRouter(prefix="/friendships", tags=["friendships"])


def _relationship_response(row: Relationship, first: User, second: User, message: str) -> RelationshipResponse:
    """Describe ``row`` using the usernames of its two participants."""
    by_id = {first.id: first.username, second.id: second.username}
    return RelationshipResponse(
        requester_username=by_id[row.requester_id],
        addressee_username=by_id[row.addressee_id],
        status=row.status,
        action_username=by_id.get(row.action_user_id) if row.action_user_id else None,
        message=message,
    )


@router.post("/requests", response_model=RelationshipResponse, status_code=status.HTTP_201_CREATED)
async def send_friend_request(
    payload: FriendRequestCreate,
    current_user: CurrentUserDep,
    identities: IdentityStoreDep,
    engine: RelationshipEngineDep,
) -> RelationshipResponse:
    """Send a friend request to another user."""
    addressee = identities.get_by_username(payload.addressee_username)
    row = engine.send_request(current_user.id, addressee.id)
    return _relationship_response(row, current_user, addressee, "Friend request sent successfully")


@router.put("/requests/accept", response_model=RelationshipResponse)
async def accept_friend_request(
    payload: PeerRequest,
    current_user: CurrentUserDep,
    identities: IdentityStoreDep,
    engine: RelationshipEngineDep,
) -> RelationshipResponse:
    """Accept the pending request ``payload.username`` sent to the caller."""
    requester = identities.get_by_username(payload.username)
    row = engine.accept_request(requester.id, current_user.id, caller_id=current_user.id)
    return _relationship_response(row, requester, current_user, "Friend request accepted")


@router.put("/requests/decline", response_model=RelationshipResponse)
async def decline_friend_request(
    payload: PeerRequest,
    current_user: CurrentUserDep,
    identities: IdentityStoreDep,
    engine: RelationshipEngineDep,
) -> RelationshipResponse:
    requester = identities.get_by_username(payload.username)
    row = engine.decline_request(requester.id, current_user.id, caller_id=current_user.id)
    return _relationship_response(row, requester, current_user, "Friend request declined")


@router.get("/requests/pending", response_model=list[PendingRequestResponse])
async def list_pending_requests(
    current_user: CurrentUserDep,
    engine: RelationshipEngineDep,
) -> list[PendingRequestResponse]:
    """List incoming requests awaiting the caller's decision."""
    return [
        PendingRequestResponse.model_validate(entry)
        for entry in engine.list_pending_incoming(current_user.id)
    ]


@router.get("/my-friends", response_model=list[FriendStatusResponse])
async def list_my_friends(
    current_user: CurrentUserDep,
    engine: RelationshipEngineDep,
) -> list[FriendStatusResponse]:
    """List friends and blocked peers with their public keys."""
    return [FriendStatusResponse.model_validate(entry) for entry in engine.list_friends(current_user.id)]


@router.delete("/unfriend", response_model=RelationshipResponse)
async def unfriend(
    payload: PeerRequest,
    current_user: CurrentUserDep,
    identities: IdentityStoreDep,
    engine: RelationshipEngineDep,
) -> RelationshipResponse:
    """End a friendship and delete the conversation history with that user."""
    peer = identities.get_by_username(payload.username)
    row = engine.unfriend(current_user.id, peer.id)
    return _relationship_response(row, current_user, peer, "Friend removed and chat history deleted")


@router.post("/block", response_model=RelationshipResponse)
async def block_user(
    payload: PeerRequest,
    current_user: CurrentUserDep,
    identities: IdentityStoreDep,
    engine: RelationshipEngineDep,
) -> RelationshipResponse:
    peer = identities.get_by_username(payload.username)
    row = engine.block_user(current_user.id, peer.id)
    return _relationship_response(row, current_user, peer, "User has been blocked")


@router.post("/unblock", response_model=RelationshipResponse)
async def unblock_user(
    payload: PeerRequest,
    current_user: CurrentUserDep,
    identities: IdentityStoreDep,
    engine: RelationshipEngineDep,
) -> RelationshipResponse:
    """Lift a block the caller placed; the friendship is restored."""
    peer = identities.get_by_username(payload.username)
    row = engine.unblock_user(current_user.id, peer.id)
    return _relationship_response(row, current_user, peer, "User has been unblocked")


@router.get("/status/{username}", response_model=AuthorizationStatusResponse)
async def messaging_status(
    username: str,
    current_user: CurrentUserDep,
    identities: IdentityStoreDep,
    engine: RelationshipEngineDep,
) -> AuthorizationStatusResponse:
    """Report whether the caller may currently message ``username``."""
    peer = identities.get_by_username(username)
    verdict = engine.check_authorized(current_user.id, peer.id)
    return AuthorizationStatusResponse(
        username=peer.username,
        allowed=verdict.allowed,
        reason=verdict.reason.value if verdict.reason else None,
    )
