"""Relationship engine: the friendship/block state machine.

This module is the only writer of relationship rows and the sole authority on
whether two identities may exchange messages. Every mutation on a pair runs
under that pair's lock and inside a single database transaction, so a friend
request and a block on the same pair can never interleave.

State transitions::

    (none) --send_request--> PENDING --accept--> ACCEPTED --unfriend--> (none)
                              |                     |
                              +--decline--> (none)  +--block--> BLOCKED
    (any or none) --block--> BLOCKED --unblock (blocker only)--> ACCEPTED
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from securechat.core.errors import (
    AlreadyFriendsError,
    AuthorizationError,
    BlockedByOtherError,
    DenialReason,
    InvalidStateError,
    NotFoundError,
    RequestAlreadyExistsError,
    SecureChatError,
    SelfRequestError,
    YouBlockedThemError,
)
from securechat.db.time import as_utc, utcnow
from securechat.models import Relationship, RelationshipStatus, User
from securechat.services.message_store import MessageStore
from securechat.services.pairs import PairKey, PairLocks, canonicalize, get_pair_locks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Authorization:
    """Outcome of the messaging gate."""

    allowed: bool
    reason: DenialReason | None = None

    @classmethod
    def ok(cls) -> Authorization:
        return cls(allowed=True)

    @classmethod
    def denied(cls, reason: DenialReason) -> Authorization:
        return cls(allowed=False, reason=reason)


@dataclass(frozen=True)
class FriendEntry:
    """A friend or blocked peer as seen from one identity."""

    id: uuid.UUID
    username: str
    nickname: str
    status: RelationshipStatus
    signing_public_key: str | None
    key_exchange_public_key: str | None


@dataclass(frozen=True)
class PendingRequest:
    """An incoming request awaiting the addressee's decision."""

    requester_id: uuid.UUID
    username: str
    nickname: str
    sent_at: datetime


class RelationshipEngine:
    """Owns every relationship transition and the messaging gate."""

    def __init__(
        self,
        db: Session,
        message_store: MessageStore | None = None,
        locks: PairLocks | None = None,
    ) -> None:
        self.db = db
        self.message_store = message_store if message_store is not None else MessageStore(db)
        self.locks = locks if locks is not None else get_pair_locks()

    # --- unit of work -------------------------------------------------------------

    @contextmanager
    def transaction(
        self,
        user_a: uuid.UUID,
        user_b: uuid.UUID,
        *,
        conflict: type[SecureChatError] = RequestAlreadyExistsError,
    ) -> Iterator[PairKey]:
        """Serialize work on one pair and commit it atomically.

        The pair lock orders threads of this process; ``_lock_row`` makes
        other processes sharing the database wait until the commit or
        rollback finishes. A unique constraint violation means another
        process created the pair's row first; it is reported as ``conflict``.
        """
        key = canonicalize(user_a, user_b)
        with self.locks.hold(key):
            try:
                self._lock_row(key)
                yield key
                self.db.commit()
            except IntegrityError as err:
                self.db.rollback()
                logger.warning("Concurrent write on pair %s/%s rejected", key.low, key.high)
                raise conflict() from err
            except Exception:
                self.db.rollback()
                raise

    def _lock_row(self, key: PairKey) -> None:
        """Take the database write lock on the pair before its row is read.

        A self-assignment UPDATE locks the row on PostgreSQL and takes the
        database write lock on SQLite, where ``SELECT ... FOR UPDATE`` is a
        no-op. A pair with no row yet relies on ``uq_relationship_pair``.
        """
        self.db.execute(
            update(Relationship)
            .where(Relationship.pair_low == key.low, Relationship.pair_high == key.high)
            .values(updated_at=Relationship.updated_at)
            .execution_options(synchronize_session=False)
        )

    # --- lookups ------------------------------------------------------------------

    def find_between(self, user_a: uuid.UUID, user_b: uuid.UUID) -> Relationship | None:
        """Return the pair's row regardless of who requested whom."""
        if user_a == user_b:
            return None
        key = canonicalize(user_a, user_b)
        return self.db.scalar(
            select(Relationship)
            .where(
                Relationship.pair_low == key.low,
                Relationship.pair_high == key.high,
            )
            .execution_options(populate_existing=True)
        )

    def _find_directed(self, requester_id: uuid.UUID, addressee_id: uuid.UUID) -> Relationship | None:
        return self.db.get(Relationship, (requester_id, addressee_id), populate_existing=True)

    def _require_user(self, user_id: uuid.UUID) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def _snapshot(row: Relationship, status: RelationshipStatus, action_user_id: uuid.UUID | None) -> Relationship:
        """Return a transient copy describing a row that is about to be deleted."""
        return Relationship(
            requester_id=row.requester_id,
            addressee_id=row.addressee_id,
            pair_low=row.pair_low,
            pair_high=row.pair_high,
            status=status,
            action_user_id=action_user_id,
            created_at=row.created_at,
            updated_at=utcnow(),
        )

    # --- friend requests ----------------------------------------------------------

    def send_request(self, requester_id: uuid.UUID, addressee_id: uuid.UUID) -> Relationship:
        """Create a PENDING relationship from ``requester_id`` to ``addressee_id``.

        Raises:
            SelfRequestError: both ids are the same
            NotFoundError: either identity is missing
            BlockedByOtherError: the addressee has blocked the requester
            YouBlockedThemError: the requester has blocked the addressee
            AlreadyFriendsError: the pair is already ACCEPTED
            RequestAlreadyExistsError: a PENDING/DECLINED row exists in either direction
        """
        if requester_id == addressee_id:
            raise SelfRequestError("You cannot send a friend request to yourself")
        requester = self._require_user(requester_id)
        addressee = self._require_user(addressee_id)

        with self.transaction(requester_id, addressee_id) as key:
            existing = self.find_between(requester_id, addressee_id)
            if existing is not None:
                logger.warning(
                    "Cannot send request from '%s' to '%s': relationship exists with status %s",
                    requester.username,
                    addressee.username,
                    existing.status.value,
                )
                if existing.status is RelationshipStatus.BLOCKED:
                    if existing.action_user_id == addressee_id:
                        raise BlockedByOtherError(
                            "You are blocked by this user and cannot send a friend request"
                        )
                    raise YouBlockedThemError(
                        "You have blocked this user. Please unblock them to send a request"
                    )
                if existing.status is RelationshipStatus.ACCEPTED:
                    raise AlreadyFriendsError()
                raise RequestAlreadyExistsError()

            row = Relationship(
                requester_id=requester_id,
                addressee_id=addressee_id,
                pair_low=key.low,
                pair_high=key.high,
                status=RelationshipStatus.PENDING,
                action_user_id=requester_id,
            )
            self.db.add(row)

        logger.info("Friend request from '%s' to '%s' created", requester.username, addressee.username)
        return row

    def _pending_request(
        self,
        requester_id: uuid.UUID,
        addressee_id: uuid.UUID,
        caller_id: uuid.UUID,
        verb: str,
    ) -> Relationship:
        row = self._find_directed(requester_id, addressee_id)
        if row is None:
            raise NotFoundError("Friend request not found")
        if row.status is not RelationshipStatus.PENDING:
            raise InvalidStateError(
                f"This friend request is not pending. Current status: {row.status.value}"
            )
        if row.addressee_id != caller_id:
            logger.warning("User %s tried to %s a request addressed to %s", caller_id, verb, row.addressee_id)
            raise AuthorizationError(f"You are not authorized to {verb} this request")
        return row

    def accept_request(
        self,
        requester_id: uuid.UUID,
        addressee_id: uuid.UUID,
        caller_id: uuid.UUID | None = None,
    ) -> Relationship:
        """Accept the request ``requester_id`` sent to ``addressee_id``.

        Only the exact ``(requester, addressee)`` row is considered, so a
        requester cannot accept their own request. ``caller_id`` defaults to
        the addressee; any other caller is rejected with ``AuthorizationError``.
        """
        if requester_id == addressee_id:
            raise SelfRequestError("You cannot accept a request from yourself")
        caller_id = addressee_id if caller_id is None else caller_id
        self._require_user(requester_id)
        self._require_user(addressee_id)
        with self.transaction(requester_id, addressee_id):
            row = self._pending_request(requester_id, addressee_id, caller_id, "accept")
            row.status = RelationshipStatus.ACCEPTED
            row.action_user_id = addressee_id

        logger.info("Friend request %s -> %s accepted", requester_id, addressee_id)
        return row

    def decline_request(
        self,
        requester_id: uuid.UUID,
        addressee_id: uuid.UUID,
        caller_id: uuid.UUID | None = None,
    ) -> Relationship:
        """Decline and delete the request; returns a transient DECLINED copy."""
        if requester_id == addressee_id:
            raise SelfRequestError("You cannot decline a request from yourself")
        caller_id = addressee_id if caller_id is None else caller_id
        self._require_user(requester_id)
        self._require_user(addressee_id)
        with self.transaction(requester_id, addressee_id):
            row = self._pending_request(requester_id, addressee_id, caller_id, "decline")
            declined = self._snapshot(row, RelationshipStatus.DECLINED, addressee_id)
            self.db.delete(row)

        logger.info("Friend request %s -> %s declined and removed", requester_id, addressee_id)
        return declined

    # --- established relationships ------------------------------------------------

    def unfriend(self, user_a: uuid.UUID, user_b: uuid.UUID) -> Relationship:
        """End an ACCEPTED friendship and purge the pair's conversation.

        Messages are deleted before the relationship row, in the same
        transaction; either both disappear or neither does.
        """
        if user_a == user_b:
            raise SelfRequestError("You cannot unfriend yourself")
        self._require_user(user_a)
        self._require_user(user_b)
        with self.transaction(user_a, user_b):
            row = self.find_between(user_a, user_b)
            if row is None:
                raise NotFoundError("Friendship record not found")
            if row.status is not RelationshipStatus.ACCEPTED:
                logger.warning(
                    "Unfriend %s/%s refused: status is %s", user_a, user_b, row.status.value
                )
                raise InvalidStateError("You can only unfriend someone who is currently your friend")
            purged = self.message_store.purge_conversation(user_a, user_b)
            removed = self._snapshot(row, row.status, user_a)
            self.db.delete(row)

        logger.info("User %s unfriended %s; %d messages purged", user_a, user_b, purged)
        return removed

    def block_user(self, blocker_id: uuid.UUID, blocked_id: uuid.UUID) -> Relationship:
        """Mark the pair BLOCKED by ``blocker_id``.

        An existing row is reused in place. Otherwise a new row is created
        with the canonical ordering, independent of who blocks, so repeated
        block/unblock cycles never produce a second row. Blocking a pair that
        the caller already blocked is a no-op.
        """
        if blocker_id == blocked_id:
            raise SelfRequestError("You cannot block yourself")
        self._require_user(blocker_id)
        self._require_user(blocked_id)
        with self.transaction(blocker_id, blocked_id, conflict=InvalidStateError) as key:
            row = self.find_between(blocker_id, blocked_id)
            if row is None:
                row = Relationship(
                    requester_id=key.low,
                    addressee_id=key.high,
                    pair_low=key.low,
                    pair_high=key.high,
                )
                self.db.add(row)
            elif row.status is RelationshipStatus.BLOCKED and row.action_user_id == blocker_id:
                logger.debug("Pair %s/%s already blocked by %s", key.low, key.high, blocker_id)
                return row
            row.status = RelationshipStatus.BLOCKED
            row.action_user_id = blocker_id

        logger.info("User %s blocked %s", blocker_id, blocked_id)
        return row

    def unblock_user(self, caller_id: uuid.UUID, blocked_id: uuid.UUID) -> Relationship:
        """Lift a block; only the original blocker may do so.

        Unblocking restores the pair to ACCEPTED with no action user.
        """
        if caller_id == blocked_id:
            raise SelfRequestError("You cannot unblock yourself")
        self._require_user(caller_id)
        self._require_user(blocked_id)
        with self.transaction(caller_id, blocked_id, conflict=InvalidStateError):
            row = self.find_between(caller_id, blocked_id)
            if row is None:
                raise NotFoundError("No relationship record found with this user")
            if row.status is not RelationshipStatus.BLOCKED:
                raise InvalidStateError("This user is not blocked")
            if row.action_user_id != caller_id:
                logger.warning(
                    "User %s tried to unblock %s but the block belongs to %s",
                    caller_id,
                    blocked_id,
                    row.action_user_id,
                )
                raise AuthorizationError("Only the user who initiated the block can unblock")
            row.status = RelationshipStatus.ACCEPTED
            row.action_user_id = None

        logger.info("User %s unblocked %s; friendship restored", caller_id, blocked_id)
        return row

    # --- gate and listings --------------------------------------------------------

    def check_authorized(self, user_a: uuid.UUID, user_b: uuid.UUID) -> Authorization:
        """Decide whether ``user_a`` may exchange messages with ``user_b``."""
        row = self.find_between(user_a, user_b)
        if row is None or row.status in (RelationshipStatus.PENDING, RelationshipStatus.DECLINED):
            logger.warning("Messaging denied between %s and %s: not friends", user_a, user_b)
            return Authorization.denied(DenialReason.NOT_FRIENDS)
        if row.status is RelationshipStatus.BLOCKED:
            reason = (
                DenialReason.YOU_BLOCKED_PEER
                if row.action_user_id == user_a
                else DenialReason.BLOCKED_BY_PEER
            )
            logger.warning(
                "Messaging denied between %s and %s: blocked by %s", user_a, user_b, row.action_user_id
            )
            return Authorization.denied(reason)
        return Authorization.ok()

    def list_friends(self, user_id: uuid.UUID) -> list[FriendEntry]:
        """Return accepted friends first, then blocked peers, each by username."""
        self._require_user(user_id)
        rows: Sequence[Relationship] = self.db.scalars(
            select(Relationship)
            .where(
                or_(Relationship.requester_id == user_id, Relationship.addressee_id == user_id),
                Relationship.status.in_((RelationshipStatus.ACCEPTED, RelationshipStatus.BLOCKED)),
            )
            .options(selectinload(Relationship.requester), selectinload(Relationship.addressee))
        ).all()

        entries = []
        for row in rows:
            peer = row.addressee if row.requester_id == user_id else row.requester
            entries.append(
                FriendEntry(
                    id=peer.id,
                    username=peer.username,
                    nickname=peer.nickname,
                    status=row.status,
                    signing_public_key=peer.signing_public_key,
                    key_exchange_public_key=peer.key_exchange_public_key,
                )
            )
        entries.sort(key=lambda entry: (entry.status is not RelationshipStatus.ACCEPTED, entry.username))
        return entries

    def list_pending_incoming(self, user_id: uuid.UUID) -> list[PendingRequest]:
        """Return requests addressed to ``user_id`` that are still PENDING."""
        self._require_user(user_id)
        rows = self.db.scalars(
            select(Relationship)
            .where(
                Relationship.addressee_id == user_id,
                Relationship.status == RelationshipStatus.PENDING,
            )
            .options(selectinload(Relationship.requester))
            .order_by(Relationship.created_at.asc())
        ).all()
        return [
            PendingRequest(
                requester_id=row.requester_id,
                username=row.requester.username,
                nickname=row.requester.nickname,
                sent_at=as_utc(row.created_at),
            )
            for row in rows
        ]
