# tests/services/test_relationships.py
"""Tests for the relationship state machine and the messaging gate."""

import uuid

import pytest
from sqlalchemy import func, select, update

from securechat.core.errors import (
    AlreadyFriendsError,
    AuthorizationError,
    BlockedByOtherError,
    DenialReason,
    InvalidStateError,
    NotFoundError,
    RequestAlreadyExistsError,
    SelfRequestError,
    YouBlockedThemError,
)
from securechat.models import Message, Relationship, RelationshipStatus
from securechat.services import RelationshipEngine
from securechat.services.pairs import PairLocks, canonicalize, get_pair_locks


def _row_count(db_session) -> int:
    return db_session.scalar(select(func.count()).select_from(Relationship))


def _store_message(message_store, db_session, sender, receiver, text="Zm9v") -> Message:
    message = message_store.save(
        Message(sender_id=sender.id, receiver_id=receiver.id, ciphertext=text, nonce="bm9uY2U=")
    )
    db_session.commit()
    return message


class TestSendRequest:
    def test_creates_pending_row(self, relationships, alice, bob) -> None:
        row = relationships.send_request(alice.id, bob.id)

        assert row.requester_id == alice.id
        assert row.addressee_id == bob.id
        assert row.status is RelationshipStatus.PENDING
        assert row.action_user_id == alice.id
        assert (row.pair_low, row.pair_high) == (
            canonicalize(alice.id, bob.id).low,
            canonicalize(alice.id, bob.id).high,
        )

    def test_rejects_self(self, relationships, alice) -> None:
        with pytest.raises(SelfRequestError):
            relationships.send_request(alice.id, alice.id)

    def test_rejects_unknown_identity(self, relationships, alice) -> None:
        with pytest.raises(NotFoundError):
            relationships.send_request(alice.id, uuid.uuid4())

    def test_duplicate_same_direction(self, relationships, alice, bob) -> None:
        relationships.send_request(alice.id, bob.id)
        with pytest.raises(RequestAlreadyExistsError):
            relationships.send_request(alice.id, bob.id)

    def test_duplicate_reverse_direction(self, relationships, db_session, alice, bob) -> None:
        relationships.send_request(alice.id, bob.id)
        with pytest.raises(RequestAlreadyExistsError):
            relationships.send_request(bob.id, alice.id)
        assert _row_count(db_session) == 1

    def test_already_friends(self, relationships, befriend, alice, bob) -> None:
        befriend(alice, bob)
        with pytest.raises(AlreadyFriendsError):
            relationships.send_request(bob.id, alice.id)

    def test_blocked_pair_distinguishes_sides(self, relationships, alice, bob) -> None:
        relationships.block_user(bob.id, alice.id)

        with pytest.raises(BlockedByOtherError):
            relationships.send_request(alice.id, bob.id)
        with pytest.raises(YouBlockedThemError):
            relationships.send_request(bob.id, alice.id)


class TestAcceptAndDecline:
    def test_accept_sets_accepted_by_addressee(self, relationships, alice, bob) -> None:
        relationships.send_request(alice.id, bob.id)
        row = relationships.accept_request(alice.id, bob.id)

        assert row.status is RelationshipStatus.ACCEPTED
        assert row.action_user_id == bob.id

    def test_accept_missing_request(self, relationships, alice, bob) -> None:
        with pytest.raises(NotFoundError):
            relationships.accept_request(alice.id, bob.id)

    def test_accept_lookup_is_directional(self, relationships, alice, bob) -> None:
        relationships.send_request(alice.id, bob.id)
        # The requester cannot accept by swapping the roles.
        with pytest.raises(NotFoundError):
            relationships.accept_request(bob.id, alice.id)

    def test_accept_by_wrong_caller(self, relationships, alice, bob) -> None:
        relationships.send_request(alice.id, bob.id)
        with pytest.raises(AuthorizationError):
            relationships.accept_request(alice.id, bob.id, caller_id=alice.id)

    def test_accept_non_pending(self, relationships, befriend, alice, bob) -> None:
        befriend(alice, bob)
        with pytest.raises(InvalidStateError):
            relationships.accept_request(alice.id, bob.id)

    def test_decline_deletes_row(self, relationships, db_session, alice, bob) -> None:
        relationships.send_request(alice.id, bob.id)
        declined = relationships.decline_request(alice.id, bob.id)

        assert declined.status is RelationshipStatus.DECLINED
        assert declined.requester_id == alice.id
        assert relationships.find_between(alice.id, bob.id) is None
        assert _row_count(db_session) == 0

    def test_request_after_decline_starts_fresh(self, relationships, alice, bob) -> None:
        relationships.send_request(alice.id, bob.id)
        relationships.decline_request(alice.id, bob.id)

        row = relationships.send_request(alice.id, bob.id)
        assert row.status is RelationshipStatus.PENDING

    def test_decline_by_wrong_caller(self, relationships, alice, bob, carol) -> None:
        relationships.send_request(alice.id, bob.id)
        with pytest.raises(AuthorizationError):
            relationships.decline_request(alice.id, bob.id, caller_id=carol.id)
        assert relationships.find_between(alice.id, bob.id) is not None


class TestUnfriend:
    def test_unfriend_purges_messages_and_row(
        self, relationships, message_store, db_session, befriend, alice, bob, carol
    ) -> None:
        befriend(alice, bob)
        befriend(alice, carol)
        _store_message(message_store, db_session, alice, bob)
        _store_message(message_store, db_session, bob, alice)
        _store_message(message_store, db_session, alice, carol)

        relationships.unfriend(bob.id, alice.id)

        assert relationships.find_between(alice.id, bob.id) is None
        assert message_store.count_between(alice.id, bob.id) == 0
        assert message_store.count_between(alice.id, carol.id) == 1

    def test_unfriend_without_row(self, relationships, alice, bob) -> None:
        with pytest.raises(NotFoundError):
            relationships.unfriend(alice.id, bob.id)

    def test_unfriend_pending(self, relationships, alice, bob) -> None:
        relationships.send_request(alice.id, bob.id)
        with pytest.raises(InvalidStateError):
            relationships.unfriend(alice.id, bob.id)

    def test_unfriend_failure_keeps_messages(
        self, relationships, message_store, db_session, befriend, alice, bob, mocker
    ) -> None:
        befriend(alice, bob)
        _store_message(message_store, db_session, alice, bob)
        mocker.patch.object(db_session, "delete", side_effect=RuntimeError("disk full"))

        with pytest.raises(RuntimeError):
            relationships.unfriend(alice.id, bob.id)

        assert message_store.count_between(alice.id, bob.id) == 1
        assert relationships.find_between(alice.id, bob.id).status is RelationshipStatus.ACCEPTED


class TestBlocking:
    def test_block_without_row_uses_canonical_order(self, relationships, alice, bob) -> None:
        key = canonicalize(alice.id, bob.id)
        row = relationships.block_user(bob.id, alice.id)

        assert (row.requester_id, row.addressee_id) == (key.low, key.high)
        assert row.status is RelationshipStatus.BLOCKED
        assert row.action_user_id == bob.id

    def test_block_reuses_existing_row(self, relationships, db_session, befriend, alice, bob) -> None:
        befriend(alice, bob)
        row = relationships.block_user(bob.id, alice.id)

        assert row.requester_id == alice.id
        assert row.status is RelationshipStatus.BLOCKED
        assert _row_count(db_session) == 1

    def test_block_is_idempotent(self, relationships, db_session, alice, bob) -> None:
        first = relationships.block_user(alice.id, bob.id)
        second = relationships.block_user(alice.id, bob.id)

        assert first is second
        assert second.action_user_id == alice.id
        assert _row_count(db_session) == 1

    def test_block_pending_request(self, relationships, alice, bob) -> None:
        relationships.send_request(alice.id, bob.id)
        row = relationships.block_user(bob.id, alice.id)
        assert row.status is RelationshipStatus.BLOCKED

    def test_block_self(self, relationships, alice) -> None:
        with pytest.raises(SelfRequestError):
            relationships.block_user(alice.id, alice.id)

    def test_block_unblock_cycles_keep_one_row(self, relationships, db_session, alice, bob) -> None:
        for blocker, blocked in ((alice, bob), (bob, alice), (alice, bob)):
            relationships.block_user(blocker.id, blocked.id)
            relationships.unblock_user(blocker.id, blocked.id)
        assert _row_count(db_session) == 1

    def test_unblock_restores_friendship(self, relationships, alice, bob) -> None:
        relationships.block_user(alice.id, bob.id)
        row = relationships.unblock_user(alice.id, bob.id)

        assert row.status is RelationshipStatus.ACCEPTED
        assert row.action_user_id is None
        assert relationships.check_authorized(bob.id, alice.id).allowed

    def test_only_blocker_can_unblock(self, relationships, alice, bob) -> None:
        relationships.block_user(alice.id, bob.id)
        with pytest.raises(AuthorizationError):
            relationships.unblock_user(bob.id, alice.id)

    def test_unblock_not_blocked(self, relationships, befriend, alice, bob) -> None:
        befriend(alice, bob)
        with pytest.raises(InvalidStateError):
            relationships.unblock_user(alice.id, bob.id)

    def test_unblock_without_row(self, relationships, alice, bob) -> None:
        with pytest.raises(NotFoundError):
            relationships.unblock_user(alice.id, bob.id)


class TestCheckAuthorized:
    def test_strangers(self, relationships, alice, bob) -> None:
        verdict = relationships.check_authorized(alice.id, bob.id)
        assert not verdict.allowed
        assert verdict.reason is DenialReason.NOT_FRIENDS

    def test_pending(self, relationships, alice, bob) -> None:
        relationships.send_request(alice.id, bob.id)
        assert relationships.check_authorized(bob.id, alice.id).reason is DenialReason.NOT_FRIENDS

    def test_accepted_both_directions(self, relationships, befriend, alice, bob) -> None:
        befriend(alice, bob)
        assert relationships.check_authorized(alice.id, bob.id).allowed
        assert relationships.check_authorized(bob.id, alice.id).allowed

    def test_blocked_reason_depends_on_caller(self, relationships, befriend, alice, bob) -> None:
        befriend(alice, bob)
        relationships.block_user(alice.id, bob.id)

        assert relationships.check_authorized(alice.id, bob.id).reason is DenialReason.YOU_BLOCKED_PEER
        assert relationships.check_authorized(bob.id, alice.id).reason is DenialReason.BLOCKED_BY_PEER

    def test_same_identity_is_denied(self, relationships, alice) -> None:
        assert not relationships.check_authorized(alice.id, alice.id).allowed


class TestListings:
    def test_list_friends_includes_blocked_and_keys(
        self, relationships, identities, befriend, alice, bob, carol, signing_public_key
    ) -> None:
        identities.set_signing_key(carol, signing_public_key)
        befriend(alice, carol)
        befriend(bob, alice)
        relationships.block_user(alice.id, bob.id)

        entries = relationships.list_friends(alice.id)

        assert [(e.username, e.status) for e in entries] == [
            ("carol", RelationshipStatus.ACCEPTED),
            ("bob", RelationshipStatus.BLOCKED),
        ]
        assert entries[0].signing_public_key == signing_public_key
        assert entries[1].nickname == "Bob"

    def test_list_friends_excludes_pending(self, relationships, alice, bob) -> None:
        relationships.send_request(alice.id, bob.id)
        assert relationships.list_friends(alice.id) == []

    def test_list_pending_incoming(self, relationships, alice, bob, carol) -> None:
        relationships.send_request(alice.id, carol.id)
        relationships.send_request(bob.id, carol.id)

        pending = relationships.list_pending_incoming(carol.id)

        assert [p.username for p in pending] == ["alice", "bob"]
        assert pending[0].requester_id == alice.id
        assert relationships.list_pending_incoming(alice.id) == []


class TestTransaction:
    def test_duplicate_insert_is_reported_as_conflict(self, relationships, db_session, alice, bob) -> None:
        relationships.send_request(alice.id, bob.id)
        key = canonicalize(alice.id, bob.id)

        with pytest.raises(RequestAlreadyExistsError):
            with relationships.transaction(bob.id, alice.id):
                db_session.add(
                    Relationship(
                        requester_id=bob.id,
                        addressee_id=alice.id,
                        pair_low=key.low,
                        pair_high=key.high,
                        status=RelationshipStatus.PENDING,
                    )
                )

        assert _row_count(db_session) == 1
        assert len(relationships.locks) == 0

    def test_error_rolls_back_staged_changes(self, relationships, db_session, alice, bob) -> None:
        relationships.send_request(alice.id, bob.id)

        with pytest.raises(InvalidStateError):
            with relationships.transaction(alice.id, bob.id):
                row = relationships.find_between(alice.id, bob.id)
                row.status = RelationshipStatus.ACCEPTED
                raise InvalidStateError()

        assert relationships.find_between(alice.id, bob.id).status is RelationshipStatus.PENDING

    def test_injected_lock_table_is_used_even_when_empty(self, db_session, alice, bob) -> None:
        locks = PairLocks()
        engine = RelationshipEngine(db_session, locks=locks)

        assert engine.locks is locks
        assert engine.locks is not get_pair_locks()
        with engine.transaction(alice.id, bob.id):
            assert len(locks) == 1
        assert len(locks) == 0

    def test_gate_rereads_rows_changed_behind_the_session(self, relationships, db_session, alice, bob) -> None:
        relationships.send_request(alice.id, bob.id)
        row = relationships.find_between(alice.id, bob.id)
        assert row.status is RelationshipStatus.PENDING
        db_session.execute(
            update(Relationship)
            .where(Relationship.requester_id == alice.id)
            .values(status=RelationshipStatus.BLOCKED, action_user_id=bob.id)
            .execution_options(synchronize_session=False)
        )

        verdict = relationships.check_authorized(alice.id, bob.id)

        assert verdict.reason is DenialReason.BLOCKED_BY_PEER
