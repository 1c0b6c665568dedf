# tests/test_db.py
from datetime import UTC, datetime, timedelta, timezone

from sqlalchemy import delete, func, select

from securechat.db.time import as_utc, utcnow
from securechat.models import Message, Relationship, User


def _count(db_session, model) -> int:
    return db_session.scalar(select(func.count()).select_from(model))


def test_deleting_identity_cascades(db_session, relationships, message_store, befriend, alice, bob, carol) -> None:
    befriend(alice, bob)
    relationships.block_user(carol.id, bob.id)
    message_store.save(Message(sender_id=alice.id, receiver_id=bob.id, ciphertext="Zm9v", nonce="bm9uY2U="))
    db_session.commit()

    db_session.execute(delete(User).where(User.id == bob.id))
    db_session.commit()

    assert _count(db_session, Relationship) == 0
    assert _count(db_session, Message) == 0


def test_as_utc() -> None:
    naive = datetime(2024, 5, 1, 12, 30)
    shifted = datetime(2024, 5, 1, 14, 30, tzinfo=timezone(timedelta(hours=2)))

    assert as_utc(naive) == datetime(2024, 5, 1, 12, 30, tzinfo=UTC)
    assert as_utc(shifted).tzinfo is UTC
    assert as_utc(shifted) == as_utc(naive)
    assert utcnow().tzinfo is UTC
