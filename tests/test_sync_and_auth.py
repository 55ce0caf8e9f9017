"""Change broadcasting, token handling and auth-session cleanup."""
import asyncio
from datetime import datetime, timedelta

import pytest
from jose import JWTError

from spellquest import sync
from spellquest.cleanup import purge_stale_sessions
from spellquest.models import AuthSession
from spellquest.security import create_access_token, decode_access_token, hash_password, verify_password
from spellquest.store import ChangeNotifier, Store


class FakeSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send_json(self, payload):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(payload)


@pytest.fixture
def sockets():
    yield
    for ws in list(sync._subscribers):
        sync.unsubscribe(ws)


@pytest.mark.unit
class TestSync:
    @pytest.mark.asyncio
    async def test_broadcast_drops_dead_sockets(self, sockets):
        alive, dead = FakeSocket(), FakeSocket(fail=True)
        sync.subscribe(alive)
        sync.subscribe(dead)
        await sync.broadcast({"type": "DATA_UPDATE", "timestamp": 1})
        assert alive.sent == [{"type": "DATA_UPDATE", "timestamp": 1}]
        assert sync.subscriber_count() == 1

    def test_change_outside_loop_is_skipped(self, sockets):
        ws = FakeSocket()
        sync.subscribe(ws)
        notifier = ChangeNotifier()
        detach = sync.attach(notifier)
        notifier.notify()
        detach()
        assert ws.sent == []

    @pytest.mark.asyncio
    async def test_store_write_reaches_socket(self, sockets, db):
        ws = FakeSocket()
        sync.subscribe(ws)
        notifier = ChangeNotifier()
        detach = sync.attach(notifier)
        try:
            Store(db, notifier).create_class("Room 9", "t1")
            # let the scheduled broadcast run
            for _ in range(3):
                await asyncio.sleep(0)
        finally:
            detach()
        assert ws.sent and ws.sent[-1]["type"] == "DATA_UPDATE"

    @pytest.mark.asyncio
    async def test_pending_broadcast_is_held_until_done(self, sockets, db):
        ws = FakeSocket()
        sync.subscribe(ws)
        notifier = ChangeNotifier()
        detach = sync.attach(notifier)
        try:
            Store(db, notifier).create_class("Room 12", "t1")
            assert len(sync._pending) == 1
            await asyncio.gather(*sync._pending)
        finally:
            detach()
        assert ws.sent[-1]["type"] == "DATA_UPDATE"
        assert not sync._pending


@pytest.mark.unit
class TestSecurity:
    def test_token_round_trip(self):
        token = create_access_token({"sub": "s1", "role": "STUDENT", "jti": "abc"})
        payload = decode_access_token(token)
        assert (payload["sub"], payload["role"], payload["jti"]) == ("s1", "STUDENT", "abc")

    def test_expired_token(self):
        token = create_access_token({"sub": "s1"}, expires_delta=timedelta(seconds=-5))
        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_password_hash(self):
        hashed = hash_password("kiwi-secret")
        assert verify_password("kiwi-secret", hashed) is True
        assert verify_password("wrong", hashed) is False
        assert verify_password("kiwi-secret", "") is False


@pytest.mark.unit
class TestCleanup:
    def test_purges_only_stale_sessions(self, db):
        old = datetime.utcnow() - timedelta(days=40)
        db.add_all([
            AuthSession(session_id="stale", subject_id="s1", role="STUDENT", created_at=old, last_activity_at=old),
            AuthSession(session_id="never-used", subject_id="s2", role="STUDENT", created_at=old, last_activity_at=None),
            AuthSession(session_id="fresh", subject_id="t1", role="TEACHER", created_at=old, last_activity_at=datetime.utcnow()),
        ])
        db.commit()
        assert purge_stale_sessions(db, days=30) == 2
        assert [row.session_id for row in db.query(AuthSession).all()] == ["fresh"]
