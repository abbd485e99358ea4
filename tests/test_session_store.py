import pytest

from gatekeeper.verification.session import SessionStatus, SessionStore


def test_session_readable_until_ttl_boundary(clock):
    store = SessionStore(ttl_seconds=1800, clock=clock)
    created = store.create("s1", "U123")
    assert created is not None
    assert created.status == SessionStatus.INITIATED

    clock.advance(1799.9)
    assert store.get("s1") is not None

    clock.advance(0.2)
    assert store.get("s1") is None
    assert store.find_latest_by_owner("U123") is None
    assert len(store) == 0


def test_create_rejects_live_duplicate_but_allows_after_expiry(clock):
    store = SessionStore(ttl_seconds=60, clock=clock)
    assert store.create("s1", "U1") is not None
    assert store.create("s1", "U2") is None
    assert store.get("s1").owner_id == "U1"

    clock.advance(61)
    again = store.create("s1", "U2")
    assert again is not None
    assert again.owner_id == "U2"


def test_patch_missing_or_expired_never_creates(clock):
    store = SessionStore(ttl_seconds=60, clock=clock)
    assert store.patch("nope", score=1.0) is False
    assert store.get("nope") is None

    store.create("s1", "U1")
    clock.advance(60)
    assert store.patch("s1", status=SessionStatus.WALLET_CONNECTED) is False
    assert store.get("s1") is None
    assert len(store) == 0


def test_patch_merges_fields_and_keeps_identity(clock):
    store = SessionStore(clock=clock)
    store.create("s1", "U1")
    clock.advance(10)

    assert store.patch("s1", wallet_address="0xabc", status=SessionStatus.WALLET_CONNECTED)
    assert store.patch("s1", score=12.5)

    s = store.get("s1")
    assert s.wallet_address == "0xabc"
    assert s.score == 12.5
    assert s.status == SessionStatus.WALLET_CONNECTED
    assert s.owner_id == "U1"
    assert s.created_at == clock.now - 10


def test_patch_refuses_identity_fields(clock):
    store = SessionStore(clock=clock)
    store.create("s1", "U1")
    with pytest.raises(TypeError):
        store.patch("s1", owner_id="U2")
    with pytest.raises(TypeError):
        store.patch("s1", created_at=0)


def test_patch_refuses_unknown_fields(clock):
    store = SessionStore(clock=clock)
    store.create("s1", "U1")
    with pytest.raises(TypeError):
        store.patch("s1", nonce="abc")
    assert not hasattr(store.get("s1"), "nonce")


def test_get_returns_snapshot(clock):
    store = SessionStore(clock=clock)
    store.create("s1", "U1")
    snap = store.get("s1")
    snap.score = 99.0
    assert store.get("s1").score is None


def test_find_latest_by_owner_prefers_newest_live_session(clock):
    store = SessionStore(ttl_seconds=100, clock=clock)
    store.create("old", "U1")
    clock.advance(50)
    store.create("new", "U1")
    store.create("other", "U2")

    assert store.find_latest_by_owner("U1").session_id == "new"

    clock.advance(60)  # "old" expired, "new" still live
    assert store.find_latest_by_owner("U1").session_id == "new"
    assert store.get("old") is None

    clock.advance(50)
    assert store.find_latest_by_owner("U1") is None
