import asyncio
import threading
import time

from fastapi.testclient import TestClient

from gatekeeper.roles.engine import RoleAssignmentEngine
from gatekeeper.verification.app import create_app
from gatekeeper.verification.flow import VERIFICATION_MESSAGE, VerificationFlow
from gatekeeper.verification.passport import PassportScore
from gatekeeper.verification.session import SessionStore

WALLET = "0x1111111111111111111111111111111111111111"


class _Passport:
    def get_score(self, address):
        return PassportScore(address=address, score=20.0, passing=True, last_score_timestamp=None)


def _client(gateway, passport=_Passport()):
    engine = RoleAssignmentEngine(gateway, guild_id="1", minimum_score=10, verified_role="Verified+")
    flow = VerificationFlow(SessionStore(), engine, passport, recover_address=lambda message, sig: WALLET)
    return TestClient(create_app(flow)), flow


def test_full_wallet_verification_over_http(gateway):
    client, flow = _client(gateway)
    session = flow.start("U123")

    r = client.get(f"/session/{session.session_id}")
    assert r.status_code == 200
    assert r.json()["walletConnected"] is False
    assert r.json()["status"] == "initiated"

    r = client.post("/connect-wallet", json={"sessionId": session.session_id, "walletAddress": WALLET})
    assert r.status_code == 200
    assert r.json()["message"] == VERIFICATION_MESSAGE
    assert r.json()["status"] == "wallet_connected"

    r = client.post("/verify-signature", json={"sessionId": session.session_id, "signature": "0xsig"})
    assert r.status_code == 200
    body = r.json()
    assert body["verified"] is True
    assert body["roleAssigned"] is True
    assert body["score"] == 20.0
    assert body["sessionStatus"] == "verified_complete"

    r = client.get(f"/status/{session.session_id}")
    assert r.json()["signatureReceived"] is True
    assert r.json()["minimumRequiredScore"] == 10
    assert "Verified+" in gateway.members["U123"]


def test_reused_link_is_rejected(gateway):
    client, flow = _client(gateway)
    session = flow.start("U123")
    client.post("/verify-signature", json={"sessionId": session.session_id, "signature": "0xsig"})

    r = client.post("/verify-signature", json={"sessionId": session.session_id, "signature": "0xsig"})
    assert r.status_code == 400
    assert client.get(f"/status/{session.session_id}").json()["status"] == "used"


def test_unknown_session_is_404(gateway):
    client, _ = _client(gateway)
    assert client.get("/session/missing").status_code == 404
    assert client.get("/status/missing").status_code == 404
    r = client.post("/connect-wallet", json={"sessionId": "missing", "walletAddress": WALLET})
    assert r.status_code == 404


def test_bad_wallet_address_is_400(gateway):
    client, flow = _client(gateway)
    session = flow.start("U123")
    r = client.post("/connect-wallet", json={"sessionId": session.session_id, "walletAddress": "0x123"})
    assert r.status_code == 400


def test_missing_score_provider_is_503(gateway):
    client, flow = _client(gateway, passport=None)
    session = flow.start("U123")
    r = client.post("/verify-signature", json={"sessionId": session.session_id, "signature": "0xsig"})
    assert r.status_code == 503


def test_routes_touch_the_store_on_the_event_loop(gateway):
    seen = []

    def clock():
        try:
            asyncio.get_running_loop()
            seen.append("loop")
        except RuntimeError:
            seen.append(threading.current_thread().name)
        return time.time()

    engine = RoleAssignmentEngine(gateway, guild_id="1", minimum_score=10, verified_role="Verified+")
    flow = VerificationFlow(SessionStore(clock=clock), engine, _Passport(), recover_address=lambda m, s: WALLET)
    client = TestClient(create_app(flow))
    session = flow.start("U123")
    seen.clear()

    client.get("/healthz")
    client.get(f"/session/{session.session_id}")
    client.post("/connect-wallet", json={"sessionId": session.session_id, "walletAddress": WALLET})
    client.post("/verify-signature", json={"sessionId": session.session_id, "signature": "0xsig"})
    client.get(f"/status/{session.session_id}")

    assert seen
    assert set(seen) == {"loop"}


def test_healthz_reports_live_sessions(gateway):
    client, flow = _client(gateway)
    flow.start("U123")
    r = client.get("/healthz")
    assert r.json() == {"ok": True, "sessions": 1, "ttl_seconds": 1800}
