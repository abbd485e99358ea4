import asyncio

import pytest

from gatekeeper.errors import InputValidationError, MissingConfiguration, PassportError, SessionNotFound
from gatekeeper.roles.engine import RoleAssignmentEngine
from gatekeeper.verification.flow import VERIFICATION_MESSAGE, VerificationFlow
from gatekeeper.verification.passport import PassportScore
from gatekeeper.verification.session import SessionStatus, SessionStore

WALLET = "0x1111111111111111111111111111111111111111"


class _Passport:
    def __init__(self, score=None, error=None):
        self.score = score
        self.error = error
        self.calls = []

    def get_score(self, address):
        self.calls.append(address)
        if self.error is not None:
            raise self.error
        return PassportScore(address=address, score=self.score, passing=True, last_score_timestamp=123.0)


def _recover(message, signature):
    assert message == VERIFICATION_MESSAGE
    return WALLET


def _flow(gateway, passport, minimum=10.0):
    engine = RoleAssignmentEngine(gateway, guild_id="1", minimum_score=minimum, verified_role="Verified+")
    return VerificationFlow(SessionStore(), engine, passport, recover_address=_recover)


def test_high_score_completes_and_grants_role(gateway):
    flow = _flow(gateway, _Passport(score=15))
    session = flow.start("U123")
    flow.connect_wallet(session.session_id, WALLET)

    done = asyncio.run(flow.submit_signature(session.session_id, "0xsig"))
    assert done.status == SessionStatus.VERIFIED_COMPLETE
    assert done.role_assigned is True
    assert done.score == 15
    assert done.wallet_address == WALLET
    assert done.last_score_timestamp == 123.0
    assert "Verified+" in gateway.members["U123"]


def test_low_score_fails_and_removes_role(gateway):
    gateway.members["U123"].add("Verified+")
    flow = _flow(gateway, _Passport(score=5))
    session = flow.start("U123")

    done = asyncio.run(flow.submit_signature(session.session_id, "0xsig"))
    assert done.status == SessionStatus.VERIFICATION_FAILED_SCORE
    assert done.role_assigned is False
    assert "Verified+" not in gateway.members["U123"]


def test_score_provider_failure_marks_error(gateway):
    flow = _flow(gateway, _Passport(error=PassportError("down", status=503)))
    session = flow.start("U123")
    done = asyncio.run(flow.submit_signature(session.session_id, "0xsig"))
    assert done.status == SessionStatus.VERIFICATION_ERROR
    assert gateway.adds == []


def test_role_failure_marks_error(gateway):
    gateway.fail_mutations = True
    flow = _flow(gateway, _Passport(score=50))
    session = flow.start("U123")
    done = asyncio.run(flow.submit_signature(session.session_id, "0xsig"))
    assert done.status == SessionStatus.VERIFICATION_ERROR
    assert done.role_assigned is False


def test_completed_session_is_marked_used(gateway):
    flow = _flow(gateway, _Passport(score=50))
    session = flow.start("U123")
    asyncio.run(flow.submit_signature(session.session_id, "0xsig"))

    with pytest.raises(InputValidationError):
        asyncio.run(flow.submit_signature(session.session_id, "0xsig"))
    assert flow.store.get(session.session_id).status == SessionStatus.USED


def test_signature_must_match_connected_wallet(gateway):
    passport = _Passport(score=50)
    flow = _flow(gateway, passport)
    session = flow.start("U123")
    flow.connect_wallet(session.session_id, "0x2222222222222222222222222222222222222222")

    with pytest.raises(InputValidationError):
        asyncio.run(flow.submit_signature(session.session_id, "0xsig"))
    assert passport.calls == []


def test_malformed_wallet_rejected_before_session_lookup(gateway):
    flow = _flow(gateway, _Passport(score=1))
    with pytest.raises(InputValidationError):
        flow.connect_wallet("does-not-exist", "not-an-address")
    with pytest.raises(SessionNotFound):
        flow.connect_wallet("does-not-exist", WALLET)


def test_unconfigured_score_provider(gateway):
    flow = _flow(gateway, None)
    session = flow.start("U123")
    with pytest.raises(MissingConfiguration):
        asyncio.run(flow.submit_signature(session.session_id, "0xsig"))


def test_latest_for_returns_newest_session(gateway, clock):
    engine = RoleAssignmentEngine(gateway, guild_id="1", minimum_score=10, verified_role="Verified+")
    flow = VerificationFlow(SessionStore(clock=clock), engine, _Passport(score=1), recover_address=_recover)
    flow.start("U123")
    clock.advance(5)
    newest = flow.start("U123")

    assert flow.latest_for("U123").session_id == newest.session_id
    assert flow.latest_for("nobody") is None
