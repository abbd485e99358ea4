import asyncio

from gatekeeper.roles.engine import RoleAssignmentEngine
from gatekeeper.roles.requests import AssignNamedRole, AssignRoles, ReconcileScore
from gatekeeper.verification.session import SessionStore


def _engine(gateway, *, guild_id="1", minimum_score=10.0, notifier=None):
    return RoleAssignmentEngine(
        gateway,
        guild_id=guild_id,
        minimum_score=minimum_score,
        verified_role="Verified+",
        notifier=notifier,
    )


def test_named_role_is_idempotent(gateway):
    engine = _engine(gateway)
    assert asyncio.run(engine.assign(AssignNamedRole("U123", "Guardian"))) is True
    assert asyncio.run(engine.assign(AssignNamedRole("U123", "Guardian"))) is True
    assert gateway.adds == [("U123", "Guardian")]
    assert "Guardian" in gateway.members["U123"]


def test_missing_guild_id_fails_without_platform_calls(gateway):
    engine = _engine(gateway, guild_id=None)
    assert asyncio.run(engine.assign(AssignNamedRole("U123", "Guardian"))) is False
    assert asyncio.run(engine.assign(ReconcileScore("U123", 50))) is False
    assert gateway.adds == []


def test_missing_entities_fail(gateway):
    assert asyncio.run(_engine(gateway, guild_id="999").assign(AssignNamedRole("U123", "Guardian"))) is False
    assert asyncio.run(_engine(gateway).assign(AssignNamedRole("U123", "NoSuchRole"))) is False
    assert asyncio.run(_engine(gateway).assign(AssignNamedRole("ghost", "Guardian"))) is False
    assert gateway.adds == []


def test_score_at_or_above_minimum_adds_role(gateway):
    engine = _engine(gateway, minimum_score=10)
    assert asyncio.run(engine.assign(ReconcileScore("U123", 10))) is True
    assert asyncio.run(engine.assign(ReconcileScore("U123", 10))) is True
    assert gateway.adds == [("U123", "Verified+")]
    assert "Verified+" in gateway.members["U123"]


def test_score_below_minimum_removes_only_when_present(gateway):
    engine = _engine(gateway, minimum_score=10)

    assert asyncio.run(engine.assign(ReconcileScore("U123", 5))) is True
    assert gateway.removes == []

    gateway.members["U123"].add("Verified+")
    assert asyncio.run(engine.assign(ReconcileScore("U123", 5))) is True
    assert asyncio.run(engine.assign(ReconcileScore("U123", 5))) is True
    assert gateway.removes == [("U123", "Verified+")]
    assert "Verified+" not in gateway.members["U123"]


def test_provider_failure_reports_false(gateway):
    gateway.fail_mutations = True
    engine = _engine(gateway)
    assert asyncio.run(engine.assign(ReconcileScore("U123", 50))) is False
    assert asyncio.run(engine.assign(AssignNamedRole("U123", "Guardian"))) is False


def test_notifier_failure_does_not_roll_back(gateway):
    calls = []

    async def failing_notifier(user_id, role_name, present, score):
        calls.append((user_id, role_name, present, score))
        raise RuntimeError("backend down")

    engine = _engine(gateway, notifier=failing_notifier)
    assert asyncio.run(engine.assign(ReconcileScore("U123", 42))) is True
    assert "Verified+" in gateway.members["U123"]
    assert calls == [("U123", "Verified+", True, 42)]


def test_bulk_assignment_continues_past_failures(gateway):
    engine = _engine(gateway)
    ok = asyncio.run(engine.assign(AssignRoles("U123", ("Apprentice", "NoSuchRole", "Guardian"))))
    assert ok is True
    assert gateway.members["U123"] == {"Apprentice", "Guardian"}


def test_verification_session_to_role_end_to_end(gateway):
    store = SessionStore()
    engine = _engine(gateway, minimum_score=10)

    store.create("sess", "U123")
    assert store.patch("sess", wallet_address="0xabc0000000000000000000000000000000000abc")
    assert store.patch("sess", score=15)
    s = store.get("sess")
    assert asyncio.run(engine.assign(ReconcileScore(s.owner_id, s.score))) is True
    assert "Verified+" in gateway.members["U123"]

    assert store.patch("sess", score=5)
    s = store.get("sess")
    assert asyncio.run(engine.assign(ReconcileScore(s.owner_id, s.score))) is True
    assert "Verified+" not in gateway.members["U123"]
