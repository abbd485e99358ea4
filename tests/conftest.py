import sys
from pathlib import Path

# Ensure repo root is on sys.path so `import gatekeeper` works under all pytest import modes.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from types import SimpleNamespace  # noqa: E402
from typing import Any, Dict, List, Optional  # noqa: E402

import discord  # noqa: E402
import pytest  # noqa: E402

from gatekeeper.errors import ProviderCallFailed  # noqa: E402


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRoleGateway:
    """In-memory guild: role names per member, with call counters."""

    def __init__(self, guild_id: str = "1", roles=("Verified+", "Apprentice", "Guardian"), members=None) -> None:
        self.guild_id = guild_id
        self.roles = set(roles)
        self.members: Dict[str, set] = {m: set() for m in (members or ["U123"])}
        self.adds: List[tuple] = []
        self.removes: List[tuple] = []
        self.fail_mutations = False

    async def get_guild(self, guild_id: str):
        return SimpleNamespace(id=guild_id) if guild_id == self.guild_id else None

    async def get_role(self, guild, role_name: str):
        return role_name if role_name in self.roles else None

    async def get_member(self, guild, user_id: str):
        return user_id if user_id in self.members else None

    def member_has_role(self, member, role) -> bool:
        return role in self.members[member]

    async def add_role(self, member, role) -> None:
        if self.fail_mutations:
            raise ProviderCallFailed("Missing Permissions", status=403, code=50013)
        self.adds.append((member, role))
        self.members[member].add(role)

    async def remove_role(self, member, role) -> None:
        if self.fail_mutations:
            raise ProviderCallFailed("Missing Permissions", status=403, code=50013)
        self.removes.append((member, role))
        self.members[member].discard(role)


class FakeResponse:
    def __init__(self, done: bool = False) -> None:
        self._done = done
        self.sent: List[Dict[str, Any]] = []
        self.deferred = False
        self.modals: List[Any] = []

    def is_done(self) -> bool:
        return self._done

    async def send_message(self, content=None, *, ephemeral: bool = False, **kwargs) -> None:
        if self._done:
            raise RuntimeError("interaction already acknowledged")
        self._done = True
        self.sent.append({"content": content, "ephemeral": ephemeral, **kwargs})

    async def defer(self, *, ephemeral: bool = False, thinking: bool = False) -> None:
        self._done = True
        self.deferred = True

    async def send_modal(self, modal) -> None:
        self._done = True
        self.modals.append(modal)


class FakeMessage:
    def __init__(self, message_id: int, content: str) -> None:
        self.id = message_id
        self.content = content
        self.deleted = False

    async def delete(self) -> None:
        self.deleted = True


class FakeChannel:
    def __init__(self, channel_id: int = 42) -> None:
        self.id = channel_id
        self.messages: List[FakeMessage] = []

    async def send(self, content: str) -> FakeMessage:
        msg = FakeMessage(len(self.messages) + 1, content)
        self.messages.append(msg)
        return msg


class FakeInteraction:
    def __init__(
        self,
        kind: discord.InteractionType,
        data: Dict[str, Any],
        *,
        user_id: int = 123,
        roles=(),
        done: bool = False,
        channel: Optional[FakeChannel] = None,
    ) -> None:
        self.type = kind
        self.data = data
        self.user = SimpleNamespace(id=user_id, name="alice", roles=[SimpleNamespace(name=r) for r in roles])
        self.channel = channel
        self.channel_id = channel.id if channel is not None else 42
        self.response = FakeResponse(done)
        self.edits: List[Optional[str]] = []
        self.edit_views: List[Any] = []

    async def edit_original_response(self, *, content=None, **kwargs) -> None:
        self.edits.append(content)
        self.edit_views.append(kwargs.get("view"))

    def replies(self) -> List[Optional[str]]:
        return [s["content"] for s in self.response.sent] + self.edits


def slash(name: str, subcommand: Optional[str] = None, **options: Any) -> Dict[str, Any]:
    opts = [{"type": 3, "name": k, "value": v} for k, v in options.items()]
    if subcommand is not None:
        opts = [{"type": 1, "name": subcommand, "options": opts}]
    return {"name": name, "options": opts}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> FakeRoleGateway:
    return FakeRoleGateway()


@pytest.fixture
def fakes() -> SimpleNamespace:
    return SimpleNamespace(
        Interaction=FakeInteraction,
        Channel=FakeChannel,
        Gateway=FakeRoleGateway,
        Clock=FakeClock,
        slash=slash,
    )
