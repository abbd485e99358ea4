"""Single entry point for every inbound platform interaction.

Slash commands resolve through the `CommandRegistry`. Buttons and modals carry
`<action>_<payload>` identifiers: literal actions are matched first, then the
dynamic prefixes, then an "unknown interaction" reply. Exceptions raised by a
handler stop here and become exactly one ephemeral reply (or edited reply).
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import bittensor as bt
import discord

from gatekeeper.bot.replies import command_path, respond
from gatekeeper.errors import InputValidationError, MissingConfiguration

GENERIC_ERROR = "An error occurred while processing your request. Please try again later."
CONFIG_ERROR = "This feature is not configured yet. Please contact an administrator."
UNKNOWN_INTERACTION = "Unknown interaction."

Handler = Callable[[Any, Any], Awaitable[None]]
PrefixHandler = Callable[[Any, Any, str], Awaitable[None]]


class InteractionKind(str, Enum):
    COMMAND = "command"
    BUTTON = "button"
    MODAL = "modal"
    OTHER = "other"


@dataclass(frozen=True)
class Command:
    name: str
    description: str
    handler: Handler
    options: List[Dict[str, Any]] = field(default_factory=list)

    def schema(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "type": 1, "options": self.options}


class CommandRegistry:
    def __init__(self) -> None:
        self._commands: Dict[str, Command] = {}

    def populate(self, commands: Sequence[Command]) -> None:
        self._commands = {c.name: c for c in commands}

    def get(self, name: Optional[str]) -> Optional[Command]:
        return self._commands.get(name) if name else None

    def names(self) -> List[str]:
        return sorted(self._commands)

    def __len__(self) -> int:
        return len(self._commands)


class CommandPublisher(Protocol):
    async def publish(self, schemas: List[Dict[str, Any]]) -> List[Dict[str, Any]]: ...

    async def fetch(self) -> List[Dict[str, Any]]: ...


def classify(interaction: Any) -> InteractionKind:
    t = getattr(interaction, "type", None)
    if t == discord.InteractionType.application_command:
        return InteractionKind.COMMAND
    if t == discord.InteractionType.component:
        return InteractionKind.BUTTON
    if t == discord.InteractionType.modal_submit:
        return InteractionKind.MODAL
    return InteractionKind.OTHER


def describe_deploy_error(exc: Exception) -> str:
    status = getattr(exc, "status", None)
    code = getattr(exc, "code", None)
    if status == 403 or code == 50001:
        return f"missing permissions (status={status} code={code}): re-invite the bot with the applications.commands scope"
    if code == 50035 or status == 400:
        return f"invalid command schema (status={status} code={code}): {exc}"
    if status == 429:
        return f"rate limited (status={status}): retry later"
    return f"unexpected error ({type(exc).__name__}): {exc}"


class InteractionRouter:
    def __init__(
        self,
        context: Any,
        *,
        commands: Sequence[Command],
        buttons: Optional[Mapping[str, Handler]] = None,
        button_prefixes: Sequence[Tuple[str, PrefixHandler]] = (),
        modal_prefixes: Sequence[Tuple[str, PrefixHandler]] = (),
        publisher: Optional[CommandPublisher] = None,
    ) -> None:
        self.context = context
        self.commands = list(commands)
        self.buttons = dict(buttons or {})
        self.button_prefixes = list(button_prefixes)
        self.modal_prefixes = list(modal_prefixes)
        self.publisher = publisher
        self.registry = CommandRegistry()

    async def deploy(self) -> bool:
        """Push the full command set to the platform. Never raises."""
        if self.publisher is None:
            bt.logging.warning("[router] no command publisher configured; skipping deploy")
            return False
        schemas = [c.schema() for c in self.commands]
        try:
            published = await self.publisher.publish(schemas)
        except Exception as exc:
            bt.logging.error(f"[router] command deploy failed: {describe_deploy_error(exc)}")
            await self._adopt_remote()
            return False
        self.registry.populate(self.commands)
        bt.logging.info(f"[router] deployed {len(published)} commands: {', '.join(self.registry.names())}")
        return True

    async def _adopt_remote(self) -> None:
        # Keep serving whatever the platform already knows about.
        try:
            remote = {c.get("name") for c in await self.publisher.fetch()}
        except Exception as exc:
            bt.logging.error(f"[router] could not list registered commands: {describe_deploy_error(exc)}")
            return
        self.registry.populate([c for c in self.commands if c.name in remote])
        bt.logging.warning(f"[router] serving previously registered commands: {', '.join(self.registry.names()) or '-'}")

    async def dispatch(self, interaction: Any) -> None:
        kind = classify(interaction)
        if kind == InteractionKind.COMMAND:
            name, subcommand, _ = command_path(interaction)
            command = self.registry.get(name)
            if command is None:
                return
            bt.logging.info(
                f"[router] command={name} subcommand={subcommand or '-'} "
                f"channel={getattr(interaction, 'channel_id', None)} user={interaction.user.id}"
            )
            await self._run(interaction, command.handler(interaction, self.context))
        elif kind == InteractionKind.BUTTON:
            await self._route_id(interaction, kind, self.buttons, self.button_prefixes)
        elif kind == InteractionKind.MODAL:
            await self._route_id(interaction, kind, {}, self.modal_prefixes)

    async def _route_id(
        self,
        interaction: Any,
        kind: InteractionKind,
        literals: Mapping[str, Handler],
        prefixes: Sequence[Tuple[str, PrefixHandler]],
    ) -> None:
        custom_id = (interaction.data or {}).get("custom_id") or ""
        bt.logging.debug(f"[router] {kind.value}={custom_id} user={interaction.user.id}")
        handler = literals.get(custom_id)
        if handler is not None:
            await self._run(interaction, handler(interaction, self.context))
            return
        for prefix, prefixed in prefixes:
            if custom_id.startswith(prefix):
                await self._run(interaction, prefixed(interaction, self.context, custom_id[len(prefix):]))
                return
        await self._reply(interaction, UNKNOWN_INTERACTION)

    async def _run(self, interaction: Any, pending: Awaitable[None]) -> None:
        try:
            await pending
        except InputValidationError as exc:
            await self._reply(interaction, str(exc))
        except MissingConfiguration as exc:
            bt.logging.error(f"[router] configuration error: {exc}")
            await self._reply(interaction, CONFIG_ERROR)
        except Exception:
            bt.logging.error(f"[router] handler failed:\n{traceback.format_exc()}")
            await self._reply(interaction, GENERIC_ERROR)

    async def _reply(self, interaction: Any, content: str) -> None:
        try:
            await respond(interaction, content)
        except discord.HTTPException as exc:
            # Past the response window the interaction token is gone.
            bt.logging.error(f"[router] could not reply to interaction status={exc.status} code={exc.code}")
