"""Role reconciliation against the chat platform.

Every public entry point returns a plain boolean. Failures never escape: they
are logged as one structured entry and reported as False.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Tuple

import bittensor as bt

from gatekeeper.errors import EntityNotFound, GatekeeperError, MissingConfiguration, ProviderCallFailed
from gatekeeper.roles.requests import AssignNamedRole, AssignRoles, ReconcileScore, RoleRequest


class RoleGateway(Protocol):
    async def get_guild(self, guild_id: str) -> Any: ...

    async def get_role(self, guild: Any, role_name: str) -> Any: ...

    async def get_member(self, guild: Any, user_id: str) -> Any: ...

    def member_has_role(self, member: Any, role: Any) -> bool: ...

    async def add_role(self, member: Any, role: Any) -> None: ...

    async def remove_role(self, member: Any, role: Any) -> None: ...


# (user_id, role_name, present, score)
RoleStateNotifier = Callable[[str, str, bool, Optional[float]], Awaitable[None]]


def _log_entry(request: RoleRequest, outcome: str, **extra: Any) -> Dict[str, Any]:
    entry: Dict[str, Any] = {"request": type(request).__name__, "user": request.user_id, "outcome": outcome}
    entry.update(extra)
    return entry


def _format(entry: Dict[str, Any]) -> str:
    return " ".join(f"{k}={v}" for k, v in entry.items())


class RoleAssignmentEngine:
    def __init__(
        self,
        gateway: RoleGateway,
        *,
        guild_id: Optional[str],
        minimum_score: float,
        verified_role: str,
        notifier: Optional[RoleStateNotifier] = None,
    ) -> None:
        self.gateway = gateway
        self.guild_id = guild_id
        self.minimum_score = minimum_score
        self.verified_role = verified_role
        self.notifier = notifier

    async def assign(self, request: RoleRequest) -> bool:
        if isinstance(request, AssignRoles):
            return await self._assign_many(request)
        try:
            if isinstance(request, AssignNamedRole):
                changed = await self._assign_named(request.user_id, request.role_name)
                entry = _log_entry(request, "added" if changed else "unchanged", role=request.role_name)
            elif isinstance(request, ReconcileScore):
                entry = await self._reconcile_score(request)
            else:
                raise TypeError(f"Unsupported role request: {request!r}")
        except GatekeeperError as exc:
            bt.logging.error(f"[roles] {_format(_log_entry(request, 'failed', error=self._describe(exc)))}")
            return False
        bt.logging.info(f"[roles] {_format(entry)}")
        return True

    @staticmethod
    def _describe(exc: GatekeeperError) -> str:
        if isinstance(exc, ProviderCallFailed):
            return exc.describe()
        return str(exc)

    async def _resolve(self, user_id: str, role_name: str) -> Tuple[Any, Any]:
        if not self.guild_id:
            raise MissingConfiguration("GUILD_ID")
        guild = await self.gateway.get_guild(self.guild_id)
        if guild is None:
            raise EntityNotFound("Guild", self.guild_id)
        role = await self.gateway.get_role(guild, role_name)
        if role is None:
            raise EntityNotFound("Role", role_name)
        member = await self.gateway.get_member(guild, user_id)
        if member is None:
            raise EntityNotFound("Member", user_id)
        return member, role

    async def _assign_named(self, user_id: str, role_name: str) -> bool:
        member, role = await self._resolve(user_id, role_name)
        if self.gateway.member_has_role(member, role):
            return False
        await self.gateway.add_role(member, role)
        await self._notify(user_id, role_name, True, None)
        return True

    async def _reconcile_score(self, request: ReconcileScore) -> Dict[str, Any]:
        member, role = await self._resolve(request.user_id, self.verified_role)
        wanted = request.score >= self.minimum_score
        held = self.gateway.member_has_role(member, role)

        if wanted and not held:
            await self.gateway.add_role(member, role)
            outcome = "added"
        elif not wanted and held:
            await self.gateway.remove_role(member, role)
            outcome = "removed"
        else:
            outcome = "unchanged"

        # Backend is told about the score even when the role did not move.
        await self._notify(request.user_id, self.verified_role, wanted, request.score)
        return _log_entry(
            request,
            outcome,
            role=self.verified_role,
            score=request.score,
            minimum=self.minimum_score,
        )

    async def _assign_many(self, request: AssignRoles) -> bool:
        if not self.guild_id:
            bt.logging.error(f"[roles] {_format(_log_entry(request, 'failed', error='GUILD_ID not set'))}")
            return False
        for role_name in request.role_names:
            ok = await self.assign(AssignNamedRole(user_id=request.user_id, role_name=role_name))
            if not ok:
                bt.logging.warning(f"[roles] continuing after failure user={request.user_id} role={role_name}")
        return True

    async def _notify(self, user_id: str, role_name: str, present: bool, score: Optional[float]) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier(user_id, role_name, present, score)
        except Exception as exc:
            # The platform-side change already happened and stays.
            bt.logging.error(f"[roles] backend notification failed user={user_id} role={role_name} error={exc}")
