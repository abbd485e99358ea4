"""Process-wide services, built once at startup and handed to every handler."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Optional

import bittensor as bt

from gatekeeper.backend.client import BackendClient
from gatekeeper.bot.messages import ChannelMessageTracker
from gatekeeper.chain.chain_info import ChainInfoService
from gatekeeper.chain.rpc import JsonRpcClient
from gatekeeper.chain.stats_cache import ValidatorStatsCache
from gatekeeper.config import BotEnvConfig
from gatekeeper.errors import MissingConfiguration
from gatekeeper.roles.engine import RoleAssignmentEngine, RoleGateway, RoleStateNotifier
from gatekeeper.verification.flow import VerificationFlow
from gatekeeper.verification.passport import PassportClient
from gatekeeper.verification.session import SessionStore


@dataclass
class BotContext:
    sessions: SessionStore
    roles: RoleAssignmentEngine
    verification: VerificationFlow
    messages: ChannelMessageTracker
    backend: Optional[BackendClient] = None
    rpc: Optional[JsonRpcClient] = None
    chain: Optional[ChainInfoService] = None
    stats: Optional[ValidatorStatsCache] = None
    verification_url: Optional[str] = None

    def require_backend(self) -> BackendClient:
        if self.backend is None:
            raise MissingConfiguration("BACKEND_URL")
        return self.backend

    def require_rpc(self) -> JsonRpcClient:
        if self.rpc is None:
            raise MissingConfiguration("RPC_URL")
        return self.rpc

    def require_chain(self) -> ChainInfoService:
        if self.chain is None:
            raise MissingConfiguration("ETHEREUM_HOST / ROLLUP_ADDRESS")
        return self.chain

    def require_stats(self) -> ValidatorStatsCache:
        if self.stats is None:
            raise MissingConfiguration("RPC_URL")
        return self.stats

    def require_verification_url(self) -> str:
        if not self.verification_url:
            raise MissingConfiguration("VERIFICATION_PUBLIC_URL")
        return self.verification_url

    async def call(self, fn: Any, *args: Any) -> Any:
        """Run a blocking client call off the event loop."""
        return await asyncio.to_thread(fn, *args)


def backend_notifier(backend: BackendClient) -> RoleStateNotifier:
    async def notify(user_id: str, role_name: str, present: bool, score: Optional[float]) -> None:
        if score is None:
            return
        human_passport = {
            "status": "verified" if present else "verification_failed",
            "score": score,
            "lastVerificationTime": int(time.time() * 1000),
        }
        await asyncio.to_thread(backend.update_user, user_id, {"humanPassport": human_passport})

    return notify


def build_context(cfg: BotEnvConfig, gateway: RoleGateway) -> BotContext:
    backend = None
    if cfg.backend is not None:
        backend = BackendClient(cfg.backend.base_url, cfg.backend.api_key, timeout_s=cfg.backend.timeout_s)

    roles = RoleAssignmentEngine(
        gateway,
        guild_id=cfg.discord.guild_id,
        minimum_score=cfg.roles.minimum_score,
        verified_role=cfg.roles.verified_role,
        notifier=backend_notifier(backend) if backend is not None else None,
    )

    passport = None
    if cfg.passport is not None:
        passport = PassportClient(
            cfg.passport.api_url,
            cfg.passport.api_key,
            cfg.passport.scorer_id,
            timeout_s=cfg.passport.timeout_s,
        )

    rpc = stats = None
    if cfg.chain.rpc_url:
        rpc = JsonRpcClient(cfg.chain.rpc_url, timeout_s=cfg.chain.rpc_timeout_s)
        stats = ValidatorStatsCache(lambda: asyncio.to_thread(rpc.get_validators_stats))

    chain = None
    if cfg.chain.ethereum_host and cfg.chain.rollup_address:
        chain = ChainInfoService(cfg.chain.ethereum_host, cfg.chain.rollup_address, timeout_s=cfg.chain.rpc_timeout_s)

    sessions = SessionStore()
    ctx = BotContext(
        sessions=sessions,
        roles=roles,
        verification=VerificationFlow(sessions, roles, passport),
        messages=ChannelMessageTracker(),
        backend=backend,
        rpc=rpc,
        chain=chain,
        stats=stats,
        verification_url=cfg.verification_api.public_url if cfg.verification_api else None,
    )
    missing = [name for name, v in (("backend", backend), ("passport", passport), ("rpc", rpc), ("chain", chain)) if v is None]
    if missing:
        bt.logging.warning(f"[gatekeeper] running without: {', '.join(missing)}")
    return ctx
