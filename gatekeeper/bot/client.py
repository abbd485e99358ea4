from __future__ import annotations

import traceback
from typing import Any, Dict, List, Optional

import bittensor as bt
import discord

from gatekeeper.bot.commands import build_router
from gatekeeper.bot.context import build_context
from gatekeeper.config import BotEnvConfig
from gatekeeper.roles.gateway import DiscordRoleGateway


class DiscordCommandPublisher:
    """Bulk-overwrites the command set, per guild when one is configured."""

    def __init__(self, client: discord.Client, application_id: str, guild_id: Optional[str]) -> None:
        self.client = client
        self.application_id = int(application_id)
        self.guild_id = int(guild_id) if guild_id else None

    async def publish(self, schemas: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if self.guild_id is not None:
            return await self.client.http.bulk_upsert_guild_commands(self.application_id, self.guild_id, schemas)
        return await self.client.http.bulk_upsert_global_commands(self.application_id, schemas)

    async def fetch(self) -> List[Dict[str, Any]]:
        if self.guild_id is not None:
            return await self.client.http.get_guild_commands(self.application_id, self.guild_id)
        return await self.client.http.get_global_commands(self.application_id)


class GatekeeperBot(discord.Client):
    def __init__(self, cfg: BotEnvConfig) -> None:
        intents = discord.Intents.default()
        intents.members = True  # role reconciliation needs member lookups
        super().__init__(intents=intents)
        self.cfg = cfg
        self.context = build_context(cfg, DiscordRoleGateway(self))
        self.router = build_router(
            self.context,
            DiscordCommandPublisher(self, cfg.discord.client_id, cfg.discord.guild_id),
        )
        self._deployed = False

    async def on_ready(self) -> None:
        bt.logging.info(f"[gatekeeper] logged in as {self.user} guild={self.cfg.discord.guild_id or 'global'}")
        # on_ready fires again after reconnects; only retry a deploy that failed.
        if not self._deployed:
            self._deployed = await self.router.deploy()

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        await self.router.dispatch(interaction)

    async def on_error(self, event_method: str, /, *args: Any, **kwargs: Any) -> None:
        bt.logging.error(f"[gatekeeper] unhandled error in {event_method}:\n{traceback.format_exc()}")
