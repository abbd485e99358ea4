from __future__ import annotations

from typing import Optional

import discord

from gatekeeper.errors import ProviderCallFailed


class DiscordRoleGateway:
    """discord.py-backed lookups and role mutations for the role engine."""

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    async def get_guild(self, guild_id: str) -> Optional[discord.Guild]:
        guild = self.client.get_guild(int(guild_id))
        if guild is not None:
            return guild
        try:
            return await self.client.fetch_guild(int(guild_id))
        except discord.NotFound:
            return None
        except discord.HTTPException as exc:
            raise ProviderCallFailed("Guild lookup failed", status=exc.status, code=exc.code) from exc

    async def get_role(self, guild: discord.Guild, role_name: str) -> Optional[discord.Role]:
        role = discord.utils.get(guild.roles, name=role_name)
        if role is not None:
            return role
        try:
            roles = await guild.fetch_roles()
        except discord.HTTPException as exc:
            raise ProviderCallFailed("Role lookup failed", status=exc.status, code=exc.code) from exc
        return discord.utils.get(roles, name=role_name)

    async def get_member(self, guild: discord.Guild, user_id: str) -> Optional[discord.Member]:
        member = guild.get_member(int(user_id))
        if member is not None:
            return member
        try:
            return await guild.fetch_member(int(user_id))
        except discord.NotFound:
            return None
        except discord.HTTPException as exc:
            raise ProviderCallFailed("Member lookup failed", status=exc.status, code=exc.code) from exc

    def member_has_role(self, member: discord.Member, role: discord.Role) -> bool:
        return any(r.id == role.id for r in member.roles)

    async def add_role(self, member: discord.Member, role: discord.Role) -> None:
        try:
            await member.add_roles(role)
        except discord.HTTPException as exc:
            raise ProviderCallFailed(f"Could not add role {role.name}", status=exc.status, code=exc.code) from exc

    async def remove_role(self, member: discord.Member, role: discord.Role) -> None:
        try:
            await member.remove_roles(role)
        except discord.HTTPException as exc:
            raise ProviderCallFailed(f"Could not remove role {role.name}", status=exc.status, code=exc.code) from exc
