from __future__ import annotations

from typing import Any, Dict, List, Optional

import discord


async def respond(
    interaction: discord.Interaction,
    content: str,
    *,
    ephemeral: bool = True,
    view: Optional[discord.ui.View] = None,
) -> None:
    """Reply once, or edit the existing reply if one was already sent or deferred."""
    kwargs: Dict[str, Any] = {}
    if view is not None:
        kwargs["view"] = view
    if interaction.response.is_done():
        await interaction.edit_original_response(content=content, **kwargs)
    else:
        await interaction.response.send_message(content, ephemeral=ephemeral, **kwargs)


async def defer(interaction: discord.Interaction, *, ephemeral: bool = True) -> None:
    if not interaction.response.is_done():
        await interaction.response.defer(ephemeral=ephemeral, thinking=True)


def link_view(label: str, url: str) -> discord.ui.View:
    view = discord.ui.View()
    view.add_item(discord.ui.Button(label=label, url=url, style=discord.ButtonStyle.link))
    return view


def button_view(buttons: List[tuple]) -> discord.ui.View:
    """`buttons` is a list of (custom_id, label)."""
    view = discord.ui.View()
    for custom_id, label in buttons:
        view.add_item(discord.ui.Button(label=label, custom_id=custom_id, style=discord.ButtonStyle.primary))
    return view


def command_path(interaction: discord.Interaction) -> tuple:
    """Return (command, subcommand, options) from a raw slash-command payload."""
    data = interaction.data or {}
    name = data.get("name")
    subcommand = None
    options = data.get("options") or []
    # Subcommands are type 1 options carrying their own options.
    if options and options[0].get("type") == 1:
        subcommand = options[0].get("name")
        options = options[0].get("options") or []
    values = {o.get("name"): o.get("value") for o in options}
    return name, subcommand, values


def modal_values(interaction: discord.Interaction) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for row in (interaction.data or {}).get("components") or []:
        for component in row.get("components") or []:
            if component.get("custom_id"):
                values[component["custom_id"]] = component.get("value") or ""
    return values
