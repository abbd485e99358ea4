from __future__ import annotations

from typing import List

import bittensor as bt
import discord

from gatekeeper.bot.commands.common import (
    NOT_REGISTERED,
    UPSTREAM_ERROR,
    bullet_lines,
    has_any_role,
    short_address,
    string_option,
    subcommand,
)
from gatekeeper.bot.replies import button_view, command_path, defer, modal_values, respond
from gatekeeper.bot.router import Command
from gatekeeper.chain.stats_cache import has_attested_within, is_attesting, miss_percentage
from gatekeeper.constants import APPRENTICE_ROLE, DEFAULT_VALIDATOR_PORT, GUARDIAN_ROLE
from gatekeeper.errors import BackendError, InputValidationError, RpcError, UpstreamError
from gatekeeper.roles.requests import AssignNamedRole
from gatekeeper.utils.validation import parse_ipv4, parse_port, require_eth_address

ADD_PEER_PREFIX = "add_peer_"
PEER_MODAL_PREFIX = "validator_ip_modal_"

HELP_BUTTONS = [
    ("operator_my_stats", "My stats"),
    ("operator_chain_info", "Chain info"),
    ("operator_registration_guide", "How to register"),
    ("operator_start_registration", "Register"),
    ("operator_add_validator", "Add validator"),
    ("operator_is_ready", "Is my node ready?"),
]

REGISTRATION_GUIDE = (
    "**Getting the Apprentice role**\n"
    "1. Run a synced node and note the Ethereum address of your validator.\n"
    "2. Run `/operator register address:<your address>`.\n"
    "3. Once a moderator approves you, you get the Guardian role and can run "
    "`/operator add-validator address:<your address>`."
)


async def my_stats(interaction, ctx) -> None:
    await defer(interaction)
    backend = ctx.require_backend()
    chain = ctx.require_chain()
    stats = ctx.require_stats()
    try:
        owned = await ctx.call(backend.get_operator_validators, str(interaction.user.id))
    except BackendError as exc:
        bt.logging.error(f"[operator] my-stats lookup failed user={interaction.user.id} error={exc.describe()}")
        await respond(interaction, UPSTREAM_ERROR)
        return
    if owned is None:
        await respond(interaction, NOT_REGISTERED)
        return
    if not owned.validators:
        await respond(interaction, "You have no validators yet. Use `/operator add-validator` once you are approved.")
        return

    try:
        epoch = await ctx.call(chain.current_epoch)
        attesters = {a.lower() for a in await ctx.call(chain.attesters)}
    except RpcError as exc:
        bt.logging.error(f"[operator] chain read failed error={exc.describe()}")
        await respond(interaction, UPSTREAM_ERROR)
        return

    blocks: List[str] = [f"**Operator:** {owned.operator.discord_username or interaction.user.name} (epoch {epoch})"]
    for v in owned.validators:
        address = v.validator_address
        lines = [f"**{short_address(address)}** in set: {'yes' if address.lower() in attesters else 'no'}"]
        try:
            s = await stats.fetch(address, epoch)
        except RpcError:
            s = None
            lines.append("stats unavailable right now")
        if s is not None:
            lines.append(
                f"attested in last 24h: {'yes' if has_attested_within(s) else 'no'} | "
                f"miss rate: {miss_percentage(s):.2f}% ({s.missed_attestations_count}/{s.total_slots}) | "
                f"attesting: {'yes' if is_attesting(s) else 'no'} | "
                f"missed proposals: {s.missed_proposals_count}"
            )
        elif len(lines) == 1:
            lines.append("not found in node stats")
        lines.append(f"peer: {v.peer_id or 'not connected'}")
        blocks.append("\n".join(lines))
    await respond(interaction, "\n\n".join(blocks))


async def chain_info(interaction, ctx) -> None:
    await defer(interaction)
    chain = ctx.require_chain()
    try:
        info = await ctx.call(chain.get_info)
    except RpcError as exc:
        bt.logging.error(f"[operator] chain-info failed error={exc.describe()}")
        await respond(interaction, UPSTREAM_ERROR)
        return
    text = bullet_lines(
        [
            ("Pending block", info.pending_block_num),
            ("Proven block", info.proven_block_num),
            ("Current epoch", info.current_epoch),
            ("Current slot", info.current_slot),
            ("Proposer", info.proposer),
            ("Validators", len(info.validators)),
            ("Committee size", len(info.committee)),
        ]
    )
    channel = getattr(interaction, "channel", None)
    if channel is None:
        await respond(interaction, text)
        return
    message = await channel.send(text)
    await ctx.messages.replace(channel.id, "chain_info", message)
    await respond(interaction, "Chain info posted.")


async def register(interaction, ctx) -> None:
    _, _, opts = command_path(interaction)
    address = require_eth_address(opts.get("address"))
    await defer(interaction)
    backend = ctx.require_backend()
    user_id = str(interaction.user.id)
    try:
        operator = await ctx.call(backend.get_operator, user_id)
        if operator is None:
            await ctx.call(backend.create_operator, user_id, str(interaction.user.name), address)
            result = "created"
        elif (operator.wallet_address or "").lower() != address.lower():
            await ctx.call(backend.update_operator_wallet, user_id, address)
            result = "updated"
        else:
            result = "unchanged"
    except BackendError as exc:
        bt.logging.error(f"[operator] register failed user={user_id} error={exc.describe()}")
        await respond(interaction, UPSTREAM_ERROR)
        return

    # Re-registering also restores an Apprentice role that was removed.
    ok = await ctx.roles.assign(AssignNamedRole(user_id=user_id, role_name=APPRENTICE_ROLE))
    if not ok:
        await respond(interaction, f"Registration {result}, but the {APPRENTICE_ROLE} role could not be assigned. Please contact a moderator.")
        return
    bt.logging.info(f"[operator] register user={user_id} address={address} result={result}")
    await respond(interaction, f"Registration {result} for {short_address(address)}.")


async def add_validator(interaction, ctx) -> None:
    _, _, opts = command_path(interaction)
    address = require_eth_address(opts.get("address"))
    if not has_any_role(interaction.user, [GUARDIAN_ROLE]):
        await respond(interaction, f"You need the {GUARDIAN_ROLE} role to add a validator.")
        return
    await defer(interaction)
    backend = ctx.require_backend()
    user_id = str(interaction.user.id)
    try:
        owned = await ctx.call(backend.get_operator_validators, user_id)
        if owned is None:
            await respond(interaction, NOT_REGISTERED)
            return
        if owned.validators:
            await respond(interaction, f"You already have a validator registered ({short_address(owned.validators[0].validator_address)}).")
            return
        await ctx.call(backend.add_validator, user_id, address)
    except BackendError as exc:
        if exc.forbidden and "slashed" in str(exc).lower():
            await respond(interaction, "This operator was previously slashed and cannot add validators.")
        elif exc.forbidden:
            await respond(interaction, "Your account requires approval before adding validators.")
        else:
            await respond(interaction, UPSTREAM_ERROR)
        return

    bt.logging.info(f"[operator] validator added user={user_id} address={address}")
    await respond(
        interaction,
        f"Validator {short_address(address)} added. Connect your node so we can track it.",
        view=button_view([(f"{ADD_PEER_PREFIX}{address}", "Connect node")]),
    )


async def help_(interaction, ctx) -> None:
    await respond(
        interaction,
        "**Operator commands**\n"
        "`/operator my-stats` your validators and their liveness\n"
        "`/operator chain-info` current rollup state\n"
        "`/operator register address` register your validator address\n"
        "`/operator add-validator address` add a validator (Guardian only)",
        view=button_view(HELP_BUTTONS),
    )


async def registration_guide(interaction, ctx) -> None:
    await respond(interaction, REGISTRATION_GUIDE)


async def start_registration(interaction, ctx) -> None:
    await respond(interaction, "Run `/operator register address:<your validator address>` to register.")


async def add_validator_hint(interaction, ctx) -> None:
    await respond(interaction, f"Run `/operator add-validator address:<your validator address>`. Requires the {GUARDIAN_ROLE} role.")


async def is_ready(interaction, ctx) -> None:
    await respond(
        interaction,
        "Your node must be publicly reachable: open the P2P port and the node RPC port "
        f"(default {DEFAULT_VALIDATOR_PORT}) in your firewall, then use **Connect node** after adding your validator.",
    )


async def open_peer_modal(interaction, ctx, address: str) -> None:
    address = require_eth_address(address)
    modal = discord.ui.Modal(title="Connect your node", custom_id=f"{PEER_MODAL_PREFIX}{address}")
    modal.add_item(discord.ui.TextInput(label="Node IP (empty to disconnect)", custom_id="validator_ip", required=False))
    modal.add_item(
        discord.ui.TextInput(
            label="Node RPC port",
            custom_id="validator_port",
            required=False,
            placeholder=str(DEFAULT_VALIDATOR_PORT),
        )
    )
    await interaction.response.send_modal(modal)


async def submit_peer_modal(interaction, ctx, address: str) -> None:
    address = require_eth_address(address)
    values = modal_values(interaction)
    raw_ip = (values.get("validator_ip") or "").strip()
    ip = parse_ipv4(raw_ip) if raw_ip else None
    port = parse_port(values.get("validator_port"))

    backend = ctx.require_backend()
    await defer(interaction)
    user_id = str(interaction.user.id)
    try:
        validator = await ctx.call(backend.get_validator, address)
        if validator is None or validator.node_operator_id not in (None, user_id):
            raise InputValidationError("That validator is not registered to you.")

        if ip is None:
            await ctx.call(backend.update_validator_peer, address, None)
            await respond(interaction, f"Node connection cleared for {short_address(address)}.")
            return

        rpc = ctx.require_rpc()
        enr = await ctx.call(rpc.get_encoded_enr, ip, port)
        if enr is None:
            await respond(interaction, f"Could not reach your node at {ip}:{port}. Check that the port is open.")
            return
        await ctx.call(backend.update_validator_peer, address, enr)
    except UpstreamError as exc:
        bt.logging.error(f"[operator] peer update failed address={address} error={exc.describe()}")
        await respond(interaction, UPSTREAM_ERROR)
        return
    bt.logging.info(f"[operator] peer connected address={address} ip={ip} port={port}")
    await respond(interaction, f"Node connected for {short_address(address)}.")


SUBCOMMANDS = {
    "my-stats": my_stats,
    "chain-info": chain_info,
    "register": register,
    "add-validator": add_validator,
    "help": help_,
}

BUTTONS = {
    "operator_my_stats": my_stats,
    "operator_chain_info": chain_info,
    "operator_registration_guide": registration_guide,
    "operator_start_registration": start_registration,
    "operator_add_validator": add_validator_hint,
    "operator_is_ready": is_ready,
}

BUTTON_PREFIXES = [(ADD_PEER_PREFIX, open_peer_modal)]
MODAL_PREFIXES = [(PEER_MODAL_PREFIX, submit_peer_modal)]


async def handle(interaction, ctx) -> None:
    _, sub, _ = command_path(interaction)
    handler = SUBCOMMANDS.get(sub)
    if handler is None:
        await respond(interaction, f"Unknown subcommand: {sub}")
        return
    await handler(interaction, ctx)


COMMAND = Command(
    name="operator",
    description="Validator operator commands",
    handler=handle,
    options=[
        subcommand("my-stats", "Show your validators and their liveness"),
        subcommand("chain-info", "Show the current rollup state"),
        subcommand("register", "Register your validator address", string_option("address", "Your validator address")),
        subcommand("add-validator", "Add a validator", string_option("address", "The validator address")),
        subcommand("help", "Operator help"),
    ],
)
