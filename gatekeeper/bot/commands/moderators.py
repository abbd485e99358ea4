from __future__ import annotations

import bittensor as bt

from gatekeeper.bot.commands.common import (
    UPSTREAM_ERROR,
    bullet_lines,
    has_any_role,
    short_address,
    string_option,
    subcommand,
)
from gatekeeper.bot.replies import command_path, defer, respond
from gatekeeper.bot.router import Command
from gatekeeper.chain.stats_cache import is_attesting, miss_percentage
from gatekeeper.constants import GUARDIAN_ROLE, MODERATOR_ROLES
from gatekeeper.errors import BackendError, InputValidationError, RpcError
from gatekeeper.roles.requests import AssignNamedRole
from gatekeeper.utils.validation import require_eth_address

APPROVAL_MESSAGE = (
    "You have been approved to run a validator. Add it with "
    "`/operator add-validator address:<your validator address>` and keep an eye on it with "
    "`/operator my-stats`. Validators that stop attesting risk being removed from the set."
)


def _user_id(interaction) -> str:
    _, _, opts = command_path(interaction)
    raw = str(opts.get("user-id") or "").strip()
    if not raw.isdigit():
        raise InputValidationError("Please provide a numeric Discord user id.")
    return raw


async def approve(interaction, ctx) -> None:
    user_id = _user_id(interaction)
    await defer(interaction)
    backend = ctx.require_backend()
    try:
        await ctx.call(backend.approve_operator, user_id)
    except BackendError as exc:
        if exc.not_found:
            await respond(interaction, f"User {user_id} is not registered as an operator.")
        elif exc.forbidden and "slashed" in str(exc).lower():
            await respond(interaction, f"User {user_id} had a validator that was previously slashed and cannot be approved.")
        elif exc.forbidden:
            await respond(interaction, "Access denied by the backend.")
        else:
            await respond(interaction, UPSTREAM_ERROR)
        return

    role_ok = await ctx.roles.assign(AssignNamedRole(user_id=user_id, role_name=GUARDIAN_ROLE))
    try:
        await ctx.call(backend.send_operator_message, user_id, APPROVAL_MESSAGE)
        dm_status = "Approval message sent."
    except BackendError as exc:
        bt.logging.error(f"[mod] approval message failed user={user_id} error={exc.describe()}")
        dm_status = "Approval message could not be sent."

    bt.logging.info(f"[mod] approved user={user_id} by={interaction.user.id} role_assigned={role_ok}")
    role_status = f"{GUARDIAN_ROLE} role assigned." if role_ok else f"{GUARDIAN_ROLE} role could not be assigned."
    await respond(interaction, f"Operator {user_id} approved. {role_status} {dm_status}")


async def unapprove(interaction, ctx) -> None:
    user_id = _user_id(interaction)
    await defer(interaction)
    backend = ctx.require_backend()
    try:
        await ctx.call(backend.unapprove_operator, user_id)
    except BackendError as exc:
        if exc.not_found:
            await respond(interaction, f"User {user_id} is not registered as an operator.")
        else:
            await respond(interaction, UPSTREAM_ERROR)
        return
    bt.logging.info(f"[mod] unapproved user={user_id} by={interaction.user.id}")
    await respond(interaction, f"Operator {user_id} unapproved.")


async def info(interaction, ctx) -> None:
    user_id = _user_id(interaction)
    await defer(interaction)
    backend = ctx.require_backend()
    try:
        owned = await ctx.call(backend.get_operator_validators, user_id)
    except BackendError:
        await respond(interaction, UPSTREAM_ERROR)
        return
    if owned is None:
        await respond(interaction, f"User {user_id} is not registered as an operator.")
        return
    op = owned.operator
    validators = ", ".join(short_address(v.validator_address) for v in owned.validators) or "none"
    await respond(
        interaction,
        bullet_lines(
            [
                ("Discord id", op.discord_id),
                ("Username", op.discord_username or "-"),
                ("Wallet", op.wallet_address or "-"),
                ("Approved", "yes" if op.is_approved else "no"),
                ("Validators", validators),
            ]
        ),
    )


async def is_in_set(interaction, ctx) -> None:
    _, _, opts = command_path(interaction)
    address = require_eth_address(opts.get("address"))
    await defer(interaction)
    chain = ctx.require_chain()
    try:
        present = await ctx.call(chain.is_in_set, address)
    except RpcError:
        await respond(interaction, UPSTREAM_ERROR)
        return
    await respond(interaction, f"{address} is {'in' if present else 'not in'} the validator set.")


async def is_attesting_(interaction, ctx) -> None:
    _, _, opts = command_path(interaction)
    address = require_eth_address(opts.get("address"))
    await defer(interaction)
    chain = ctx.require_chain()
    stats = ctx.require_stats()
    try:
        epoch = await ctx.call(chain.current_epoch)
        s = await stats.fetch(address, epoch)
    except RpcError:
        await respond(interaction, UPSTREAM_ERROR)
        return
    if s is None:
        await respond(interaction, f"{address} was not found in the node stats.")
        return
    verdict = "is" if is_attesting(s) else "is not"
    await respond(
        interaction,
        f"{address} {verdict} actively attesting (miss percentage: {miss_percentage(s):.2f}%, "
        f"{s.missed_attestations_count}/{s.total_slots} slots).",
    )


async def help_(interaction, ctx) -> None:
    await respond(
        interaction,
        "**Moderator commands**\n"
        "`/mod approve user-id` approve an operator\n"
        "`/mod unapprove user-id` revoke an approval\n"
        "`/mod info user-id` show an operator\n"
        "`/mod is-in-set address` check validator set membership\n"
        "`/mod is-attesting address` check attestation rate",
    )


SUBCOMMANDS = {
    "approve": approve,
    "unapprove": unapprove,
    "info": info,
    "is-in-set": is_in_set,
    "is-attesting": is_attesting_,
    "help": help_,
}


async def handle(interaction, ctx) -> None:
    if not has_any_role(interaction.user, MODERATOR_ROLES):
        await respond(interaction, "You do not have permission to use moderator commands.")
        return
    _, sub, _ = command_path(interaction)
    handler = SUBCOMMANDS.get(sub)
    if handler is None:
        await respond(interaction, f"Unknown subcommand: {sub}")
        return
    await handler(interaction, ctx)


COMMAND = Command(
    name="mod",
    description="Moderator commands",
    handler=handle,
    options=[
        subcommand("approve", "Approve an operator", string_option("user-id", "Discord user id")),
        subcommand("unapprove", "Revoke an operator approval", string_option("user-id", "Discord user id")),
        subcommand("info", "Show an operator", string_option("user-id", "Discord user id")),
        subcommand("is-in-set", "Is this address in the validator set", string_option("address", "Validator address")),
        subcommand("is-attesting", "Is this validator attesting", string_option("address", "Validator address")),
        subcommand("help", "Moderator help"),
    ],
)
