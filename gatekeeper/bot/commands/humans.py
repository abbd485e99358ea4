from __future__ import annotations

import bittensor as bt

from gatekeeper.bot.commands.common import bullet_lines, subcommand
from gatekeeper.bot.replies import command_path, defer, link_view, respond
from gatekeeper.bot.router import Command
from gatekeeper.constants import SESSION_TTL_SECONDS
from gatekeeper.errors import BackendError


async def verify(interaction, ctx) -> None:
    await defer(interaction)
    base_url = ctx.require_verification_url()
    user = interaction.user
    session = ctx.verification.start(str(user.id))

    if ctx.backend is not None:
        try:
            await ctx.call(
                ctx.backend.record_human_passport,
                str(user.id),
                str(user.name),
                {"status": "not_verified", "verificationId": session.session_id},
            )
        except BackendError as exc:
            # The session itself is enough to finish verification.
            bt.logging.warning(f"[human] could not record verification id user={user.id} error={exc.describe()}")

    url = f"{base_url}/?verificationId={session.session_id}"
    minutes = SESSION_TTL_SECONDS // 60
    await respond(
        interaction,
        "Connect your wallet and sign the ownership message to verify your Human Passport score.\n"
        f"This link expires in {minutes} minutes.",
        view=link_view("Verify", url),
    )


async def status(interaction, ctx) -> None:
    session = ctx.verification.latest_for(str(interaction.user.id))
    if session is None:
        await respond(interaction, "No active verification session. Use `/human verify` to start one.")
        return
    await respond(
        interaction,
        bullet_lines(
            [
                ("Status", session.status.value),
                ("Wallet connected", "yes" if session.wallet_address else "no"),
                ("Score", "-" if session.score is None else f"{session.score:g}"),
                ("Minimum score", f"{ctx.verification.minimum_score:g}"),
                ("Role assigned", "yes" if session.role_assigned else "no"),
            ]
        ),
    )


SUBCOMMANDS = {"verify": verify, "status": status}


async def handle(interaction, ctx) -> None:
    _, sub, _ = command_path(interaction)
    handler = SUBCOMMANDS.get(sub)
    if handler is None:
        await respond(interaction, f"Unknown subcommand: {sub}")
        return
    await handler(interaction, ctx)


COMMAND = Command(
    name="human",
    description="Human Passport verification",
    handler=handle,
    options=[
        subcommand("verify", "Verify your wallet and Human Passport score"),
        subcommand("status", "Show your latest verification status"),
    ],
)
