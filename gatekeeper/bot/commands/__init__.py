from __future__ import annotations

from typing import Any, Optional

from gatekeeper.bot.commands import humans, moderators, operators
from gatekeeper.bot.router import CommandPublisher, InteractionRouter

COMMANDS = [humans.COMMAND, operators.COMMAND, moderators.COMMAND]


def build_router(context: Any, publisher: Optional[CommandPublisher] = None) -> InteractionRouter:
    return InteractionRouter(
        context,
        commands=COMMANDS,
        buttons=operators.BUTTONS,
        button_prefixes=operators.BUTTON_PREFIXES,
        modal_prefixes=operators.MODAL_PREFIXES,
        publisher=publisher,
    )
