from __future__ import annotations

from typing import Any, Dict

import bittensor as bt
import discord


class ChannelMessageTracker:
    """Keeps one public bot message per (channel, kind); posting again replaces it."""

    def __init__(self) -> None:
        self._messages: Dict[str, Any] = {}

    @staticmethod
    def _key(channel_id: Any, kind: str) -> str:
        return f"{channel_id}:{kind}"

    async def replace(self, channel_id: Any, kind: str, message: Any) -> None:
        key = self._key(channel_id, kind)
        previous = self._messages.get(key)
        if previous is not None and getattr(previous, "id", None) != getattr(message, "id", None):
            try:
                await previous.delete()
            except discord.HTTPException as exc:
                # Someone may have deleted it by hand already.
                bt.logging.debug(f"[messages] could not delete previous {key}: {exc}")
        self._messages[key] = message

    def get(self, channel_id: Any, kind: str) -> Any:
        return self._messages.get(self._key(channel_id, kind))
