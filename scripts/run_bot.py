from __future__ import annotations

import sys
from pathlib import Path

# Allow running as a script without requiring `PYTHONPATH=.`.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import asyncio

import bittensor as bt
import uvicorn

from gatekeeper import __version__
from gatekeeper.bot.client import GatekeeperBot
from gatekeeper.config import load_bot_env
from gatekeeper.verification.app import create_app


async def main() -> int:
    cfg = load_bot_env()
    bt.logging.info(f"[gatekeeper] starting v{__version__}")
    bot = GatekeeperBot(cfg)

    runners = [bot.start(cfg.discord.bot_token)]
    if cfg.verification_api is not None:
        # Same loop as the bot so both share one SessionStore.
        app = create_app(bot.context.verification)
        server = uvicorn.Server(
            uvicorn.Config(app, host=cfg.verification_api.host, port=cfg.verification_api.port, log_level="info")
        )
        runners.append(server.serve())
        bt.logging.info(f"[gatekeeper] verification API on {cfg.verification_api.host}:{cfg.verification_api.port}")
    else:
        bt.logging.warning("[gatekeeper] GATEKEEPER_VERIFICATION_PUBLIC_URL unset; /human verify is disabled")

    async with bot:
        await asyncio.gather(*runners)
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
