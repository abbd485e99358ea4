from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

import bittensor as bt

from gatekeeper.constants import VERIFIED_ROLE
from gatekeeper.utils.env import _env_float, _env_int, _env_optional, _env_str, _env_url
from gatekeeper.utils.validation import is_eth_address

T = TypeVar("T")


@dataclass(frozen=True)
class DiscordConfig:
    bot_token: str
    client_id: str
    guild_id: Optional[str]


@dataclass(frozen=True)
class RoleConfig:
    minimum_score: float
    verified_role: str


@dataclass(frozen=True)
class BackendConfig:
    base_url: str
    api_key: str
    timeout_s: float


@dataclass(frozen=True)
class ChainConfig:
    rpc_url: Optional[str]
    rpc_timeout_s: float
    ethereum_host: Optional[str]
    rollup_address: Optional[str]


@dataclass(frozen=True)
class PassportConfig:
    api_url: str
    api_key: str
    scorer_id: str
    timeout_s: float


@dataclass(frozen=True)
class VerificationApiConfig:
    public_url: str
    host: str
    port: int


@dataclass(frozen=True)
class BotEnvConfig:
    discord: DiscordConfig
    roles: RoleConfig
    backend: Optional[BackendConfig]
    chain: ChainConfig
    passport: Optional[PassportConfig]
    verification_api: Optional[VerificationApiConfig]


def _die(msg: str) -> None:
    raise SystemExit(f"[gatekeeper] {msg}")


def _require_http(name: str, url: Optional[str]) -> None:
    if url and not url.startswith("http"):
        _die(f"{name} must be http(s). Got: {url!r}")


def _number(read: Callable[[str, T], T], name: str, default: T) -> T:
    try:
        return read(name, default)
    except ValueError:
        _die(f"{name} must be numeric. Got: {_env_str(name)!r}")


def load_bot_env() -> BotEnvConfig:
    """
    Load bot configuration from env/.env.

    Only the platform credentials are fatal when missing, along with malformed
    URLs and numbers. Every other section is optional: it resolves to None
    (logged at error level when half-configured) and the commands depending on
    it answer with a configuration error instead of taking the whole bot down.
    """
    bot_token = _env_str("GATEKEEPER_BOT_TOKEN", "")
    client_id = _env_str("GATEKEEPER_BOT_CLIENT_ID", "")
    if not bot_token:
        _die("Missing required env var: GATEKEEPER_BOT_TOKEN.")
    if not client_id:
        _die("Missing required env var: GATEKEEPER_BOT_CLIENT_ID.")

    discord_cfg = DiscordConfig(
        bot_token=bot_token,
        client_id=client_id,
        guild_id=_env_optional("GATEKEEPER_GUILD_ID"),
    )

    roles_cfg = RoleConfig(
        minimum_score=_number(_env_float, "GATEKEEPER_MINIMUM_SCORE", 0.0),
        verified_role=_env_str("GATEKEEPER_VERIFIED_ROLE", VERIFIED_ROLE) or VERIFIED_ROLE,
    )

    backend_cfg: Optional[BackendConfig] = None
    backend_url = _env_url("GATEKEEPER_BACKEND_URL")
    if backend_url:
        _require_http("GATEKEEPER_BACKEND_URL", backend_url)
        api_key = _env_str("GATEKEEPER_BACKEND_API_KEY", "")
        if not api_key:
            bt.logging.error(
                "[gatekeeper] GATEKEEPER_BACKEND_API_KEY not set (required when GATEKEEPER_BACKEND_URL is set); "
                "backend commands are disabled"
            )
        else:
            backend_cfg = BackendConfig(
                base_url=backend_url,
                api_key=api_key,
                timeout_s=_number(_env_float, "GATEKEEPER_BACKEND_TIMEOUT_S", 10.0),
            )

    rpc_url = _env_url("GATEKEEPER_RPC_URL")
    ethereum_host = _env_url("GATEKEEPER_ETHEREUM_HOST")
    _require_http("GATEKEEPER_RPC_URL", rpc_url)
    _require_http("GATEKEEPER_ETHEREUM_HOST", ethereum_host)
    rollup_address = _env_optional("GATEKEEPER_ROLLUP_ADDRESS")
    if rollup_address and not is_eth_address(rollup_address):
        bt.logging.error(f"[gatekeeper] GATEKEEPER_ROLLUP_ADDRESS is not an address: {rollup_address!r}; chain reads are disabled")
        rollup_address = None
    chain_cfg = ChainConfig(
        rpc_url=rpc_url,
        rpc_timeout_s=_number(_env_float, "GATEKEEPER_RPC_TIMEOUT_S", 10.0),
        ethereum_host=ethereum_host,
        rollup_address=rollup_address,
    )

    passport_cfg: Optional[PassportConfig] = None
    passport_key = _env_optional("GATEKEEPER_PASSPORT_API_KEY")
    scorer_id = _env_optional("GATEKEEPER_PASSPORT_SCORER_ID")
    if passport_key and scorer_id:
        api_url = _env_url("GATEKEEPER_PASSPORT_API_URL", "https://api.passport.xyz")
        _require_http("GATEKEEPER_PASSPORT_API_URL", api_url)
        passport_cfg = PassportConfig(
            api_url=api_url,
            api_key=passport_key,
            scorer_id=scorer_id,
            timeout_s=_number(_env_float, "GATEKEEPER_PASSPORT_TIMEOUT_S", 10.0),
        )

    api_cfg: Optional[VerificationApiConfig] = None
    public_url = _env_url("GATEKEEPER_VERIFICATION_PUBLIC_URL")
    if public_url:
        _require_http("GATEKEEPER_VERIFICATION_PUBLIC_URL", public_url)
        api_cfg = VerificationApiConfig(
            public_url=public_url,
            host=_env_str("GATEKEEPER_API_HOST", "0.0.0.0") or "0.0.0.0",
            port=_number(_env_int, "GATEKEEPER_API_PORT", 3000),
        )

    return BotEnvConfig(
        discord=discord_cfg,
        roles=roles_cfg,
        backend=backend_cfg,
        chain=chain_cfg,
        passport=passport_cfg,
        verification_api=api_cfg,
    )
