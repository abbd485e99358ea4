from __future__ import annotations

import ipaddress
import re
from typing import Optional

from gatekeeper.constants import DEFAULT_VALIDATOR_PORT
from gatekeeper.errors import InputValidationError

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_eth_address(value: Optional[str]) -> bool:
    return bool(value) and bool(_ADDRESS_RE.match(value.strip()))


def require_eth_address(value: Optional[str]) -> str:
    """Return the trimmed address or raise before anything touches the network."""
    if not is_eth_address(value):
        raise InputValidationError(
            "Please provide a valid Ethereum address (0x followed by 40 hex characters)."
        )
    return value.strip()


def parse_ipv4(value: str) -> str:
    try:
        return str(ipaddress.IPv4Address(value.strip()))
    except ValueError:
        raise InputValidationError(f"Invalid IP address: {value!r}") from None


def parse_port(value: Optional[str]) -> int:
    raw = (value or "").strip()
    if not raw:
        return DEFAULT_VALIDATOR_PORT
    if not raw.isdigit():
        raise InputValidationError(f"Invalid port: {raw!r}")
    port = int(raw)
    if not 1 <= port <= 65535:
        raise InputValidationError(f"Port must be between 1 and 65535, got {port}")
    return port
