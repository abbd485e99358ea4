from __future__ import annotations

from typing import Any, Dict, Iterable, List

SUBCOMMAND = 1
STRING = 3

UPSTREAM_ERROR = "The service is temporarily unavailable. Please try again later."
NOT_REGISTERED = "You are not registered as an operator yet. Use `/operator register` first."


def subcommand(name: str, description: str, *options: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": SUBCOMMAND, "name": name, "description": description, "options": list(options)}


def string_option(name: str, description: str, *, required: bool = True) -> Dict[str, Any]:
    return {"type": STRING, "name": name, "description": description, "required": required}


def has_any_role(member: Any, names: Iterable[str]) -> bool:
    wanted = set(names)
    return any(getattr(r, "name", None) in wanted for r in getattr(member, "roles", None) or [])


def short_address(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"


def bullet_lines(pairs: List[tuple]) -> str:
    return "\n".join(f"**{k}:** {v}" for k, v in pairs)
