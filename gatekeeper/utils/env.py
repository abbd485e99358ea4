from __future__ import annotations

import os
from typing import Callable, Optional, TypeVar

from dotenv import load_dotenv

# Load .env once on import.
load_dotenv()

T = TypeVar("T")


def _env_str(name: str, default: str = "") -> str:
    """Read a string env var, stripping whitespace."""
    return (os.getenv(name, default) or "").strip()


def _env_optional(name: str) -> Optional[str]:
    """Read a string env var, mapping empty to None."""
    return _env_str(name, "") or None


def _env_bool(name: str, default: bool = False) -> bool:
    """Read a boolean env var with common truthy values."""
    raw = _env_str(name, str(default)).lower()
    return raw in {"y", "yes", "t", "true", "on", "1"}


def _test_override(name: str, cast: Callable[[str], T], test_default: Optional[T]) -> Optional[T]:
    if not _env_bool("TESTING", False):
        return None
    raw = _env_str(f"TEST_{name}", "")
    if raw:
        return cast(raw)
    if test_default is not None:
        return cast(str(test_default))
    return None


def _env_int(name: str, default: int = 0, *, test_default: Optional[int] = None) -> int:
    """
    Read an int env var.

    If TESTING=true, `TEST_<NAME>` (or `test_default`) wins over `<NAME>`.
    """
    override = _test_override(name, int, test_default)
    if override is not None:
        return override
    return int(_env_str(name, str(default)))


def _env_float(name: str, default: float = 0.0, *, test_default: Optional[float] = None) -> float:
    """
    Read a float env var.

    Same TESTING override rules as `_env_int`.
    """
    override = _test_override(name, float, test_default)
    if override is not None:
        return override
    return float(_env_str(name, str(default)))


def _env_url(name: str, default: str = "") -> Optional[str]:
    """Read a base URL, dropping any trailing slash. Empty maps to None."""
    return _env_str(name, default).rstrip("/") or None
