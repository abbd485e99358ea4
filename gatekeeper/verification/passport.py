from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import bittensor as bt
import requests

from gatekeeper.errors import PassportError


@dataclass(frozen=True)
class PassportScore:
    address: str
    score: float
    passing: bool
    last_score_timestamp: Optional[float]


def _parse_timestamp(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return None


class PassportClient:
    """Thin client for the Human Passport v2 stamps API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        scorer_id: str,
        *,
        timeout_s: float = 10.0,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.scorer_id = scorer_id
        self.timeout_s = timeout_s

    def get_score(self, address: str) -> PassportScore:
        url = f"{self.api_url}/v2/stamps/{self.scorer_id}/score/{address}"
        try:
            r = requests.get(
                url,
                headers={"X-API-KEY": self.api_key, "Accept": "application/json"},
                timeout=self.timeout_s,
            )
        except requests.RequestException as exc:
            raise PassportError(f"Score request failed: {exc}") from exc
        if r.status_code >= 400:
            bt.logging.error(f"[passport] score lookup failed address={address} status={r.status_code}")
            raise PassportError("Score request rejected", status=r.status_code)

        try:
            data = r.json()
        except ValueError as exc:
            raise PassportError(f"Score response for {address} is not JSON", status=r.status_code) from exc
        if not isinstance(data, dict) or data.get("score") is None:
            raise PassportError(f"Malformed score response for {address}")
        if data.get("status") == "ERROR":
            raise PassportError(f"Score provider error: {data.get('error') or 'unknown'}")
        try:
            score = float(data["score"])
        except (TypeError, ValueError):
            raise PassportError(f"Non-numeric score for {address}: {data['score']!r}") from None

        return PassportScore(
            address=str(data.get("address") or address),
            score=score,
            passing=bool(data.get("passing_score", False)),
            last_score_timestamp=_parse_timestamp(data.get("last_score_timestamp")),
        )
