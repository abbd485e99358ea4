"""Blocking REST client for the operator backend.

Lookups return None on 404. Every other failure raises `BackendError` carrying
the HTTP status, so callers can tell "forbidden / previously slashed" (403)
apart from generic failures. Handlers call this through `asyncio.to_thread`.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import bittensor as bt
import requests

from gatekeeper.backend.schemas import NodeOperator, OperatorValidators, User, Validator
from gatekeeper.errors import BackendError


class BackendClient:
    def __init__(self, base_url: str, api_key: str, *, timeout_s: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = timeout_s

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,  # noqa: A002 - match requests API
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = requests.request(
                method,
                url,
                params=params,
                json=json,
                headers={"x-api-key": self.api_key},
                timeout=self.timeout_s,
            )
        except requests.RequestException as exc:
            bt.logging.error(f"[backend] {method} {path} failed: {exc}")
            raise BackendError(f"{method} {path} failed: {exc}") from exc

        if r.status_code >= 400:
            detail = ""
            try:
                body = r.json()
                detail = str(body.get("error") or body.get("message") or "") if isinstance(body, dict) else ""
            except ValueError:
                detail = r.text[:200]
            if r.status_code != 404:
                bt.logging.error(f"[backend] {method} {path} status={r.status_code} detail={detail!r}")
            raise BackendError(detail or f"{method} {path} rejected", status=r.status_code)

        if not r.content:
            return None
        try:
            body = r.json()
        except ValueError as exc:
            bt.logging.error(f"[backend] {method} {path} returned a non-JSON body status={r.status_code}")
            raise BackendError(f"{method} {path} returned a non-JSON body", status=r.status_code) from exc
        # Most routes wrap their payload as {"success": ..., "data": ...}.
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    def _get_optional(self, path: str, params: Dict[str, Any]) -> Any:
        try:
            return self._request("GET", path, params=params)
        except BackendError as exc:
            if exc.not_found:
                return None
            raise

    # Operators

    def get_operator(self, discord_id: str) -> Optional[NodeOperator]:
        data = self._get_optional("/api/operator", {"discordId": discord_id})
        return NodeOperator.model_validate(data) if data else None

    def create_operator(self, discord_id: str, discord_username: str, wallet_address: str) -> NodeOperator:
        data = self._request(
            "POST",
            "/api/operator",
            json={"discordId": discord_id, "discordUsername": discord_username, "walletAddress": wallet_address},
        )
        return NodeOperator.model_validate(data)

    def update_operator_wallet(self, discord_id: str, wallet_address: str) -> None:
        self._request("PUT", "/api/operator", params={"discordId": discord_id}, json={"walletAddress": wallet_address})

    def approve_operator(self, discord_id: str) -> None:
        self._request("PUT", "/api/operator/approve", params={"discordId": discord_id})

    def unapprove_operator(self, discord_id: str) -> None:
        self._request("DELETE", "/api/operator/approve", params={"discordId": discord_id})

    def send_operator_message(self, discord_id: str, message: str) -> None:
        self._request("POST", "/api/operator/message", params={"discordId": discord_id}, json={"message": message})

    # Validators

    def get_validator(self, address: str) -> Optional[Validator]:
        data = self._get_optional("/api/validator", {"address": address})
        if not data:
            return None
        # The lookup route returns `address` rather than `validatorAddress`.
        if "validatorAddress" not in data and "address" in data:
            data = {**data, "validatorAddress": data["address"], "nodeOperatorId": data.get("operatorId")}
        return Validator.model_validate(data)

    def get_operator_validators(self, discord_id: str) -> Optional[OperatorValidators]:
        data = self._get_optional("/api/validator", {"discordId": discord_id})
        return OperatorValidators.model_validate(data) if data else None

    def add_validator(self, discord_id: str, address: str) -> None:
        self._request("POST", "/api/validator", params={"discordId": discord_id}, json={"validatorAddress": address})

    def update_validator_peer(self, address: str, peer_id: Optional[str]) -> None:
        self._request("PUT", "/api/validator", json={"validatorAddress": address, "peerId": peer_id})

    # Users

    def get_user(self, discord_id: str) -> Optional[User]:
        data = self._get_optional(f"/api/user/discord/{discord_id}", {})
        if isinstance(data, dict) and "user" in data:
            data = data["user"]
        return User.model_validate(data) if data else None

    def create_user(self, discord_id: str, discord_username: str, human_passport: Dict[str, Any]) -> None:
        self._request(
            "POST",
            "/api/user",
            json={"discordUserId": discord_id, "discordUsername": discord_username, "humanPassport": human_passport},
        )

    def update_user(self, discord_id: str, fields: Dict[str, Any]) -> None:
        self._request("PUT", f"/api/user/discord/{discord_id}", json=fields)

    def record_human_passport(self, discord_id: str, discord_username: str, human_passport: Dict[str, Any]) -> None:
        """Upsert the user's humanPassport block."""
        if self.get_user(discord_id) is None:
            self.create_user(discord_id, discord_username, human_passport)
        else:
            self.update_user(discord_id, {"humanPassport": human_passport})

