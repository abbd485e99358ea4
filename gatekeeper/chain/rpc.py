from __future__ import annotations

import itertools
from typing import Any, Dict, List, Optional

import bittensor as bt
import requests

from gatekeeper.errors import RpcError

VALIDATORS_STATS_METHOD = "node_getValidatorsStats"
ENCODED_ENR_METHOD = "node_getEncodedEnr"


class JsonRpcClient:
    def __init__(self, rpc_url: str, *, timeout_s: float = 10.0) -> None:
        self.rpc_url = rpc_url.rstrip("/")
        self.timeout_s = timeout_s
        self._ids = itertools.count(1)

    def call(self, method: str, params: Optional[List[Any]] = None, *, url: Optional[str] = None) -> Any:
        target = url or self.rpc_url
        body = {"jsonrpc": "2.0", "method": method, "params": params or [], "id": next(self._ids)}
        try:
            r = requests.post(target, json=body, timeout=self.timeout_s)
        except requests.RequestException as exc:
            raise RpcError(f"{method} request failed: {exc}") from exc
        if r.status_code >= 400:
            raise RpcError(f"{method} HTTP error", status=r.status_code)

        try:
            data = r.json()
        except ValueError as exc:
            raise RpcError(f"{method} returned non-JSON body") from exc
        if not isinstance(data, dict):
            raise RpcError(f"{method} returned malformed envelope")
        err = data.get("error")
        if err:
            code = err.get("code") if isinstance(err, dict) else None
            message = err.get("message") if isinstance(err, dict) else str(err)
            raise RpcError(f"{method} RPC error: {message}", code=code)
        if "result" not in data:
            raise RpcError(f"{method} response missing result field")
        return data["result"]

    def get_validators_stats(self) -> Dict[str, Any]:
        bt.logging.debug(f"[rpc] {VALIDATORS_STATS_METHOD} url={self.rpc_url}")
        result = self.call(VALIDATORS_STATS_METHOD)
        if not isinstance(result, dict):
            raise RpcError(f"{VALIDATORS_STATS_METHOD} result is not an object")
        return result

    def get_encoded_enr(self, ip: str, port: int) -> Optional[str]:
        """Ask an operator's node for its ENR. Returns None when it doesn't answer."""
        try:
            result = self.call(ENCODED_ENR_METHOD, url=f"http://{ip}:{port}")
        except RpcError as exc:
            bt.logging.warning(f"[rpc] node unreachable ip={ip} port={port} error={exc.describe()}")
            return None
        return str(result) if result else None
