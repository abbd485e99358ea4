"""Read-only access to the rollup contract over L1 JSON-RPC."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import bittensor as bt
from web3 import HTTPProvider, Web3

from gatekeeper.errors import RpcError


def _view(name: str, output_type: str) -> Dict[str, Any]:
    return {
        "inputs": [],
        "name": name,
        "outputs": [{"internalType": output_type, "name": "", "type": output_type}],
        "stateMutability": "view",
        "type": "function",
    }


ROLLUP_ABI: List[Dict[str, Any]] = [
    _view("getPendingBlockNumber", "uint256"),
    _view("getProvenBlockNumber", "uint256"),
    _view("getAttesters", "address[]"),
    _view("getCurrentEpochCommittee", "address[]"),
    _view("getCurrentEpoch", "uint256"),
    _view("getCurrentSlot", "uint256"),
    _view("getCurrentProposer", "address"),
]


@dataclass(frozen=True)
class ChainInfo:
    pending_block_num: int
    proven_block_num: int
    validators: List[str]
    committee: List[str]
    current_epoch: int
    current_slot: int
    proposer: str


class ChainInfoService:
    def __init__(
        self,
        ethereum_host: str,
        rollup_address: str,
        *,
        timeout_s: float = 10.0,
        web3: Optional[Web3] = None,
    ) -> None:
        self.web3 = web3 or Web3(HTTPProvider(ethereum_host, request_kwargs={"timeout": timeout_s}))
        self.rollup = self.web3.eth.contract(
            address=Web3.to_checksum_address(rollup_address),
            abi=ROLLUP_ABI,
        )

    def _read(self, fn: str) -> Any:
        try:
            return getattr(self.rollup.functions, fn)().call()
        except Exception as exc:
            raise RpcError(f"Rollup read {fn} failed: {exc}") from exc

    def current_epoch(self) -> int:
        return int(self._read("getCurrentEpoch"))

    def attesters(self) -> List[str]:
        return [str(a) for a in self._read("getAttesters")]

    def is_in_set(self, address: str) -> bool:
        wanted = address.lower()
        return any(a.lower() == wanted for a in self.attesters())

    def get_info(self) -> ChainInfo:
        info = ChainInfo(
            pending_block_num=int(self._read("getPendingBlockNumber")),
            proven_block_num=int(self._read("getProvenBlockNumber")),
            validators=self.attesters(),
            committee=[str(a) for a in self._read("getCurrentEpochCommittee")],
            current_epoch=self.current_epoch(),
            current_slot=int(self._read("getCurrentSlot")),
            proposer=str(self._read("getCurrentProposer")),
        )
        bt.logging.debug(
            f"[chain] epoch={info.current_epoch} slot={info.current_slot} "
            f"pending={info.pending_block_num} proven={info.proven_block_num}"
        )
        return info
