"""Per-epoch cache of validator liveness stats.

The node only exposes one method returning every validator's stats at once, so
the cache works per epoch: the first request in an epoch triggers one upstream
call, every concurrent request (for any address) waits on that same call, and
the resolved payload is sliced into immutable `(address, epoch)` entries.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple

import bittensor as bt

from gatekeeper.constants import LIVENESS_WINDOW_SECONDS, MISS_PERCENTAGE_THRESHOLD
from gatekeeper.errors import RpcError


@dataclass(frozen=True)
class ValidatorStats:
    address: str
    total_slots: int
    missed_attestations_count: int
    missed_proposals_count: int
    last_attestation_timestamp: Optional[int] = None
    last_attestation_slot: Optional[int] = None
    last_proposal_timestamp: Optional[int] = None
    last_proposal_slot: Optional[int] = None


def _slot_field(raw: Any, field: str) -> Optional[int]:
    if not isinstance(raw, dict) or raw.get(field) is None:
        return None
    return int(raw[field])


def _count(raw: Any) -> int:
    if isinstance(raw, dict):
        return int(raw.get("count", 0) or 0)
    return int(raw or 0)


def parse_stats_payload(result: Any) -> Dict[str, ValidatorStats]:
    """Turn a `node_getValidatorsStats` result into stats keyed by lowercase address."""
    if not isinstance(result, dict) or not isinstance(result.get("stats"), dict):
        raise RpcError("Validator stats payload missing 'stats' object")
    out: Dict[str, ValidatorStats] = {}
    try:
        for address, raw in result["stats"].items():
            out[address.lower()] = ValidatorStats(
                address=address.lower(),
                total_slots=int(raw.get("totalSlots", 0) or 0),
                missed_attestations_count=_count(raw.get("missedAttestations")),
                missed_proposals_count=_count(raw.get("missedProposals")),
                last_attestation_timestamp=_slot_field(raw.get("lastAttestation"), "timestamp"),
                last_attestation_slot=_slot_field(raw.get("lastAttestation"), "slot"),
                last_proposal_timestamp=_slot_field(raw.get("lastProposal"), "timestamp"),
                last_proposal_slot=_slot_field(raw.get("lastProposal"), "slot"),
            )
    except (AttributeError, TypeError, ValueError) as exc:
        raise RpcError(f"Malformed validator stats entry: {exc}") from exc
    return out


class ValidatorStatsCache:
    def __init__(self, fetch_all: Callable[[], Awaitable[Any]]) -> None:
        self._fetch_all = fetch_all
        self._entries: Dict[Tuple[str, int], ValidatorStats] = {}
        self._loaded_epochs: Set[int] = set()
        self._inflight: Dict[int, asyncio.Task] = {}
        self.upstream_calls = 0

    async def fetch(self, address: str, epoch: int) -> Optional[ValidatorStats]:
        """
        Stats for `address` in `epoch`, or None if the node does not track it.

        Raises whatever the shared upstream call raised; the next call retries.
        """
        key = (address.lower(), int(epoch))
        if key in self._entries:
            return self._entries[key]
        if key[1] in self._loaded_epochs:
            return None

        task = self._inflight.get(key[1])
        if task is None:
            task = asyncio.ensure_future(self._load(key[1]))
            self._inflight[key[1]] = task
            task.add_done_callback(lambda t, e=key[1]: self._clear(e, t))
        # One caller being cancelled must not cancel the shared fetch.
        await asyncio.shield(task)
        return self._entries.get(key)

    def _clear(self, epoch: int, task: asyncio.Task) -> None:
        if self._inflight.get(epoch) is task:
            del self._inflight[epoch]

    async def _load(self, epoch: int) -> None:
        self.upstream_calls += 1
        bt.logging.debug(f"[stats] fetching validator stats epoch={epoch} upstream_calls={self.upstream_calls}")
        try:
            stats = parse_stats_payload(await self._fetch_all())
        except RpcError as exc:
            bt.logging.error(f"[stats] fetch failed epoch={epoch} error={exc.describe()}")
            raise
        for address, entry in stats.items():
            self._entries[(address, epoch)] = entry
        self._loaded_epochs.add(epoch)
        bt.logging.info(f"[stats] cached epoch={epoch} validators={len(stats)}")


def has_attested_within(
    stats: ValidatorStats,
    window_s: int = LIVENESS_WINDOW_SECONDS,
    *,
    now: Optional[float] = None,
) -> bool:
    if stats.last_attestation_timestamp is None:
        return False
    now = time.time() if now is None else now
    return stats.last_attestation_timestamp >= int(now) - window_s


def miss_percentage(stats: ValidatorStats) -> float:
    if stats.total_slots <= 0:
        return 0.0
    return stats.missed_attestations_count / stats.total_slots * 100.0


def is_attesting(stats: ValidatorStats, threshold: float = MISS_PERCENTAGE_THRESHOLD) -> bool:
    if stats.total_slots <= 0:
        return False
    return miss_percentage(stats) < threshold
