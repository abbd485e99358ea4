"""In-process verification sessions.

Sessions live for a fixed window after creation. Every read first evicts all
expired entries, so an expired session is indistinguishable from one that was
never created. There is no persistence: a restart drops every session.
"""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from gatekeeper.constants import SESSION_TTL_SECONDS


class SessionStatus(str, Enum):
    INITIATED = "initiated"
    WALLET_CONNECTED = "wallet_connected"
    SIGNATURE_RECEIVED = "signature_received"
    SCORE_RETRIEVED = "score_retrieved"
    VERIFIED_COMPLETE = "verified_complete"
    VERIFICATION_FAILED_SCORE = "verification_failed_score"
    VERIFICATION_ERROR = "verification_error"
    EXPIRED = "expired"
    USED = "used"


TERMINAL_STATUSES = frozenset(
    {
        SessionStatus.VERIFIED_COMPLETE,
        SessionStatus.VERIFICATION_FAILED_SCORE,
        SessionStatus.VERIFICATION_ERROR,
        SessionStatus.USED,
    }
)


@dataclass
class Session:
    session_id: str
    owner_id: str
    created_at: float
    status: SessionStatus = SessionStatus.INITIATED
    wallet_address: Optional[str] = None
    signature: Optional[str] = None
    score: Optional[float] = None
    role_assigned: bool = False
    last_score_timestamp: Optional[float] = None


_IMMUTABLE_FIELDS = frozenset({"session_id", "owner_id", "created_at"})
_PATCHABLE_FIELDS = frozenset(f.name for f in dataclasses.fields(Session)) - _IMMUTABLE_FIELDS


class SessionStore:
    def __init__(
        self,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, Session] = {}

    def __len__(self) -> int:
        self._sweep()
        return len(self._sessions)

    def _is_live(self, session: Session, now: float) -> bool:
        return now - session.created_at < self.ttl_seconds

    def _sweep(self) -> float:
        now = self._clock()
        expired = [sid for sid, s in self._sessions.items() if not self._is_live(s, now)]
        for sid in expired:
            del self._sessions[sid]
        return now

    def create(self, session_id: str, owner_id: str) -> Optional[Session]:
        """Insert a new `initiated` session. Returns None if the id is already live."""
        now = self._sweep()
        if session_id in self._sessions:
            return None
        session = Session(session_id=session_id, owner_id=owner_id, created_at=now)
        self._sessions[session_id] = session
        return dataclasses.replace(session)

    def get(self, session_id: str) -> Optional[Session]:
        self._sweep()
        session = self._sessions.get(session_id)
        # Callers get a snapshot; mutation goes through patch().
        return dataclasses.replace(session) if session is not None else None

    def find_latest_by_owner(self, owner_id: str) -> Optional[Session]:
        self._sweep()
        latest: Optional[Session] = None
        for s in self._sessions.values():
            if s.owner_id != owner_id:
                continue
            if latest is None or s.created_at > latest.created_at:
                latest = s
        return dataclasses.replace(latest) if latest is not None else None

    def patch(self, session_id: str, **fields) -> bool:
        """
        Merge `fields` into a live session.

        Returns False (and never creates anything) when the session is absent or
        expired. Identity fields cannot be patched.
        """
        bad = set(fields) - _PATCHABLE_FIELDS
        if bad:
            raise TypeError(f"Cannot patch session fields: {sorted(bad)}")
        self._sweep()
        session = self._sessions.get(session_id)
        if session is None:
            return False
        for name, value in fields.items():
            setattr(session, name, value)
        return True
