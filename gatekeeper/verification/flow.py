"""Wallet verification: session -> signature -> score -> role.

The flow suspends on the score provider and on the platform. Another request
for the same session may run in between, so the session is re-read after every
await before it is patched again.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Callable, Optional

import bittensor as bt
from eth_account import Account
from eth_account.messages import encode_defunct

from gatekeeper.errors import InputValidationError, MissingConfiguration, PassportError, SessionNotFound
from gatekeeper.roles.engine import RoleAssignmentEngine
from gatekeeper.roles.requests import ReconcileScore
from gatekeeper.utils.validation import require_eth_address
from gatekeeper.verification.passport import PassportClient
from gatekeeper.verification.session import TERMINAL_STATUSES, Session, SessionStatus, SessionStore

VERIFICATION_MESSAGE = "Verify wallet ownership for the validator community"


def recover_signer(message: str, signature: str) -> str:
    try:
        return Account.recover_message(encode_defunct(text=message), signature=signature)
    except Exception as exc:
        raise InputValidationError("Invalid wallet signature.") from exc


class VerificationFlow:
    def __init__(
        self,
        store: SessionStore,
        roles: RoleAssignmentEngine,
        passport: Optional[PassportClient],
        *,
        recover_address: Callable[[str, str], str] = recover_signer,
    ) -> None:
        self.store = store
        self.roles = roles
        self.passport = passport
        self._recover = recover_address

    @property
    def minimum_score(self) -> float:
        return self.roles.minimum_score

    def start(self, owner_id: str) -> Session:
        while True:
            session = self.store.create(uuid.uuid4().hex, owner_id)
            if session is not None:
                bt.logging.info(f"[verify] session created session={session.session_id} user={owner_id}")
                return session

    def _require(self, session_id: str) -> Session:
        session = self.store.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def connect_wallet(self, session_id: str, wallet_address: str) -> Session:
        address = require_eth_address(wallet_address)
        session = self._require(session_id)
        if session.status in TERMINAL_STATUSES:
            raise InputValidationError("This verification session is already complete.")
        self.store.patch(session_id, wallet_address=address, status=SessionStatus.WALLET_CONNECTED)
        return self._require(session_id)

    async def submit_signature(self, session_id: str, signature: str) -> Session:
        session = self._require(session_id)
        if session.status in TERMINAL_STATUSES:
            self.store.patch(session_id, status=SessionStatus.USED)
            raise InputValidationError("This verification link has already been used. Run /human verify again.")
        if self.passport is None:
            raise MissingConfiguration("PASSPORT_API_KEY")
        if not signature:
            raise InputValidationError("Missing signature.")

        address = self._recover(VERIFICATION_MESSAGE, signature)
        if session.wallet_address and session.wallet_address.lower() != address.lower():
            raise InputValidationError("Signature does not match the connected wallet.")
        self.store.patch(
            session_id,
            wallet_address=address,
            signature=signature,
            status=SessionStatus.SIGNATURE_RECEIVED,
        )

        try:
            result = await asyncio.to_thread(self.passport.get_score, address)
        except PassportError as exc:
            bt.logging.error(f"[verify] score lookup failed session={session_id} error={exc.describe()}")
            self.store.patch(session_id, status=SessionStatus.VERIFICATION_ERROR)
            return self._require(session_id)

        self._require(session_id)
        self.store.patch(
            session_id,
            score=result.score,
            last_score_timestamp=result.last_score_timestamp or time.time(),
            status=SessionStatus.SCORE_RETRIEVED,
        )

        ok = await self.roles.assign(ReconcileScore(user_id=session.owner_id, score=result.score))

        self._require(session_id)
        verified = result.score >= self.minimum_score
        if not ok:
            status = SessionStatus.VERIFICATION_ERROR
        elif verified:
            status = SessionStatus.VERIFIED_COMPLETE
        else:
            status = SessionStatus.VERIFICATION_FAILED_SCORE
        self.store.patch(session_id, role_assigned=ok and verified, status=status)
        bt.logging.info(
            f"[verify] done session={session_id} user={session.owner_id} score={result.score} "
            f"minimum={self.minimum_score} status={status.value}"
        )
        return self._require(session_id)

    def latest_for(self, owner_id: str) -> Optional[Session]:
        return self.store.find_latest_by_owner(owner_id)
