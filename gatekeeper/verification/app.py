from __future__ import annotations

from typing import List, Optional

import bittensor as bt
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from gatekeeper import __version__
from gatekeeper.errors import InputValidationError, MissingConfiguration, SessionNotFound
from gatekeeper.verification.flow import VERIFICATION_MESSAGE, VerificationFlow
from gatekeeper.verification.schemas import (
    ConnectWalletRequest,
    ConnectWalletResponse,
    SessionView,
    StatusView,
    VerifyResponse,
    VerifySignatureRequest,
)
from gatekeeper.verification.session import Session, SessionStatus


def _is_verified(session: Session) -> bool:
    return session.status == SessionStatus.VERIFIED_COMPLETE


def create_app(flow: VerificationFlow, *, cors_origins: Optional[List[str]] = None) -> FastAPI:
    """
    Build the wallet-connect API around a shared `VerificationFlow`.

    Every route is `async def`: the SessionStore is only touched from the event
    loop it shares with the bot.
    """
    app = FastAPI(title="gatekeeper verification", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _session_or_404(session_id: str) -> Session:
        session = flow.store.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found or expired")
        return session

    @app.get("/healthz")
    async def healthz():
        return {"ok": True, "sessions": len(flow.store), "ttl_seconds": flow.store.ttl_seconds}

    @app.get("/session/{session_id}", response_model=SessionView, response_model_by_alias=True)
    async def get_session(session_id: str):
        s = _session_or_404(session_id)
        return SessionView(
            session_id=s.session_id,
            wallet_connected=bool(s.wallet_address),
            wallet_address=s.wallet_address,
            verified=_is_verified(s),
            status=s.status.value,
            score=s.score,
        )

    @app.post("/connect-wallet", response_model=ConnectWalletResponse, response_model_by_alias=True)
    async def connect_wallet(req: ConnectWalletRequest):
        try:
            s = flow.connect_wallet(req.session_id, req.wallet_address)
        except InputValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except SessionNotFound:
            raise HTTPException(status_code=404, detail="Session not found or expired")
        return ConnectWalletResponse(status=s.status.value, message=VERIFICATION_MESSAGE)

    @app.post("/verify-signature", response_model=VerifyResponse, response_model_by_alias=True)
    async def verify_signature(req: VerifySignatureRequest):
        try:
            s = await flow.submit_signature(req.session_id, req.signature)
        except InputValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except SessionNotFound:
            raise HTTPException(status_code=404, detail="Session not found or expired")
        except MissingConfiguration as exc:
            bt.logging.error(f"[api] verification unavailable: {exc}")
            raise HTTPException(status_code=503, detail="Verification is not configured")
        return VerifyResponse(
            success=s.status != SessionStatus.VERIFICATION_ERROR,
            verified=_is_verified(s),
            role_assigned=s.role_assigned,
            score=s.score,
            address=s.wallet_address,
            session_status=s.status.value,
        )

    @app.get("/status/{session_id}", response_model=StatusView, response_model_by_alias=True)
    async def status(session_id: str):
        s = _session_or_404(session_id)
        return StatusView(
            session_id=s.session_id,
            wallet_connected=bool(s.wallet_address),
            signature_received=bool(s.signature),
            verified=_is_verified(s),
            role_assigned=s.role_assigned,
            score=s.score,
            status=s.status.value,
            minimum_required_score=flow.minimum_score,
        )

    return app
