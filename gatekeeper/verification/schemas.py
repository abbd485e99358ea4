from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _ApiModel(BaseModel):
    # The wallet-connect page sends and expects camelCase.
    model_config = ConfigDict(populate_by_name=True)


class ConnectWalletRequest(_ApiModel):
    session_id: str = Field(alias="sessionId")
    wallet_address: str = Field(alias="walletAddress")


class VerifySignatureRequest(_ApiModel):
    session_id: str = Field(alias="sessionId")
    signature: str


class SessionView(_ApiModel):
    success: bool = True
    session_valid: bool = Field(default=True, alias="sessionValid")
    session_id: str = Field(alias="sessionId")
    wallet_connected: bool = Field(alias="walletConnected")
    wallet_address: Optional[str] = Field(default=None, alias="walletAddress")
    verified: bool
    status: str
    score: Optional[float] = None


class ConnectWalletResponse(_ApiModel):
    success: bool = True
    status: str
    message: str


class VerifyResponse(_ApiModel):
    success: bool
    verified: bool
    role_assigned: bool = Field(alias="roleAssigned")
    score: Optional[float] = None
    address: Optional[str] = None
    session_status: str = Field(alias="sessionStatus")


class StatusView(_ApiModel):
    success: bool = True
    session_id: str = Field(alias="sessionId")
    wallet_connected: bool = Field(alias="walletConnected")
    signature_received: bool = Field(alias="signatureReceived")
    verified: bool
    role_assigned: bool = Field(alias="roleAssigned")
    score: Optional[float] = None
    status: str
    minimum_required_score: float = Field(alias="minimumRequiredScore")
