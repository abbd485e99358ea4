from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _BackendModel(BaseModel):
    # Backend speaks camelCase and adds fields over time.
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class NodeOperator(_BackendModel):
    discord_id: str = Field(alias="discordId")
    discord_username: Optional[str] = Field(default=None, alias="discordUsername")
    wallet_address: Optional[str] = Field(default=None, alias="walletAddress")
    is_approved: bool = Field(default=False, alias="isApproved")


class Validator(_BackendModel):
    validator_address: str = Field(alias="validatorAddress")
    node_operator_id: Optional[str] = Field(default=None, alias="nodeOperatorId")
    peer_id: Optional[str] = Field(default=None, alias="peerId")


class OperatorValidators(_BackendModel):
    operator: NodeOperator
    validators: List[Validator] = Field(default_factory=list)


class HumanPassport(_BackendModel):
    status: Optional[str] = None
    score: Optional[float] = None
    verification_id: Optional[str] = Field(default=None, alias="verificationId")
    last_verification_time: Optional[int] = Field(default=None, alias="lastVerificationTime")


class User(_BackendModel):
    discord_user_id: str = Field(alias="discordUserId")
    discord_username: Optional[str] = Field(default=None, alias="discordUsername")
    wallet_address: Optional[str] = Field(default=None, alias="walletAddress")
    human_passport: Optional[HumanPassport] = Field(default=None, alias="humanPassport")
