"""Data Transfer Objects for the top-up application layer."""

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class BalanceResponseDTO(BaseModel):
    """DTO for returning a workspace balance."""

    model_config = ConfigDict(populate_by_name=True)

    balance: float
    workspace: str
    needs_topup: Optional[bool] = Field(None, alias="needsTopup")


class TopupResponseDTO(BaseModel):
    """DTO for returning the outcome of a successful top-up."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "success": True,
                "newBalance": 2.0,
                "workspace": "acme",
                "paidAmount": 1000000,
                "topupAmount": 1000000,
            }
        },
    )

    success: bool = True
    new_balance: float = Field(..., alias="newBalance")
    workspace: str
    paid_amount: Union[int, str] = Field(..., alias="paidAmount")
    topup_amount: Union[int, str] = Field(..., alias="topupAmount")


class ErrorResponseDTO(BaseModel):
    """DTO for returning request-scoped failures."""

    error: str
    details: str
