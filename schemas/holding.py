from __future__ import annotations

from datetime import datetime
from typing import Dict

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class HoldingCreate(BaseModel):
    # Older clients send {name, type, quantity, avgPrice}.
    model_config = ConfigDict(populate_by_name=True)

    ticker: str = Field(
        min_length=1,
        max_length=32,
        validation_alias=AliasChoices("ticker", "symbol", "name"),
    )
    asset_type: str = Field(
        default="",
        max_length=32,
        validation_alias=AliasChoices("asset_type", "assetType", "type"),
    )
    quantity: float = Field(allow_inf_nan=False)
    price: float = Field(
        ge=0,
        allow_inf_nan=False,
        validation_alias=AliasChoices("price", "avg_price", "avgPrice"),
    )

    @field_validator("ticker")
    @classmethod
    def _strip_ticker(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("ticker must not be blank")
        return v


class HoldingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int | None = None
    ticker: str
    asset_type: str | None = None
    quantity: float
    avg_cost: float
    current_price: float
    previous_close: float
    currency: str
    market_value: float
    updated_at: datetime | None = None


class PriceRefreshOut(BaseModel):
    message: str
    updated: int
    outcomes: Dict[str, str]


class RatesOut(BaseModel):
    USD: float
    INR: float
    SGD: float
