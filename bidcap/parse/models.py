"""Data models for fee records and bid-cap computations."""
from datetime import date, datetime, timezone
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Rates closer than this are the same rate
RATE_EPSILON = 1e-6


def rates_differ(old: Optional[float], new: float) -> bool:
    """True when a change from old to new must be written and audited."""
    return old is None or abs(old - new) >= RATE_EPSILON


def _truncate_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10 and value[4] == "-":
        return value[:10]
    return value


class FeeRecord(BaseModel):
    """Current buyer's-premium terms of one auction house."""

    house: str = Field(..., min_length=1, description="Auction house name (primary key)")
    buyers_premium: float = Field(..., ge=0, le=1, description="Decimal fraction, e.g. 0.25")
    last_verified: Optional[date] = None
    source_url: Optional[str] = None

    @field_validator("last_verified", mode="before")
    @classmethod
    def truncate_last_verified(cls, value: Any) -> Any:
        return _truncate_date(value)


class FeeAuditEntry(BaseModel):
    """Append-only record of a rate change."""

    house: str
    old_rate: Optional[float] = Field(default=None, description="None when there was no prior row")
    new_rate: float
    source_url: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FeeUpdate(BaseModel):
    """Admin write payload."""

    house: str = Field(..., min_length=1)
    buyers_premium: float = Field(..., ge=0, le=1, strict=True)
    source_url: Optional[str] = None
    last_verified: Optional[date] = None

    @field_validator("last_verified", mode="before")
    @classmethod
    def truncate_last_verified(cls, value: Any) -> Any:
        return _truncate_date(value)


class BidCapRequest(BaseModel):
    """Inputs of a bid-cap computation.

    A ``buyers_premium`` sent by the client is dropped: the rate always
    comes from the fee table.
    """

    model_config = ConfigDict(extra="ignore")

    auction_house: str = Field(..., min_length=1)
    retail_anchor_usd: float = Field(..., ge=0)
    shipping_usd: float = Field(default=0.0, ge=0)
    sales_tax_rate: Optional[float] = Field(default=None, ge=0, lt=1)
    target_discount: Optional[float] = Field(default=None, ge=0, lt=1)
    shipping_country: str = "US"
    auto_tax: bool = False

    fill_level: Optional[str] = None
    capsule: Optional[str] = None
    label: Optional[str] = None
    seepage: Optional[str] = None
    storage: Optional[str] = None
    mold: Optional[str] = None
    drinkability: Optional[str] = None

    @field_validator("shipping_country", mode="before")
    @classmethod
    def upper_country(cls, value: Any) -> Any:
        if value is None or value == "":
            return "US"
        return str(value).strip().upper()


class BidCapResult(BaseModel):
    """Bid cap plus every figure used to derive it."""

    model_config = ConfigDict(populate_by_name=True)

    pre_fee_max: float = Field(..., alias="preFeeMax")
    max_bid: float = Field(..., alias="maxBid")
    risk_sum: float = Field(..., alias="riskSum")
    drink_adj: float = Field(..., alias="drinkAdj")
    bp: float
    tax: float
    target_discount: float = Field(..., alias="targetDiscount")
