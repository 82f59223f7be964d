from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .types import OptionType, Side

# All amounts are integers scaled by 1e18 (WAD) unless the field name says usdc.


class Token(BaseModel):
    access_token: str
    token_type: str


class TokenData(BaseModel):
    username: str | None = None


class Bucket(BaseModel):
    idx: int
    low: int
    high: int
    center: int


class GridRead(BaseModel):
    center_price: int
    bucket_width: int
    num_buckets: int
    spot_price: int
    needs_rebalance: bool
    buckets: List[Bucket]


class EngineRead(BaseModel):
    cached_cost: int
    utility_level: int
    liquidity: int
    center_price: int
    quantities: List[int]


class DistributionRead(BaseModel):
    midpoints: List[int]
    probabilities: List[int]


class DistributionSummary(BaseModel):
    mean: float
    std: float
    mu: float
    sigma: float
    prob_above_empirical: Optional[float] = None
    prob_above_lognormal: Optional[float] = None


class BidAsk(BaseModel):
    idx: int
    mid: int
    bid: int
    ask: int


class QuoteRead(BaseModel):
    option_type: OptionType
    side: Side
    strike: int
    size: int
    amount: int
    valid: bool


class FundingRead(BaseModel):
    option_type: OptionType
    strike: int
    size: int
    mark_price: int
    intrinsic_value: int
    funding_per_second: int
    funding_per_second_usdc: int
    oracle_fresh: bool


class TradeRequest(BaseModel):
    option_type: OptionType
    side: Side = Side.BUY
    strike: int = Field(gt=0)
    size: int = Field(gt=0)


class TradeResult(BaseModel):
    amount: int
    cached_cost: int


class TradeIntentIn(BaseModel):
    option_type: OptionType
    side: Side
    strike: int = Field(gt=0)
    size: int = Field(gt=0)


class CostSubmission(BaseModel):
    proposed_cost: int
    new_quantities: List[int]
    trades: List[TradeIntentIn] = []


class RecenterRequest(BaseModel):
    new_center: int = Field(gt=0)


class StateRead(BaseModel):
    cached_cost: int
    center_price: int


class TradeRecordRead(BaseModel):
    id: int
    option_type: str
    side: str
    strike: str
    size: str
    cost: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ArbitrageBoundsRequest(BaseModel):
    strikes: List[int]
    call_prices: List[int]
    put_prices: List[int]


class ArbitrageBoundsRead(BaseModel):
    call_bids: List[int]
    call_asks: List[int]
    put_bids: List[int]
    put_asks: List[int]


class CostUpdateRead(BaseModel):
    id: int
    old_cost: str
    new_cost: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RecenterRead(BaseModel):
    id: int
    old_center: str
    new_center: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
