import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import schemas
from .arbitrage import ArbitrageGuard, compute_arbitrage_bounds
from .buckets import BucketRegistry
from .config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY, Settings, get_settings
from .db import get_db
from .engine import CLUMEngine
from .errors import (
    EverlastError,
    InvalidGeometry,
    InvalidPrice,
    NumericOverflow,
    SolvencyViolation,
    StalePrice,
    UnauthorizedCaller,
    VerificationFailed,
)
from .funding import FundingDeriver
from .implied_distribution import prob_above, summarize_distribution
from .journal import EventJournal
from .oracle import StaticPriceFeed, get_fresh_spot_price
from .state import state_to_dict
from .types import OptionType, Side, TradeIntent

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

router = APIRouter()
journal = EventJournal()


@dataclass
class Market:
    settings: Settings
    feed: StaticPriceFeed
    registry: BucketRegistry
    engine: CLUMEngine
    funding: FundingDeriver
    guard: ArbitrageGuard
    credentials: Dict[str, str] = field(default_factory=dict)


def build_market(settings: Settings) -> Market:
    feed = StaticPriceFeed(settings.spot_price)
    registry = BucketRegistry(
        feed,
        settings.center_price,
        settings.bucket_width,
        settings.num_regular,
        settings.rebalance_threshold_fraction,
    )
    engine = CLUMEngine(
        registry,
        option_manager=settings.option_manager,
        max_exposure_wad=settings.max_exposure,
        tolerance_wad=settings.tolerance,
    )
    engine.initialize_with_subsidy(settings.subsidy)
    funding = FundingDeriver(
        engine,
        registry,
        premium_factor=settings.premium_factor,
        funding_period=settings.funding_period,
        max_funding_rate_per_second=settings.max_funding_rate_per_second,
    )
    credentials = {
        settings.option_manager: pwd_context.hash(settings.option_manager_password),
        settings.keeper: pwd_context.hash(settings.keeper_password),
    }
    return Market(settings, feed, registry, engine, funding, ArbitrageGuard(engine), credentials)


# In-memory market (single process); mutations are serialised by MARKET_LOCK
MARKET_LOCK = Lock()
_market: Optional[Market] = None


def get_market() -> Market:
    global _market
    with MARKET_LOCK:
        if _market is None:
            _market = build_market(get_settings())
        return _market


def set_market(market: Optional[Market]) -> None:
    global _market
    with MARKET_LOCK:
        _market = market


# --- Auth ---

def authenticate_principal(market: Market, username: str, password: str) -> bool:
    hashed = market.credentials.get(username)
    return hashed is not None and pwd_context.verify(password, hashed)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


async def get_current_caller(token: str = Depends(oauth2_scheme), market: Market = Depends(get_market)) -> str:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
        token_data = schemas.TokenData(username=username)
    except JWTError:
        raise credentials_exception
    if token_data.username not in market.credentials:
        raise credentials_exception
    return token_data.username


@router.post("/token", response_model=schemas.Token)
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    market: Market = Depends(get_market),
):
    if not authenticate_principal(market, form_data.username, form_data.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token = create_access_token(
        data={"sub": form_data.username}, expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return {"access_token": access_token, "token_type": "bearer"}


@contextmanager
def engine_errors():
    """Map pricing-core failures onto HTTP errors."""
    try:
        yield
    except UnauthorizedCaller as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except VerificationFailed as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"check": e.check.value, "reason": str(e)},
        )
    except (SolvencyViolation, InvalidGeometry, NumericOverflow) as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except (InvalidPrice, StalePrice) as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except EverlastError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except (ValueError, IndexError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# --- Grid ---

@router.get("/grid", response_model=schemas.GridRead)
def get_grid(market: Market = Depends(get_market)):
    registry = market.registry
    with engine_errors():
        return {
            "center_price": registry.get_center_price(),
            "bucket_width": registry.get_bucket_width(),
            "num_buckets": registry.get_num_buckets(),
            "spot_price": registry.get_spot_price(),
            "needs_rebalance": registry.needs_rebalance(),
            "buckets": registry.grid.buckets(),
        }


@router.get("/grid/index")
def get_bucket_index(price: int = Query(...), market: Market = Depends(get_market)):
    with engine_errors():
        idx = market.registry.get_bucket_index(price)
        low, high = market.registry.get_bucket_bounds(idx)
    return {"price": price, "idx": idx, "low": low, "high": high}


# --- Engine state and distribution ---

@router.get("/engine", response_model=schemas.EngineRead)
def get_engine_state(market: Market = Depends(get_market)):
    with engine_errors():
        return state_to_dict(market.engine.state)


@router.get("/distribution", response_model=schemas.DistributionRead)
def get_distribution(market: Market = Depends(get_market)):
    midpoints, probabilities = market.engine.get_implied_distribution()
    return {"midpoints": midpoints, "probabilities": probabilities}


@router.get("/distribution/summary", response_model=schemas.DistributionSummary)
def get_distribution_summary(strike: Optional[int] = Query(None), market: Market = Depends(get_market)):
    midpoints, probabilities = market.engine.get_implied_distribution()
    with engine_errors():
        summary = summarize_distribution(midpoints, probabilities)
        if strike is not None:
            above = prob_above(midpoints, probabilities, strike)
            summary["prob_above_empirical"] = above["empirical"]
            summary["prob_above_lognormal"] = above["lognormal"]
    return summary


@router.get("/bid_ask", response_model=List[schemas.BidAsk])
def get_bid_ask(market: Market = Depends(get_market)):
    return [{"idx": i, **row} for i, row in enumerate(market.engine.get_bid_ask())]


# --- Quotes and funding ---

@router.get("/quote", response_model=schemas.QuoteRead)
def get_quote(
    option_type: OptionType = Query(...),
    strike: int = Query(...),
    size: int = Query(...),
    side: Side = Query(Side.BUY),
    market: Market = Depends(get_market),
):
    engine = market.engine
    with engine_errors():
        if side is Side.BUY:
            amount = engine.quote_buy(option_type, strike, size)
        else:
            amount = engine.quote_sell(option_type, strike, size)
        valid = market.guard.validate_trade(option_type, strike, size, side is Side.BUY)
    return {
        "option_type": option_type,
        "side": side,
        "strike": strike,
        "size": size,
        "amount": amount,
        "valid": valid,
    }


@router.get("/funding", response_model=schemas.FundingRead)
def get_funding(
    option_type: OptionType = Query(...),
    strike: int = Query(...),
    size: int = Query(...),
    market: Market = Depends(get_market),
):
    funding = market.funding
    with engine_errors():
        per_second = funding.get_funding_per_second(option_type, strike, size)
        return {
            "option_type": option_type,
            "strike": strike,
            "size": size,
            "mark_price": funding.get_mark_price(option_type, strike),
            "intrinsic_value": funding.get_intrinsic_value(option_type, strike),
            "funding_per_second": per_second,
            "funding_per_second_usdc": funding.get_funding_per_second_usdc(option_type, strike, size),
            "oracle_fresh": market.feed.is_oracle_fresh(market.settings.oracle_staleness),
        }


@router.post("/arbitrage/bounds", response_model=schemas.ArbitrageBoundsRead)
def get_arbitrage_bounds(req: schemas.ArbitrageBoundsRequest, market: Market = Depends(get_market)):
    with engine_errors():
        return compute_arbitrage_bounds(req.strikes, req.call_prices, req.put_prices, market.registry.get_spot_price())


# --- Mutations (authenticated) ---

def _journal_new_events(db: Session, market: Market, start: int) -> None:
    new_events = market.engine.events[start:]
    if new_events:
        journal.record_all(db, new_events)


@router.post("/trades", response_model=schemas.TradeResult)
def execute_trade(
    req: schemas.TradeRequest,
    caller: str = Depends(get_current_caller),
    market: Market = Depends(get_market),
    db: Session = Depends(get_db),
):
    engine = market.engine
    with MARKET_LOCK, engine_errors():
        start = len(engine.events)
        if req.side is Side.BUY:
            amount = engine.execute_buy(caller, req.option_type, req.strike, req.size)
        else:
            amount = engine.execute_sell(caller, req.option_type, req.strike, req.size)
        _journal_new_events(db, market, start)
        return {"amount": amount, "cached_cost": engine.get_cached_cost()}


@router.post("/cost", response_model=schemas.StateRead)
def submit_cost(
    req: schemas.CostSubmission,
    caller: str = Depends(get_current_caller),
    market: Market = Depends(get_market),
    db: Session = Depends(get_db),
):
    engine = market.engine
    with MARKET_LOCK, engine_errors():
        trades = [TradeIntent(t.option_type, t.strike, t.size, t.side) for t in req.trades]
        start = len(engine.events)
        engine.verify_and_set_cost(caller, req.proposed_cost, req.new_quantities, trades)
        _journal_new_events(db, market, start)
        return {"cached_cost": engine.get_cached_cost(), "center_price": market.registry.get_center_price()}


@router.post("/recenter", response_model=schemas.StateRead)
def recenter(
    req: schemas.RecenterRequest,
    caller: str = Depends(get_current_caller),
    market: Market = Depends(get_market),
    db: Session = Depends(get_db),
):
    engine = market.engine
    with MARKET_LOCK, engine_errors():
        start = len(engine.events)
        engine.recenter(req.new_center)
        _journal_new_events(db, market, start)
        logger.info("Recenter to %d requested by %s", req.new_center, caller)
        return {"cached_cost": engine.get_cached_cost(), "center_price": market.registry.get_center_price()}


@router.post("/rebalance")
def rebalance(
    caller: str = Depends(get_current_caller),
    market: Market = Depends(get_market),
    db: Session = Depends(get_db),
):
    engine = market.engine
    with MARKET_LOCK, engine_errors():
        # refuse to move the grid on a stale spot
        get_fresh_spot_price(market.feed, market.settings.oracle_staleness)
        start = len(engine.events)
        result = engine.rebalance()
        _journal_new_events(db, market, start)
        return {"rebalanced": result is not None, "center_price": market.registry.get_center_price()}


@router.get("/trades", response_model=List[schemas.TradeRecordRead])
def list_trades(limit: int = Query(100, ge=1, le=1000), db: Session = Depends(get_db)):
    return journal.list_trades(db, limit)


@router.get("/cost_updates", response_model=List[schemas.CostUpdateRead])
def list_cost_updates(limit: int = Query(100, ge=1, le=1000), db: Session = Depends(get_db)):
    return journal.list_cost_updates(db, limit)


@router.get("/recenters", response_model=List[schemas.RecenterRead])
def list_recenters(limit: int = Query(100, ge=1, le=1000), db: Session = Depends(get_db)):
    return journal.list_recenters(db, limit)
