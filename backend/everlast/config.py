import os
from dataclasses import dataclass

from .fixed_point import WAD, to_wad

# Security configuration
SECRET_KEY = os.getenv("EVERLAST_SECRET_KEY", "change-me-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("EVERLAST_TOKEN_EXPIRE_MINUTES", "30"))

DATABASE_URL = os.getenv("EVERLAST_DATABASE_URL", "sqlite:///./everlast.db")

LOG_LEVEL = os.getenv("EVERLAST_LOG_LEVEL", "INFO")
LOG_TO_FILE = os.getenv("EVERLAST_LOG_TO_FILE", "0") == "1"

API_HOST = os.getenv("EVERLAST_API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("EVERLAST_API_PORT", "8000"))


@dataclass(frozen=True)
class Settings:
    # Grid (defaults from the testnet deployment)
    center_price: int = 2500 * WAD
    bucket_width: int = 100 * WAD
    num_regular: int = 20
    rebalance_threshold_fraction: int = WAD // 10
    spot_price: int = 2500 * WAD
    oracle_staleness: int = 86400

    # Engine
    subsidy: int = 100 * WAD
    max_exposure: int = 10**12 * WAD
    tolerance: int = 10**9

    # Funding
    premium_factor: int = WAD
    funding_period: int = 86400
    max_funding_rate_per_second: int = WAD // 100

    # Principals
    option_manager: str = "option-manager"
    option_manager_password: str = "manager-secret"
    keeper: str = "keeper"
    keeper_password: str = "keeper-secret"


def _wad_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    return default if raw is None else to_wad(raw)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    return default if raw is None else int(raw)


def get_settings() -> Settings:
    """Settings from EVERLAST_* environment variables; prices are given in whole units."""
    d = Settings()
    return Settings(
        center_price=_wad_env("EVERLAST_CENTER_PRICE", d.center_price),
        bucket_width=_wad_env("EVERLAST_BUCKET_WIDTH", d.bucket_width),
        num_regular=_int_env("EVERLAST_NUM_REGULAR", d.num_regular),
        rebalance_threshold_fraction=_wad_env(
            "EVERLAST_REBALANCE_THRESHOLD_FRACTION", d.rebalance_threshold_fraction
        ),
        spot_price=_wad_env("EVERLAST_SPOT_PRICE", d.spot_price),
        oracle_staleness=_int_env("EVERLAST_ORACLE_STALENESS", d.oracle_staleness),
        subsidy=_wad_env("EVERLAST_SUBSIDY", d.subsidy),
        max_exposure=_wad_env("EVERLAST_MAX_EXPOSURE", d.max_exposure),
        tolerance=_int_env("EVERLAST_TOLERANCE_WEI", d.tolerance),
        premium_factor=_wad_env("EVERLAST_PREMIUM_FACTOR", d.premium_factor),
        funding_period=_int_env("EVERLAST_FUNDING_PERIOD", d.funding_period),
        max_funding_rate_per_second=_wad_env("EVERLAST_MAX_FUNDING_RATE", d.max_funding_rate_per_second),
        option_manager=os.getenv("EVERLAST_OPTION_MANAGER", d.option_manager),
        option_manager_password=os.getenv("EVERLAST_OPTION_MANAGER_PASSWORD", d.option_manager_password),
        keeper=os.getenv("EVERLAST_KEEPER", d.keeper),
        keeper_password=os.getenv("EVERLAST_KEEPER_PASSWORD", d.keeper_password),
    )
