import os

# Keep the app's module-level database off disk during tests.
os.environ.setdefault("EVERLAST_DATABASE_URL", "sqlite://")

import pytest

from everlast.buckets import BucketRegistry
from everlast.engine import CLUMEngine
from everlast.fixed_point import WAD
from everlast.oracle import StaticPriceFeed

MANAGER = "option-manager"


@pytest.fixture
def feed():
    return StaticPriceFeed(2000 * WAD)


@pytest.fixture
def registry(feed):
    # 5 regular buckets of width 100 centred at 2000
    return BucketRegistry(feed, 2000 * WAD, 100 * WAD, 5)


@pytest.fixture
def engine(registry):
    eng = CLUMEngine(registry, option_manager=MANAGER)
    eng.initialize(1000 * WAD)
    return eng
