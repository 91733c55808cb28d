import pytest

from tiercart.config import load_config
from tiercart.tiers import STANDARD_VOLUME_TIERS
from tiercart.types import Product


@pytest.fixture(autouse=True)
def clear_tiercart_env(monkeypatch):
    for key in [
        "TIERCART_CURRENCY_SYMBOL",
        "TIERCART_DECIMAL_PLACES",
        "TIERCART_DEFAULT_TIERS",
        "TIERCART_SNAPSHOT_PATH",
        "TIERCART_LOG_LEVEL",
    ]:
        monkeypatch.delenv(key, raising=False)
    load_config.cache_clear()
    yield
    load_config.cache_clear()


@pytest.fixture
def fern():
    return Product(id="fern-01", base_price=100, name="Boston fern", price_tiers=STANDARD_VOLUME_TIERS)


@pytest.fixture
def bonsai():
    return Product(id="bonsai-07", base_price="349.50", name="Ficus bonsai", price_tiers=STANDARD_VOLUME_TIERS)


@pytest.fixture
def seedling():
    return Product(id="seed-11", base_price="12.25", name="Basil seedling")
