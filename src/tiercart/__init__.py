"""Tiered volume pricing and cart engine."""

__version__ = "0.3.0"

from .engine import CartEngine
from .tiers import resolve_tier
from .types import CartLine, CartState, PriceTier, Product

__all__ = [
    "CartEngine",
    "CartLine",
    "CartState",
    "PriceTier",
    "Product",
    "resolve_tier",
    "__version__",
]
