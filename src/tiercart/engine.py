"""Cart engine: the single owner of one session's cart state.

The engine holds an immutable ``CartState`` and swaps it for a new value on
every command. Commands are serialized by a lock so each one observes the
completed result of the previous one; readers always see a whole state.
"""

from __future__ import annotations

import logging
import threading
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

from .commands import (
    AddItem,
    CartCommand,
    ClearCart,
    LinePricer,
    LoadCart,
    RemoveItem,
    TierSource,
    UpdateQuantity,
    apply_command,
)
from .config import get_config
from .snapshot import ProductLookup, dump_state
from .tiers import TIER_PRESETS
from .types import EMPTY_CART, CartLine, CartSnapshot, CartState, PriceTier, Product

logger = logging.getLogger(__name__)

__all__ = ["CartEngine"]


def _tiers_with_fallback(default_tiers: Sequence[PriceTier]) -> TierSource:
    def source(product: Product) -> Sequence[PriceTier]:
        return product.price_tiers or default_tiers

    return source


class CartEngine:
    def __init__(
        self,
        tier_source: Optional[TierSource] = None,
        minor_unit: Optional[Decimal] = None,
        initial: Optional[Union[CartState, Mapping[str, Any]]] = None,
        product_lookup: Optional[ProductLookup] = None,
    ):
        config = get_config()
        if tier_source is None:
            tier_source = _tiers_with_fallback(TIER_PRESETS[config.default_tiers])
        self._pricer = LinePricer(tier_source, minor_unit if minor_unit is not None else config.minor_unit)
        self._product_lookup = product_lookup
        self._lock = threading.RLock()
        self._state = EMPTY_CART
        if initial is not None:
            self.load(initial)

    def dispatch(self, command: CartCommand) -> CartState:
        with self._lock:
            try:
                new_state = apply_command(self._state, command, self._pricer)
            except ValueError as exc:
                logger.warning("Rejected %s: %s", type(command).__name__, exc)
                raise
            self._state = new_state
            logger.debug("Applied %s -> %s", type(command).__name__, new_state.summary())
            return new_state

    def add(self, product: Product, quantity: int) -> CartState:
        return self.dispatch(AddItem(product, quantity))

    def remove(self, product_id: str) -> CartState:
        return self.dispatch(RemoveItem(product_id))

    def update_quantity(self, product_id: str, quantity: int) -> CartState:
        return self.dispatch(UpdateQuantity(product_id, quantity))

    def clear(self) -> CartState:
        return self.dispatch(ClearCart())

    def load(self, snapshot: Union[CartState, Mapping[str, Any]]) -> CartState:
        return self.dispatch(LoadCart(snapshot, self._product_lookup))

    @property
    def state(self) -> CartState:
        return self._state

    @property
    def lines(self) -> Tuple[CartLine, ...]:
        return self._state.lines

    @property
    def total(self) -> Decimal:
        return self._state.total

    @property
    def total_quantity(self) -> int:
        return self._state.total_quantity

    @property
    def total_savings(self) -> Decimal:
        return self._state.total_savings

    def contains(self, product_id: str) -> bool:
        return self._state.find(product_id) is not None

    def get_line(self, product_id: str) -> Optional[CartLine]:
        return self._state.find(product_id)

    def snapshot(self) -> CartSnapshot:
        return dump_state(self._state)

    def __contains__(self, product_id: object) -> bool:
        return isinstance(product_id, str) and self.contains(product_id)

    def __len__(self) -> int:
        return len(self._state)

    def __repr__(self) -> str:
        state = self._state
        return f"CartEngine(lines={len(state)}, total={state.total}, total_quantity={state.total_quantity})"
