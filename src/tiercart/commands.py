"""Cart commands and the pure state-transition function that applies them.

Each command variant has exactly one handler. Handlers validate first and build
a brand-new ``CartState``; the input state is never modified, so a rejected
command leaves the caller's state exactly as it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .errors import InvalidCommandError
from .snapshot import ProductLookup, parse_snapshot
from .tiers import DEFAULT_MINOR_UNIT, resolve_tier
from .types import EMPTY_CART, CartLine, CartState, PriceTier, Product

logger = logging.getLogger(__name__)

TierSource = Callable[[Product], Optional[Sequence[PriceTier]]]


def attached_tiers(product: Product) -> Sequence[PriceTier]:
    return product.price_tiers


@dataclass(frozen=True)
class AddItem:
    product: Product
    quantity: int


@dataclass(frozen=True)
class RemoveItem:
    product_id: str


@dataclass(frozen=True)
class UpdateQuantity:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class ClearCart:
    pass


@dataclass(frozen=True)
class LoadCart:
    snapshot: Union[CartState, Mapping[str, Any]]
    product_lookup: Optional[ProductLookup] = None


CartCommand = Union[AddItem, RemoveItem, UpdateQuantity, ClearCart, LoadCart]


class LinePricer:
    """Prices cart lines through the tier resolver using an injected tier supply."""

    def __init__(self, tier_source: Optional[TierSource] = None, minor_unit: Decimal = DEFAULT_MINOR_UNIT):
        self.tier_source = tier_source or attached_tiers
        self.minor_unit = minor_unit

    def price(self, product: Product, quantity: int) -> CartLine:
        tier, effective_price = resolve_tier(self.tier_source(product), quantity, product.base_price, self.minor_unit)
        return CartLine(product=product, quantity=quantity, effective_price=effective_price, tier_applied=tier)


def _is_quantity(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _require_product_id(product_id: Any) -> str:
    if not isinstance(product_id, str) or not product_id:
        raise InvalidCommandError(f"product_id must be a non-empty string, got {product_id!r}")
    return product_id


def _replace_line(state: CartState, index: int, line: CartLine) -> CartState:
    lines = list(state.lines)
    lines[index] = line
    return CartState(tuple(lines))


def _without(state: CartState, product_id: str) -> CartState:
    return CartState(tuple(line for line in state.lines if line.product.id != product_id))


def _add_item(state: CartState, command: AddItem, pricer: LinePricer) -> CartState:
    if not isinstance(command.product, Product):
        raise InvalidCommandError(f"add expects a Product, got {type(command.product).__name__}")
    _require_product_id(command.product.id)
    if command.product.base_price < 0:
        raise InvalidCommandError(f"Product {command.product.id} has a negative base price: {command.product.base_price}")
    if not _is_quantity(command.quantity) or command.quantity <= 0:
        raise InvalidCommandError(f"Quantity must be a positive integer, got {command.quantity!r}")

    index = state.index_of(command.product.id)
    if index < 0:
        return CartState(state.lines + (pricer.price(command.product, command.quantity),))

    existing = state.lines[index]
    return _replace_line(state, index, pricer.price(existing.product, existing.quantity + command.quantity))


def _remove_item(state: CartState, command: RemoveItem, pricer: LinePricer) -> CartState:
    product_id = _require_product_id(command.product_id)
    if state.index_of(product_id) < 0:
        return state
    return _without(state, product_id)


def _update_quantity(state: CartState, command: UpdateQuantity, pricer: LinePricer) -> CartState:
    product_id = _require_product_id(command.product_id)
    if not _is_quantity(command.quantity):
        raise InvalidCommandError(f"Quantity must be an integer, got {command.quantity!r}")
    if command.quantity <= 0:
        return _remove_item(state, RemoveItem(product_id), pricer)

    index = state.index_of(product_id)
    if index < 0:
        logger.warning("Cannot update quantity of %s: item not found in cart", product_id)
        return state
    return _replace_line(state, index, pricer.price(state.lines[index].product, command.quantity))


def _clear_cart(state: CartState, command: ClearCart, pricer: LinePricer) -> CartState:
    return EMPTY_CART


def _load_cart(state: CartState, command: LoadCart, pricer: LinePricer) -> CartState:
    if isinstance(command.snapshot, CartState):
        entries = [(line.product, line.quantity) for line in command.snapshot.lines]
    else:
        entries = parse_snapshot(command.snapshot, command.product_lookup)
    return rebuild_state(entries, pricer)


def rebuild_state(entries: Sequence[tuple[Product, int]], pricer: LinePricer) -> CartState:
    """Re-price ``(product, quantity)`` pairs into a fresh state.

    Non-positive quantities are dropped and repeated products are merged into
    their first position.
    """
    quantities: Dict[str, int] = {}
    products: Dict[str, Product] = {}
    order: List[str] = []
    for product, quantity in entries:
        if quantity <= 0:
            logger.debug("Dropping line %s with non-positive quantity %s", product.id, quantity)
            continue
        if product.id not in quantities:
            order.append(product.id)
            products[product.id] = product
            quantities[product.id] = 0
        else:
            logger.debug("Merging duplicate line for %s", product.id)
        quantities[product.id] += quantity
    return CartState(tuple(pricer.price(products[product_id], quantities[product_id]) for product_id in order))


_HANDLERS = {
    AddItem: _add_item,
    RemoveItem: _remove_item,
    UpdateQuantity: _update_quantity,
    ClearCart: _clear_cart,
    LoadCart: _load_cart,
}


def apply_command(state: CartState, command: CartCommand, pricer: LinePricer) -> CartState:
    """Apply one command and return the resulting state.

    Raises:
        InvalidCommandError: if the command or its arguments are invalid.
        SnapshotFormatError: if a ``LoadCart`` snapshot is structurally unusable.
    """
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise InvalidCommandError(f"Unsupported cart command: {type(command).__name__}")
    return handler(state, command, pricer)
