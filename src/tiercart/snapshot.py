"""Persistence boundary for cart state.

Snapshots use the shape ``{"lines": [...], "total", "totalQuantity",
"totalSavings"}`` with money encoded as strings. On the way in only the line
products and quantities are trusted; prices and aggregates are recomputed by
the engine.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Callable, List, Mapping, Optional, Tuple

from .errors import ProductNotFoundError, SnapshotFormatError, TierFormatError
from .types import CartLine, CartLinePayload, CartSnapshot, CartState, Product

logger = logging.getLogger(__name__)

ProductLookup = Callable[[str], Product]

_AGGREGATE_KEYS = (
    ("total", "total"),
    ("totalQuantity", "total_quantity"),
    ("totalSavings", "total_savings"),
)


def dump_line(line: CartLine) -> CartLinePayload:
    return {
        "product": line.product.to_dict(),
        "quantity": line.quantity,
        "tierApplied": line.tier_applied.to_dict() if line.tier_applied is not None else None,
        "effectivePrice": str(line.effective_price),
        "subtotal": str(line.subtotal),
    }


def dump_state(state: CartState) -> CartSnapshot:
    return {
        "lines": [dump_line(line) for line in state.lines],
        "total": str(state.total),
        "totalQuantity": state.total_quantity,
        "totalSavings": str(state.total_savings),
    }


def _parse_product(raw: Any, position: int, product_lookup: Optional[ProductLookup]) -> Product:
    if isinstance(raw, Product):
        return raw
    if isinstance(raw, str):
        if product_lookup is None:
            raise SnapshotFormatError(f"Line {position} references product {raw!r} but no product lookup is available")
        try:
            return product_lookup(raw)
        except ProductNotFoundError as exc:
            raise SnapshotFormatError(f"Line {position}: {exc.explanation}") from exc
    if isinstance(raw, Mapping):
        try:
            return Product.from_dict(raw)
        except TierFormatError as exc:
            raise SnapshotFormatError(f"Line {position}: {exc.explanation}") from exc
        except (TypeError, ValueError) as exc:
            raise SnapshotFormatError(f"Line {position}: {exc}") from exc
    raise SnapshotFormatError(f"Line {position} 'product' must be an object or id, got {type(raw).__name__}")


def parse_snapshot(data: Mapping[str, Any], product_lookup: Optional[ProductLookup] = None) -> List[Tuple[Product, int]]:
    """Extract ``(product, quantity)`` pairs from a snapshot mapping.

    Raises:
        SnapshotFormatError: if the snapshot structure cannot be interpreted.
    """
    if not isinstance(data, Mapping):
        raise SnapshotFormatError(f"Cart snapshot must be an object, got {type(data).__name__}")
    lines = data.get("lines", data.get("items"))
    if not isinstance(lines, list):
        raise SnapshotFormatError("Cart snapshot missing required list field: lines")

    entries: List[Tuple[Product, int]] = []
    for position, raw_line in enumerate(lines):
        if not isinstance(raw_line, Mapping):
            raise SnapshotFormatError(f"Line {position} must be an object, got {type(raw_line).__name__}")
        if "product" not in raw_line:
            raise SnapshotFormatError(f"Line {position} missing required field: product")
        quantity = raw_line.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise SnapshotFormatError(f"Line {position} 'quantity' must be an integer, got {quantity!r}")
        entries.append((_parse_product(raw_line["product"], position, product_lookup), quantity))

    for camel, snake in _AGGREGATE_KEYS:
        if camel in data or snake in data:
            logger.debug("Ignoring stored aggregate %s; it is recomputed from lines", camel)
    return entries


def describe_drift(data: Mapping[str, Any], state: CartState) -> List[str]:
    """List stored aggregates that disagree with the recomputed state."""
    recomputed = {"total": state.total, "totalQuantity": state.total_quantity, "totalSavings": state.total_savings}
    drift = []
    for camel, snake in _AGGREGATE_KEYS:
        stored = data.get(camel, data.get(snake))
        if stored is None:
            continue
        if str(stored) != str(recomputed[camel]):
            try:
                if type(recomputed[camel])(str(stored)) == recomputed[camel]:
                    continue
            except (ArithmeticError, ValueError):
                pass
            drift.append(f"{camel}: stored {stored} recomputed {recomputed[camel]}")
    return drift


class SnapshotStore:
    """Reads and writes one cart snapshot as a JSON file."""

    def __init__(self, path: str):
        self.path = path

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def read(self) -> CartSnapshot:
        with open(self.path, "r", encoding="utf-8") as handle:
            try:
                data = json.load(handle)
            except json.JSONDecodeError as exc:
                raise SnapshotFormatError(f"Invalid JSON in cart snapshot '{self.path}': {exc}") from exc
        if not isinstance(data, dict):
            raise SnapshotFormatError(f"Cart snapshot '{self.path}' must contain a JSON object at top level")
        return data  # type: ignore[return-value]

    def write(self, state: CartState) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump(dump_state(state), handle, indent=2, sort_keys=True, ensure_ascii=False)
        os.replace(tmp_path, self.path)
