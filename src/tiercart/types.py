"""Typed data contracts shared by the tier resolver, cart engine and snapshot boundary.

Records parsed from external data expose ``from_dict`` validators so catalog and
snapshot boundaries fail loudly when payloads are malformed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple, TypedDict

from .errors import TierFormatError


def to_decimal(value: Any, name: str = "value") -> Decimal:
    """Convert a JSON/number value to ``Decimal`` without float artefacts."""
    if isinstance(value, bool):
        raise TypeError(f"{name} must be a number, got bool")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation as exc:
            raise ValueError(f"{name} is not a valid amount: {value!r}") from exc
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        raise TypeError(f"{name} must be a number, got {type(value).__name__}")
    if not result.is_finite():
        raise ValueError(f"{name} must be finite, got {value!r}")
    return result


class PriceTierPayload(TypedDict, total=False):
    min_quantity: int
    max_quantity: Optional[int]
    discount_percent: str


class ProductPayload(TypedDict, total=False):
    id: str
    name: Optional[str]
    base_price: str
    is_active: bool
    is_available_in_store: bool
    price_tiers: List[PriceTierPayload]


class CartLinePayload(TypedDict, total=False):
    """One serialized cart line.

    ``tierApplied``, ``effectivePrice`` and ``subtotal`` are informational on
    the way back in; loading always re-prices the line.
    """

    product: ProductPayload
    quantity: int
    tierApplied: Optional[PriceTierPayload]
    effectivePrice: str
    subtotal: str


class CartSnapshot(TypedDict, total=False):
    """Persisted cart contract.

    Invariant:
    - ``lines`` is required.
    - aggregate fields are advisory and recomputed on load.
    """

    lines: List[CartLinePayload]
    total: str
    totalQuantity: int
    totalSavings: str


@dataclass(frozen=True)
class PriceTier:
    """A quantity band with a percentage discount. ``max_quantity=None`` means unbounded."""

    min_quantity: int
    max_quantity: Optional[int]
    discount_percent: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "discount_percent", to_decimal(self.discount_percent, "discount_percent"))

    def contains(self, quantity: int) -> bool:
        return self.min_quantity <= quantity and (self.max_quantity is None or quantity <= self.max_quantity)

    @property
    def unbounded(self) -> bool:
        return self.max_quantity is None

    def label(self) -> str:
        upper = "+" if self.max_quantity is None else f"-{self.max_quantity}"
        return f"{self.min_quantity}{upper}: {self.discount_percent.normalize():f}%"

    def to_dict(self) -> PriceTierPayload:
        return {
            "min_quantity": self.min_quantity,
            "max_quantity": self.max_quantity,
            "discount_percent": str(self.discount_percent),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PriceTier":
        if not isinstance(data, Mapping):
            raise TierFormatError(f"Price tier must be an object, got {type(data).__name__}")

        min_quantity = data.get("min_quantity", data.get("minQuantity"))
        max_quantity = data.get("max_quantity", data.get("maxQuantity"))
        discount = data.get("discount_percent", data.get("discountPercent", 0))

        if not isinstance(min_quantity, int) or isinstance(min_quantity, bool) or min_quantity <= 0:
            raise TierFormatError(f"Price tier 'min_quantity' must be a positive integer, got {min_quantity!r}")
        if max_quantity is not None:
            if not isinstance(max_quantity, int) or isinstance(max_quantity, bool):
                raise TierFormatError(f"Price tier 'max_quantity' must be an integer or null, got {max_quantity!r}")
            if max_quantity < min_quantity:
                raise TierFormatError(
                    f"Price tier 'max_quantity' ({max_quantity}) is below 'min_quantity' ({min_quantity})"
                )
        try:
            percent = to_decimal(discount, "discount_percent")
        except (TypeError, ValueError) as exc:
            raise TierFormatError(str(exc)) from exc
        if not Decimal(0) <= percent <= Decimal(100):
            raise TierFormatError(f"Price tier 'discount_percent' must be within 0-100, got {percent}")

        return cls(min_quantity=min_quantity, max_quantity=max_quantity, discount_percent=percent)


@dataclass(frozen=True)
class Product:
    """Catalog product snapshot, immutable for the lifetime of a cart session."""

    id: str
    base_price: Decimal
    name: Optional[str] = None
    is_active: bool = True
    is_available_in_store: bool = True
    price_tiers: Tuple[PriceTier, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_price", to_decimal(self.base_price, "base_price"))
        object.__setattr__(self, "price_tiers", tuple(self.price_tiers))

    def to_dict(self) -> ProductPayload:
        return {
            "id": self.id,
            "name": self.name,
            "base_price": str(self.base_price),
            "is_active": self.is_active,
            "is_available_in_store": self.is_available_in_store,
            "price_tiers": [tier.to_dict() for tier in self.price_tiers],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Product":
        """Build a product from a catalog row; tiers are stably sorted by ``min_quantity``.

        Raises:
            ValueError: if identity or price fields are missing or invalid.
            TierFormatError: if a tier record is malformed.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Product must be an object, got {type(data).__name__}")
        product_id = data.get("id")
        if not isinstance(product_id, str) or not product_id.strip():
            raise ValueError(f"Product 'id' must be a non-empty string, got {product_id!r}")
        raw_price = data.get("base_price", data.get("basePrice"))
        if raw_price is None:
            raise ValueError(f"Product {product_id!r} is missing 'base_price'")
        base_price = to_decimal(raw_price, "base_price")
        if base_price < 0:
            raise ValueError(f"Product {product_id!r} has a negative base price: {base_price}")

        raw_tiers = data.get("price_tiers", data.get("priceTiers")) or []
        if not isinstance(raw_tiers, list):
            raise TierFormatError(f"Product {product_id!r} 'price_tiers' must be a list")
        tiers = sorted((PriceTier.from_dict(item) for item in raw_tiers), key=lambda tier: tier.min_quantity)

        return cls(
            id=product_id,
            base_price=base_price,
            name=data.get("name", data.get("variety_name")),
            is_active=bool(data.get("is_active", True)),
            is_available_in_store=bool(data.get("is_available_in_store", True)),
            price_tiers=tuple(tiers),
        )


@dataclass(frozen=True)
class CartLine:
    """One product's aggregated quantity and pricing within a cart."""

    product: Product
    quantity: int
    effective_price: Decimal
    tier_applied: Optional[PriceTier] = None

    @property
    def product_id(self) -> str:
        return self.product.id

    @property
    def subtotal(self) -> Decimal:
        return self.effective_price * self.quantity

    @property
    def savings(self) -> Decimal:
        return (self.product.base_price - self.effective_price) * self.quantity


@dataclass(frozen=True)
class CartState:
    """Immutable cart value; aggregates are derived from ``lines`` at construction."""

    lines: Tuple[CartLine, ...] = ()
    total: Decimal = field(init=False)
    total_quantity: int = field(init=False)
    total_savings: Decimal = field(init=False)

    def __post_init__(self) -> None:
        lines = tuple(self.lines)
        object.__setattr__(self, "lines", lines)
        object.__setattr__(self, "total", sum((line.subtotal for line in lines), Decimal(0)))
        object.__setattr__(self, "total_quantity", sum(line.quantity for line in lines))
        object.__setattr__(self, "total_savings", sum((line.savings for line in lines), Decimal(0)))

    def find(self, product_id: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.product.id == product_id:
                return line
        return None

    def index_of(self, product_id: str) -> int:
        for index, line in enumerate(self.lines):
            if line.product.id == product_id:
                return index
        return -1

    def __len__(self) -> int:
        return len(self.lines)

    def summary(self) -> Dict[str, Any]:
        return {
            "lines": len(self.lines),
            "total": str(self.total),
            "total_quantity": self.total_quantity,
            "total_savings": str(self.total_savings),
        }


EMPTY_CART = CartState()
