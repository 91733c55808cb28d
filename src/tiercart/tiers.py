"""Quantity-tier resolution and price quoting.

Everything here is pure: no module state is read or written, so any caller
may resolve prices repeatedly or speculatively without coordination.

Resolution guarantees:
- tiers are scanned in the order supplied and the first containing band wins;
- the discounted unit price is rounded half-up to the minor unit exactly once;
- without a discount the base price passes through unrounded, and rounding never
  lifts a discounted price above the base price;
- identical inputs always produce identical ``Decimal`` results.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List, NamedTuple, Optional, Sequence, Union

from .types import PriceTier, Product, to_decimal

DEFAULT_MINOR_UNIT = Decimal("0.01")
_HUNDRED = Decimal(100)

# 1-4 plants full price, 5-9 plants 10% off, 10+ plants 20% off.
STANDARD_VOLUME_TIERS: tuple[PriceTier, ...] = (
    PriceTier(min_quantity=1, max_quantity=4, discount_percent=Decimal(0)),
    PriceTier(min_quantity=5, max_quantity=9, discount_percent=Decimal(10)),
    PriceTier(min_quantity=10, max_quantity=None, discount_percent=Decimal(20)),
)

TIER_PRESETS = {
    "none": (),
    "standard": STANDARD_VOLUME_TIERS,
}


class Resolution(NamedTuple):
    tier: Optional[PriceTier]
    effective_price: Decimal


@dataclass(frozen=True)
class PriceQuote:
    """Detailed pricing breakdown for one product at one quantity."""

    quantity: int
    base_price: Decimal
    effective_price: Decimal
    tier: Optional[PriceTier]

    @property
    def discount_per_unit(self) -> Decimal:
        return self.base_price - self.effective_price

    @property
    def discount_percent(self) -> Decimal:
        return self.tier.discount_percent if self.tier is not None else Decimal(0)

    @property
    def subtotal(self) -> Decimal:
        return self.effective_price * self.quantity

    @property
    def savings(self) -> Decimal:
        return self.discount_per_unit * self.quantity


@dataclass(frozen=True)
class NextTier:
    min_quantity: int
    items_needed: int
    discount_percent: Decimal


@dataclass(frozen=True)
class TierIssue:
    """Single well-formedness finding in a tier table."""

    code: str
    index: int
    message: str


def _require_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValueError(f"quantity must be an integer, got {type(quantity).__name__}")
    if quantity <= 0:
        raise ValueError(f"quantity must be positive, got {quantity}")
    return quantity


def applicable_tier(tiers: Optional[Sequence[PriceTier]], quantity: int) -> Optional[PriceTier]:
    """Return the first tier whose band contains ``quantity``."""
    _require_quantity(quantity)
    for tier in tiers or ():
        if tier.contains(quantity):
            return tier
    return None


def discount_percent_for(tiers: Optional[Sequence[PriceTier]], quantity: int) -> Decimal:
    tier = applicable_tier(tiers, quantity)
    return tier.discount_percent if tier is not None else Decimal(0)


def discounted_price(base_price: Decimal, discount_percent: Decimal, minor_unit: Decimal = DEFAULT_MINOR_UNIT) -> Decimal:
    if discount_percent == 0:
        return base_price
    multiplier = (_HUNDRED - discount_percent) / _HUNDRED
    return min((base_price * multiplier).quantize(minor_unit, rounding=ROUND_HALF_UP), base_price)


def resolve_tier(
    tiers: Optional[Sequence[PriceTier]],
    quantity: int,
    base_price: Union[Decimal, int, str],
    minor_unit: Decimal = DEFAULT_MINOR_UNIT,
) -> Resolution:
    """Resolve the applicable tier and effective unit price for ``quantity``.

    Raises:
        ValueError: if ``quantity`` is not a positive integer or the price is negative.
    """
    price = to_decimal(base_price, "base_price")
    if price < 0:
        raise ValueError(f"base_price must be non-negative, got {price}")
    tier = applicable_tier(tiers, quantity)
    if tier is None:
        return Resolution(None, price)
    return Resolution(tier, discounted_price(price, tier.discount_percent, minor_unit))


def quote(
    product: Union[Product, Decimal, int, str],
    quantity: int,
    tiers: Optional[Sequence[PriceTier]] = None,
    minor_unit: Decimal = DEFAULT_MINOR_UNIT,
) -> PriceQuote:
    """Price ``quantity`` units of a product (or of a bare base price)."""
    if isinstance(product, Product):
        base_price = product.base_price
        if tiers is None:
            tiers = product.price_tiers
    else:
        base_price = to_decimal(product, "base_price")
    tier, effective_price = resolve_tier(tiers, quantity, base_price, minor_unit)
    return PriceQuote(quantity=quantity, base_price=base_price, effective_price=effective_price, tier=tier)


def next_tier(tiers: Optional[Sequence[PriceTier]], quantity: int) -> Optional[NextTier]:
    """Describe the band after the one ``quantity`` falls in, if there is one."""
    tiers = list(tiers or ())
    current = applicable_tier(tiers, quantity)
    if current is None:
        return None
    position = tiers.index(current)
    if position == len(tiers) - 1:
        return None
    following = tiers[position + 1]
    return NextTier(
        min_quantity=following.min_quantity,
        items_needed=max(0, following.min_quantity - quantity),
        discount_percent=following.discount_percent,
    )


def check_tier_table(tiers: Sequence[PriceTier]) -> List[TierIssue]:
    """Report gaps, overlaps and misplaced unbounded bands.

    Findings are diagnostic only; resolution keeps using the first-match rule.
    """
    issues: List[TierIssue] = []
    if not tiers:
        return issues

    ordered = sorted(enumerate(tiers), key=lambda item: item[1].min_quantity)
    first_index, first = ordered[0]
    if first.min_quantity != 1:
        issues.append(TierIssue("FIRST_BAND_START", first_index, f"lowest band starts at {first.min_quantity}, not 1"))

    for (prev_index, prev), (index, tier) in zip(ordered, ordered[1:]):
        if prev.max_quantity is None:
            issues.append(
                TierIssue("UNBOUNDED_NOT_LAST", prev_index, f"unbounded band {prev.label()} is followed by {tier.label()}")
            )
            continue
        if tier.min_quantity <= prev.max_quantity:
            issues.append(TierIssue("OVERLAP", index, f"band {tier.label()} overlaps {prev.label()}"))
        elif tier.min_quantity > prev.max_quantity + 1:
            issues.append(
                TierIssue(
                    "GAP",
                    index,
                    f"quantities {prev.max_quantity + 1}-{tier.min_quantity - 1} are not covered by any band",
                )
            )
    return issues


def format_money(amount: Decimal, symbol: str = "฿", places: int = 2) -> str:
    quantized = to_decimal(amount, "amount").quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    return f"{symbol}{quantized:,.{places}f}"


def format_discount(percent: Decimal) -> str:
    return f"{percent.normalize():f}% OFF" if percent > 0 else "regular price"
