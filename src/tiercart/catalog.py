"""In-memory product and tier supply built from a catalog export."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from .errors import CatalogFormatError, ProductNotFoundError, TierFormatError
from .tiers import TIER_PRESETS, check_tier_table
from .types import PriceTier, Product

logger = logging.getLogger(__name__)


class Catalog:
    """Product lookup plus tier supply for the cart engine.

    Products without their own tier table fall back to ``default_tiers``.
    """

    def __init__(self, products: Iterable[Product] = (), default_tiers: Sequence[PriceTier] = ()):
        self._products: Dict[str, Product] = {}
        self.default_tiers = tuple(default_tiers)
        for product in products:
            self.add(product)

    def add(self, product: Product) -> None:
        if product.id in self._products:
            logger.warning("Catalog already contains %s; keeping the newer record", product.id)
        for issue in check_tier_table(product.price_tiers):
            logger.warning("Tier table for %s: %s (%s)", product.id, issue.message, issue.code)
        self._products[product.id] = product

    def get(self, product_id: str) -> Product:
        try:
            return self._products[product_id]
        except KeyError:
            raise ProductNotFoundError(product_id) from None

    def find(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def tiers_for(self, product: Product) -> Sequence[PriceTier]:
        known = self._products.get(product.id, product)
        return known.price_tiers or self.default_tiers

    def active(self, in_store_only: bool = False) -> List[Product]:
        return [
            product
            for product in self._products.values()
            if product.is_active and (product.is_available_in_store or not in_store_only)
        ]

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._products

    def __iter__(self) -> Iterator[Product]:
        return iter(self._products.values())

    def __len__(self) -> int:
        return len(self._products)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], default_tiers: Sequence[PriceTier] = ()) -> "Catalog":
        """Build a catalog from ``{"products": [...]}``.

        Raises:
            CatalogFormatError: if the payload or any product row is malformed.
        """
        if not isinstance(data, Mapping):
            raise CatalogFormatError(f"Catalog must be a JSON object, got {type(data).__name__}")
        rows = data.get("products")
        if not isinstance(rows, list):
            raise CatalogFormatError("Catalog missing required list field: products")

        products = []
        for position, row in enumerate(rows):
            try:
                products.append(Product.from_dict(row))
            except TierFormatError as exc:
                raise CatalogFormatError(f"Product row {position}: {exc.explanation}") from exc
            except (TypeError, ValueError) as exc:
                raise CatalogFormatError(f"Product row {position}: {exc}") from exc
        return cls(products, default_tiers=default_tiers)

    @classmethod
    def from_file(cls, path: str, default_tiers: Sequence[PriceTier] = ()) -> "Catalog":
        with open(path, "r", encoding="utf-8") as handle:
            try:
                data = json.load(handle)
            except json.JSONDecodeError as exc:
                raise CatalogFormatError(f"Invalid JSON in catalog '{path}': {exc}") from exc
        return cls.from_dict(data, default_tiers=default_tiers)


def preset_tiers(name: str) -> Sequence[PriceTier]:
    try:
        return TIER_PRESETS[name.lower()]
    except KeyError:
        raise CatalogFormatError(f"Unknown tier preset: {name}") from None
