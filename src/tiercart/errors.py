"""Structured tiercart error taxonomy used for deterministic, auditable failures."""

from __future__ import annotations


class TierCartError(Exception):
    """Base class for all tiercart domain exceptions."""

    def __init__(self, error_code: str, category: str, explanation: str, actionable: bool = True):
        self.error_code = error_code
        self.category = category
        self.explanation = explanation
        self.actionable = actionable
        super().__init__(f"[{self.category}:{self.error_code}] {self.explanation}")


class InvalidCommandError(TierCartError, ValueError):
    """A cart command was rejected before touching state."""

    def __init__(self, explanation: str, actionable: bool = True):
        super().__init__("INVALID_COMMAND", "COMMAND", explanation, actionable)


class TierFormatError(TierCartError, ValueError):
    def __init__(self, explanation: str, actionable: bool = True):
        super().__init__("TIER_FORMAT", "CATALOG", explanation, actionable)


class ProductNotFoundError(TierCartError, LookupError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__("PRODUCT_NOT_FOUND", "CATALOG", f"Unknown product: {product_id}", True)


class CatalogFormatError(TierCartError, ValueError):
    def __init__(self, explanation: str, actionable: bool = True):
        super().__init__("CATALOG_FORMAT", "CATALOG", explanation, actionable)


class SnapshotFormatError(TierCartError, ValueError):
    def __init__(self, explanation: str, actionable: bool = True):
        super().__init__("SNAPSHOT_FORMAT", "SNAPSHOT", explanation, actionable)
