"""
Product catalog configuration.

Maps store product IDs to credit amounts. Built once at startup and passed
to the purchase flow; never mutated afterwards.
"""

import json
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from iap_credits.config import ConfigurationError, Settings
from iap_credits.exceptions import UnknownProductError


@dataclass(frozen=True)
class CreditProduct:
    """Store product configuration."""

    product_id: str
    credits: int
    name: str

    def __post_init__(self) -> None:
        """Validate product configuration."""
        if isinstance(self.credits, bool) or not isinstance(self.credits, int):
            raise ValueError(f"Credits must be an integer: {self.credits!r}")
        if self.credits <= 0:
            raise ValueError(f"Credits must be positive: {self.credits}")
        if not self.product_id:
            raise ValueError("Product ID required")
        if not self.name:
            raise ValueError("Name required")


# Default catalog (must match Play Console and App Store Connect configuration)
DEFAULT_PRODUCT_CREDITS: Mapping[str, int] = MappingProxyType(
    {
        "credits_100": 100,
        "credits_250": 250,
        "credits_600": 600,
    }
)


class ProductCatalog:
    """Immutable product_id -> CreditProduct mapping."""

    def __init__(self, products: Mapping[str, CreditProduct]) -> None:
        for product_id, product in products.items():
            if product_id != product.product_id:
                raise ValueError(
                    f"Catalog key {product_id!r} does not match product {product.product_id!r}"
                )
        self._products: Mapping[str, CreditProduct] = MappingProxyType(dict(products))

    @classmethod
    def from_credits(cls, credits_by_product: Mapping[str, int]) -> "ProductCatalog":
        """Build a catalog from a plain {product_id: credits} mapping."""
        return cls(
            {
                product_id: CreditProduct(
                    product_id=product_id,
                    credits=credits,
                    name=f"{credits} Credits",
                )
                for product_id, credits in credits_by_product.items()
            }
        )

    @classmethod
    def from_file(cls, path: str | Path) -> "ProductCatalog":
        """
        Load a catalog from a JSON file of {product_id: credits}.

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Cannot read product catalog {path}: {exc}") from exc

        if not isinstance(raw, dict) or not raw:
            raise ConfigurationError(f"Product catalog {path} must be a non-empty JSON object")

        try:
            return cls.from_credits(raw)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid product catalog {path}: {exc}") from exc

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProductCatalog":
        """Build the catalog named by settings, falling back to the default."""
        if settings.product_catalog_file:
            return cls.from_file(settings.product_catalog_file)
        return cls.from_credits(DEFAULT_PRODUCT_CREDITS)

    def get_product(self, product_id: str) -> CreditProduct:
        """
        Get product configuration by ID.

        Raises:
            UnknownProductError: If product ID not found
        """
        product = self._products.get(product_id)
        if product is None:
            raise UnknownProductError(product_id)
        return product

    def get_credits_for_product(self, product_id: str) -> int:
        """Get number of credits for a product."""
        return self.get_product(product_id).credits

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._products

    def __iter__(self) -> Iterator[str]:
        return iter(self._products)

    def __len__(self) -> int:
        return len(self._products)
