"""Product catalog backed by a YAML file and refreshable from the storefront."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

import yaml

from stockwatch.logging_config import get_logger
from stockwatch.storefront.catalog import CatalogProduct, CatalogScraper

LOGGER = get_logger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "catalog" / "products.yml"


def _product_from_mapping(entry: dict[str, Any]) -> CatalogProduct | None:
    product_id = str(entry.get("id") or "").strip()
    name = str(entry.get("name") or "").strip()
    url = str(entry.get("url") or "").strip()
    if not product_id or not name or not url:
        return None
    return CatalogProduct(
        product_id=product_id,
        name=name,
        url=url,
        category=str(entry.get("category") or "Other"),
        description=str(entry.get("description") or ""),
        price=entry.get("price"),
        image_url=entry.get("image_url"),
    )


def load_catalog_file(path: str | Path) -> list[CatalogProduct]:
    """Read products from *path*; a missing file yields an empty list."""

    catalog_path = Path(path)
    if not catalog_path.exists():
        LOGGER.warning("Catalog file %s not found", catalog_path)
        return []
    with catalog_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    entries = data.get("products", []) if isinstance(data, dict) else []
    products = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        product = _product_from_mapping(entry)
        if product is None:
            LOGGER.warning("Skipping incomplete catalog entry: %s", entry)
            continue
        products.append(product)
    return products


def dump_catalog_file(path: str | Path, products: Iterable[CatalogProduct]) -> None:
    payload = {
        "products": [
            {
                "id": product.product_id,
                "name": product.name,
                "description": product.description,
                "url": product.url,
                "category": product.category,
                "price": product.price,
                "image_url": product.image_url,
            }
            for product in products
        ]
    }
    with Path(path).open("w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle, sort_keys=False, allow_unicode=True)


class ProductCatalog:
    """In-memory view of the trackable products."""

    def __init__(self, products: Iterable[CatalogProduct] = (), *, path: str | Path | None = None) -> None:
        self._products = list(products)
        self.path = Path(path) if path is not None else None

    @classmethod
    def from_file(cls, path: str | Path = DEFAULT_CATALOG_PATH) -> "ProductCatalog":
        return cls(load_catalog_file(path), path=path)

    def __len__(self) -> int:
        return len(self._products)

    def all(self) -> list[CatalogProduct]:
        return list(self._products)

    def get(self, product_id: str) -> CatalogProduct | None:
        for product in self._products:
            if product.product_id == product_id:
                return product
        return None

    def categories(self) -> list[str]:
        return list(dict.fromkeys(product.category for product in self._products))

    def by_category(self, category: str) -> list[CatalogProduct]:
        return [product for product in self._products if product.category == category]

    def search(self, query: str) -> list[CatalogProduct]:
        needle = query.lower()
        return [
            product
            for product in self._products
            if needle in product.name.lower()
            or needle in product.description.lower()
            or needle in product.category.lower()
        ]

    async def refresh(self, scraper: CatalogScraper, *, persist: bool = True) -> int:
        """Replace the catalog with a fresh scrape.

        An empty scrape (including one skipped because another is running)
        keeps the current products. Returns the number of products loaded.
        """

        products = await scraper.update_catalog()
        if not products:
            LOGGER.warning("Catalog refresh returned no products; keeping %d existing", len(self._products))
            return 0
        self._products = list(products)
        LOGGER.info("Catalog refreshed with %d products", len(products))
        if persist and self.path is not None:
            dump_catalog_file(self.path, self._products)
        return len(products)
