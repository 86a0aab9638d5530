"""Product catalog — maps a DMC's product code to a panel size."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Optional

from ict_lookup.core.errors import CatalogError
from ict_lookup.core.models import Product

logger = logging.getLogger(__name__)

UNKNOWN_PRODUCT = Product(name="Unknown", product_code="", panel_size=1)

# Product code starts right after the sequence field.
PRODUCT_CODE_START = 13
MIN_IDENTIFIER_LENGTH = 16

_DIGITS = re.compile(r"[0-9]+")


def parse_products(lines: Iterable[str], source: str = "<products>") -> list[Product]:
    """Parse ``name|product_code|panel_size`` lines.

    Empty lines and lines starting with ``!`` are comments. Lines without
    exactly three fields are skipped; a bad panel size is fatal.
    """
    products: list[Product] = []
    for lineno, raw in enumerate(lines, 1):
        line = raw.rstrip("\r\n")
        if not line or line.startswith("!"):
            continue

        parts = [p.strip() for p in line.split("|")]
        if len(parts) != 3:
            logger.warning(
                "%s:%d: expected 3 fields, got %d; skipping",
                source, lineno, len(parts),
            )
            continue

        name, code, size_text = parts
        if not _DIGITS.fullmatch(size_text):
            raise CatalogError(
                f"{source}:{lineno}: invalid panel size {size_text!r}"
            )
        panel_size = int(size_text)
        if panel_size < 1:
            raise CatalogError(
                f"{source}:{lineno}: panel size must be at least 1, got {panel_size}"
            )
        products.append(Product(name=name, product_code=code, panel_size=panel_size))
    return products


class ProductCatalog:
    """Ordered product list; the first matching prefix wins."""

    def __init__(self, products: Optional[Iterable[Product]] = None):
        self.products: list[Product] = list(products or [])

    @classmethod
    def from_file(cls, path: str | Path) -> "ProductCatalog":
        """Load the catalog file. An unreadable file yields an empty catalog."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not load products file %s: %s", path, e)
            return cls()
        products = parse_products(text.splitlines(), source=str(path))
        logger.debug("Loaded %d products from %s", len(products), path)
        return cls(products)

    def lookup(self, identifier: str) -> Product:
        """Return the first product whose code prefixes ``identifier[13:]``."""
        code = identifier[PRODUCT_CODE_START:]
        for product in self.products:
            if code.startswith(product.product_code):
                return product
        return UNKNOWN_PRODUCT

    def resolve(self, identifier: str) -> tuple[str, int]:
        """Return ``(product_name, panel_size)`` for a scanned identifier."""
        product = self.lookup(identifier)
        logger.debug(
            "Product id %r resolved to %s (%d boards)",
            identifier[PRODUCT_CODE_START:], product.name, product.panel_size,
        )
        return product.name, product.panel_size

    def __len__(self) -> int:
        return len(self.products)

    def __iter__(self):
        return iter(self.products)
