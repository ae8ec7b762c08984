"""
Provider adapter interface.

A provider hands the engine raw records as plain dicts. Records are grouped
by category handle (the provider's slug or id for a category); every fetch is
scoped to one grouping so a failure only costs that grouping.
"""
from abc import ABC, abstractmethod
from typing import Any

RawRecord = dict[str, Any]


class CatalogProvider(ABC):
    """Source of raw category, product, manufacturer and parameter records"""

    # Identity under which category references are recorded
    name = "provider"

    @abstractmethod
    def fetch_categories_raw(self) -> list[RawRecord]:
        """
        Root categories with nested children.

        Each node carries at least ``id`` and ``name`` (string or localized
        list/mapping), usually ``slug``, and children under
        ``sub_categories``, ``subsubcat`` or ``children``.
        """

    @abstractmethod
    def fetch_products_raw(self, category_handle: str) -> list[RawRecord]:
        """
        Products listed under a category handle.

        Products carry ``sku``, ``name``, optional ``id``, prices, stock,
        images, ``manufacturer``, ``category_1``..``category_3`` labels or a
        ``category_id``, and property fields with the configured prefix.
        """

    def fetch_manufacturers_raw(self, category_handle: str) -> set[str]:
        """Manufacturer names seen under a category handle"""
        names = set()
        for product in self.fetch_products_raw(category_handle):
            name = product.get("manufacturer")
            if name and str(name).strip():
                names.add(str(name).strip())
        return names

    def fetch_parameter_options_raw(self, category_handle: str) -> list[RawRecord]:
        """
        Explicit parameter definitions for a category handle.

        Each entry carries ``key``, optional ``name``/``name_en``/``order``
        and an ``options`` list of values. Providers without a parameter
        catalog return nothing; parameters are then derived from product
        property fields alone.
        """
        return []

    def fetch_documents_raw(self, product_handle: str) -> list[RawRecord]:
        """Documents (``url``, ``comment``) for a product; none by default"""
        return []

    def close(self) -> None:
        """Release any held resources"""


__all__ = ["CatalogProvider", "RawRecord"]
