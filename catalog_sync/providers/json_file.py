"""
JSON dump provider.

Reads a single JSON document of the form::

    {
        "categories": [...],
        "products": {"<category handle>": [...]},
        "manufacturers": {"<category handle>": ["name", ...]},
        "parameters": {"<category handle>": [...]},
        "documents": {"<sku>": [...]}
    }

Only ``categories`` and ``products`` are required. Used for offline runs and
for replaying captured provider responses.
"""
import json
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from catalog_sync.core.exceptions import ProviderError
from catalog_sync.providers.base import CatalogProvider, RawRecord

logger = structlog.get_logger(__name__)


class JsonFileProvider(CatalogProvider):
    """Provider backed by a JSON dump on disk or an already-decoded document"""

    name = "json_file"

    def __init__(
        self, source: Union[str, Path, dict[str, Any]], name: Optional[str] = None
    ) -> None:
        if name:
            self.name = name
        if isinstance(source, dict):
            self.document = source
            self.source = "<memory>"
        else:
            self.source = str(source)
            self.document = self._load(Path(source))
        self.logger = logger.bind(provider=self.name, source=self.source)

    @staticmethod
    def _load(path: Path) -> dict[str, Any]:
        try:
            with open(path, encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ProviderError(
                f"Cannot read provider dump: {e}", provider="json_file", original_exception=e
            ) from e
        if not isinstance(document, dict):
            raise ProviderError("Provider dump must be a JSON object", provider="json_file")
        return document

    def fetch_categories_raw(self) -> list[RawRecord]:
        categories = self.document.get("categories") or []
        self.logger.debug("Categories loaded", roots=len(categories))
        return list(categories)

    def fetch_products_raw(self, category_handle: str) -> list[RawRecord]:
        return list(self._grouped("products").get(category_handle) or [])

    def fetch_manufacturers_raw(self, category_handle: str) -> set[str]:
        grouped = self.document.get("manufacturers")
        if grouped is None:
            return super().fetch_manufacturers_raw(category_handle)
        return {str(name).strip() for name in grouped.get(category_handle) or [] if str(name).strip()}

    def fetch_parameter_options_raw(self, category_handle: str) -> list[RawRecord]:
        return list(self._grouped("parameters").get(category_handle) or [])

    def fetch_documents_raw(self, product_handle: str) -> list[RawRecord]:
        return list(self._grouped("documents").get(product_handle) or [])

    def _grouped(self, section: str) -> dict[str, Any]:
        grouped = self.document.get(section) or {}
        if not isinstance(grouped, dict):
            raise ProviderError(
                f"Section '{section}' must map category handles to lists", provider=self.name
            )
        return grouped


__all__ = ["JsonFileProvider"]
