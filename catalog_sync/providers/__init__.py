"""Provider adapters delivering raw catalog records."""
from catalog_sync.providers.base import CatalogProvider, RawRecord
from catalog_sync.providers.http import HttpCatalogProvider
from catalog_sync.providers.json_file import JsonFileProvider

__all__ = ["CatalogProvider", "HttpCatalogProvider", "JsonFileProvider", "RawRecord"]
