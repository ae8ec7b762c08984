"""
Per-run lookup caches.

Caches are seeded lazily from the store and extended as rows are created.
Entries created while applying a record are pending until the record's
savepoint is released; if it rolls back they are discarded so the cache never
points at rows that no longer exist.
"""
from abc import ABC, abstractmethod
from typing import Callable, Optional

import structlog

from catalog_sync.models.domain import ManufacturerRecord
from catalog_sync.pipeline.mapping import map_manufacturer
from catalog_sync.repositories.manufacturer_repository import ManufacturerRepository

logger = structlog.get_logger(__name__)


def normalize_manufacturer_name(name: Optional[str]) -> str:
    """Lower-case, drop punctuation, collapse whitespace"""
    if not name:
        return ""
    cleaned = "".join(ch if ch.isalnum() or ch.isspace() else " " for ch in name.lower())
    return " ".join(cleaned.split())


class RunScopedCache(ABC):
    """Base for caches that live for one sync operation"""

    def __init__(self) -> None:
        self._undo: list[Callable[[], None]] = []

    def _remember(self, undo: Callable[[], None]) -> None:
        self._undo.append(undo)

    def commit_pending(self) -> None:
        """Keep entries created since the last checkpoint"""
        self._undo.clear()

    def discard_pending(self) -> None:
        """Forget entries created since the last checkpoint"""
        while self._undo:
            self._undo.pop()()

    def reset(self) -> None:
        """Drop everything; the next lookup re-seeds from the store"""
        self._undo.clear()
        self._clear()

    @abstractmethod
    def _clear(self) -> None:
        """Drop the seeded entries"""


class ManufacturerCache(RunScopedCache):
    """Find-or-create manufacturers by normalized name"""

    def __init__(self, repository: ManufacturerRepository) -> None:
        super().__init__()
        self.repository = repository
        self._by_name: Optional[dict[str, ManufacturerRecord]] = None
        self.logger = logger.bind(component="manufacturer_cache")

    def _seed(self) -> dict[str, ManufacturerRecord]:
        if self._by_name is None:
            self._by_name = {}
            for manufacturer in self.repository.list_all():
                self._by_name.setdefault(normalize_manufacturer_name(manufacturer.name), manufacturer)
        return self._by_name

    def get(self, name: Optional[str]) -> Optional[ManufacturerRecord]:
        return self._seed().get(normalize_manufacturer_name(name))

    def resolve(self, name: str) -> tuple[Optional[ManufacturerRecord], bool]:
        """
        Find or create the manufacturer for a provider name.

        Returns:
            (manufacturer, created); manufacturer is None for a blank name
        """
        key = normalize_manufacturer_name(name)
        if not key:
            return None, False

        cache = self._seed()
        existing = cache.get(key)
        if existing is not None:
            return existing, False

        manufacturer = self.repository.save(map_manufacturer(None, name))
        cache[key] = manufacturer
        self._remember(lambda: cache.pop(key, None))
        self.logger.debug("Manufacturer created", name=manufacturer.name, id=manufacturer.id)
        return manufacturer, True

    def _clear(self) -> None:
        self._by_name = None


__all__ = ["RunScopedCache", "ManufacturerCache", "normalize_manufacturer_name"]
