"""
Global pytest configuration and fixtures for catalog sync testing.

Provides an in-memory SQLite database, an in-memory provider and builders for
canonical category trees.
"""
from typing import Any, Optional

import pytest

from catalog_sync.config.settings import SyncSettings
from catalog_sync.core.exceptions import ProviderError
from catalog_sync.models.domain import CategoryRecord
from catalog_sync.providers.base import CatalogProvider
from catalog_sync.repositories.base import (
    create_database_engine,
    create_session_factory,
    init_database,
)
from catalog_sync.repositories.category_repository import CategoryRepository


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture
def engine():
    """In-memory SQLite engine with the catalog schema"""
    engine = create_database_engine("sqlite://")
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory):
    """
    Open session for repository and pipeline tests.

    All sessions share one connection, so tests that also run services must
    not hold this fixture open at the same time.
    """
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def sync_settings():
    """Small chunks so multi-chunk behaviour shows up with little data"""
    return SyncSettings(
        chunk_size=4,
        flush_every=2,
        max_chunk_duration_seconds=60.0,
        chunk_pause_seconds=0.0,
    )


# ============================================================================
# CATEGORY FIXTURES
# ============================================================================


@pytest.fixture
def add_category(session):
    """Insert a category through the repository so its path is computed"""
    repository = CategoryRepository(session)

    def _add(
        name: str,
        slug: str,
        parent: Optional[CategoryRecord] = None,
        external_id: Optional[str] = None,
        provider_slug: Optional[str] = None,
    ) -> CategoryRecord:
        return repository.save(
            CategoryRecord(
                name=name,
                slug=slug,
                parent_id=parent.id if parent else None,
                external_id=external_id,
                provider_slug=provider_slug,
            )
        )

    return _add


def _category(
    category_id: int,
    name: str,
    slug: str,
    path: str,
    parent_id: Optional[int] = None,
    provider_slug: Optional[str] = None,
    external_id: Optional[str] = None,
) -> CategoryRecord:
    return CategoryRecord(
        id=category_id,
        name=name,
        slug=slug,
        path=path,
        parent_id=parent_id,
        provider_slug=provider_slug,
        external_id=external_id,
    )


@pytest.fixture
def canonical_categories():
    """
    Canonical tree snapshot with colliding names.

    Three categories are named "Куполни"; only the one under "IP камери" owns
    the plain ``kupolni`` slug, the others carry parent-prefixed slugs.
    """
    return [
        _category(1, "Видеонаблюдение", "videonablyudenie", "videonablyudenie", external_id="10"),
        _category(
            2, "IP камери", "ip-kameri", "videonablyudenie/ip-kameri",
            parent_id=1, provider_slug="ip-cameras", external_id="11",
        ),
        _category(
            3, "Куполни", "analogovi-kameri-kupolni",
            "videonablyudenie/analogovi-kameri/analogovi-kameri-kupolni",
            parent_id=4, external_id="14",
        ),
        _category(4, "Аналогови камери", "analogovi-kameri", "videonablyudenie/analogovi-kameri", parent_id=1),
        _category(5, "Куполни", "kupolni", "videonablyudenie/ip-kameri/kupolni", parent_id=2),
        _category(6, "Аксесоари", "aksesoari", "aksesoari"),
        _category(7, "Куполни", "aksesoari-kupolni", "aksesoari/aksesoari-kupolni", parent_id=6),
        _category(
            8, "Стойки за камери", "stoyki", "aksesoari/stoyki",
            parent_id=6, provider_slug="stoyki-za-kameri",
        ),
    ]


# ============================================================================
# PROVIDER FIXTURES
# ============================================================================


class FakeProvider(CatalogProvider):
    """In-memory provider; handles listed in ``failing`` raise ProviderError"""

    name = "fake"

    def __init__(
        self,
        categories: Optional[list[dict[str, Any]]] = None,
        products: Optional[dict[str, list[dict[str, Any]]]] = None,
        parameters: Optional[dict[str, list[dict[str, Any]]]] = None,
        documents: Optional[dict[str, list[dict[str, Any]]]] = None,
        failing: tuple[str, ...] = (),
        name: Optional[str] = None,
    ) -> None:
        if name:
            self.name = name
        self.categories = categories or []
        self.products = products or {}
        self.parameters = parameters or {}
        self.documents = documents or {}
        self.failing = set(failing)
        self.requested: list[str] = []
        self.closed = False

    def _check(self, handle: str) -> None:
        self.requested.append(handle)
        if handle in self.failing:
            raise ProviderError("Provider unavailable", provider=self.name, handle=handle)

    def fetch_categories_raw(self):
        if "categories" in self.failing:
            raise ProviderError("Provider unavailable", provider=self.name)
        return list(self.categories)

    def fetch_products_raw(self, category_handle):
        self._check(category_handle)
        return list(self.products.get(category_handle, []))

    def fetch_parameter_options_raw(self, category_handle):
        self._check(category_handle)
        return list(self.parameters.get(category_handle, []))

    def fetch_documents_raw(self, product_handle):
        return list(self.documents.get(product_handle, []))

    def close(self):
        self.closed = True


@pytest.fixture
def make_provider():
    """Factory for in-memory providers"""
    return FakeProvider


@pytest.fixture
def provider_tree():
    """Provider category tree: one root, two children, two grandchildren"""
    return [
        {
            "id": "10",
            "slug": "video",
            "name": "Видеонаблюдение",
            "sub_categories": [
                {
                    "id": "11",
                    "slug": "ip-cameras",
                    "name": [
                        {"language_code": "bg", "text": "IP камери"},
                        {"language_code": "en", "text": "IP cameras"},
                    ],
                    "subsubcat": [{"id": "12", "slug": "dome", "name": "Куполни"}],
                },
                {
                    "id": "13",
                    "slug": "analog",
                    "name": "Аналогови камери",
                    "children": [{"id": "14", "slug": "analog-dome", "name": "Куполни"}],
                },
            ],
        }
    ]
