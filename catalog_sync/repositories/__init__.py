"""Repositories translating between table rows and domain values."""
from catalog_sync.repositories.attribute_repository import AttributeRepository
from catalog_sync.repositories.base import (
    BaseRepository,
    DatabaseSession,
    RepositoryError,
    create_database_engine,
    create_session_factory,
    init_database,
    session_scope,
)
from catalog_sync.repositories.category_repository import CategoryRepository
from catalog_sync.repositories.manufacturer_repository import ManufacturerRepository
from catalog_sync.repositories.product_repository import ProductRepository
from catalog_sync.repositories.specification_repository import SpecificationRepository
from catalog_sync.repositories.sync_run_repository import SyncRunRepository

__all__ = [
    "AttributeRepository",
    "BaseRepository",
    "CategoryRepository",
    "DatabaseSession",
    "ManufacturerRepository",
    "ProductRepository",
    "RepositoryError",
    "SpecificationRepository",
    "SyncRunRepository",
    "create_database_engine",
    "create_session_factory",
    "init_database",
    "session_scope",
]
