"""
Core domain models for the catalog synchronization engine.

Canonical entities travel through the engine as immutable Pydantic values;
an update is a new value built from the existing one plus the provider record.
Run counters and reports are the only mutable models.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SyncType(str, Enum):
    """Top-level synchronization operations"""

    CATEGORIES = "categories"
    MANUFACTURERS = "manufacturers"
    PARAMETERS = "parameters"
    PRODUCTS = "products"
    COMPLETE = "complete"


class SyncStatus(str, Enum):
    """Sync run lifecycle: IN_PROGRESS then exactly one terminal state"""

    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"


class SpecificationType(str, Enum):
    """Value types a specification template can declare"""

    TEXT = "text"
    NUMBER = "number"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DROPDOWN = "dropdown"
    MULTI_SELECT = "multi_select"
    RANGE = "range"
    COLOR = "color"
    URL = "url"
    EMAIL = "email"
    DATE = "date"


class ProductStatus(str, Enum):
    """Availability derived from provider stock quantity"""

    AVAILABLE = "available"
    NOT_AVAILABLE = "not_available"


class MatchStrategy(str, Enum):
    """Category reconciliation strategies in cascade order"""

    EXACT_PATH = "exact_path"
    LEVEL2_NAME_UNDER_PARENT = "level2_name_under_parent"
    LEVEL2_SLUG_UNDER_PARENT = "level2_slug_under_parent"
    PARTIAL_PATH = "partial_path"
    LEVEL1_PATH = "level1_path"
    PROVIDER_SLUG = "provider_slug"
    DISPLAY_NAME = "display_name"


class UpsertOutcome(str, Enum):
    """Result of applying one record"""

    CREATED = "created"
    UPDATED = "updated"


# ============================================================================
# Canonical catalog entities
# ============================================================================


class CategoryRecord(BaseModel):
    """Node in the canonical category tree"""

    id: Optional[int] = None
    provider: Optional[str] = Field(None, description="Provider that created the category")
    external_id: Optional[str] = Field(None, description="Provider category id")
    provider_slug: Optional[str] = Field(None, description="Provider's own slug")
    name: str = Field(..., description="Display name in the primary language")
    name_en: Optional[str] = None
    slug: str = Field(..., min_length=1, description="Unique path-safe slug")
    path: Optional[str] = Field(None, description="Slash-joined ancestor slugs")
    parent_id: Optional[int] = None
    sort_order: int = 0
    visible: bool = True

    model_config = ConfigDict(frozen=True)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


class CategoryProviderRef(BaseModel):
    """A provider's id and slug for a canonical category"""

    id: Optional[int] = None
    category_id: int
    provider: str = Field(..., min_length=1)
    external_id: str = Field(..., min_length=1)
    provider_slug: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class ManufacturerRecord(BaseModel):
    """Product manufacturer"""

    id: Optional[int] = None
    external_id: Optional[str] = None
    name: str = Field(..., min_length=1)
    information_name: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class AttributeRecord(BaseModel):
    """Category-scoped filterable attribute ("parameter")"""

    id: Optional[int] = None
    category_id: int
    external_key: Optional[str] = Field(None, description="Provider property key")
    name: str = Field(..., min_length=1)
    name_en: Optional[str] = None
    sort_order: int = 50

    model_config = ConfigDict(frozen=True)


class AttributeOptionRecord(BaseModel):
    """Allowed value of an attribute"""

    id: Optional[int] = None
    attribute_id: int
    value: str = Field(..., min_length=1)
    sort_order: int = 0

    model_config = ConfigDict(frozen=True)


class ProductRecord(BaseModel):
    """Canonical product, keyed by SKU"""

    id: Optional[int] = None
    sku: str = Field(..., min_length=1)
    external_id: Optional[str] = None
    name: str = Field(..., min_length=1)
    model: Optional[str] = None
    description: Optional[str] = None
    price_client: Optional[Decimal] = None
    price_partner: Optional[Decimal] = None
    quantity: int = 0
    weight: Optional[Decimal] = None
    visible: bool = False
    status: ProductStatus = ProductStatus.NOT_AVAILABLE
    primary_image_url: Optional[str] = None
    additional_images: tuple[str, ...] = ()
    category_id: Optional[int] = None
    manufacturer_id: Optional[int] = None

    model_config = ConfigDict(frozen=True)


class AttributeAssignment(BaseModel):
    """Product value for one attribute"""

    attribute_id: int
    option_id: int

    model_config = ConfigDict(frozen=True)


class ProductDocumentRecord(BaseModel):
    """Downloadable document attached to a product"""

    url: str = Field(..., min_length=1)
    comment: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class SpecificationTemplateRecord(BaseModel):
    """Category-scoped definition of a manually entered specification"""

    id: Optional[int] = None
    category_id: int
    name: str = Field(..., min_length=1)
    unit: Optional[str] = None
    group: Optional[str] = None
    type: SpecificationType = SpecificationType.TEXT
    allowed_values: Optional[tuple[str, ...]] = None
    required: bool = False
    filterable: bool = False
    sort_order: int = 0

    model_config = ConfigDict(frozen=True)


class SpecificationSubmission(BaseModel):
    """One manually entered specification value"""

    name: str = Field(..., min_length=1)
    value: Optional[str] = None
    secondary_value: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class ProductSpecificationRecord(BaseModel):
    """Validated specification value stored on a product"""

    id: Optional[int] = None
    product_id: int
    template_id: int
    value: str
    secondary_value: Optional[str] = None
    sort_order: int = 0

    model_config = ConfigDict(frozen=True)


# ============================================================================
# Reconciliation values
# ============================================================================


def _clean_label(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() == "null":
        return None
    return text


class CategoryLabels(BaseModel):
    """Denormalized category path carried on a provider product record"""

    level1: Optional[str] = None
    level2: Optional[str] = None
    level3: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("level1", "level2", "level3", mode="before")
    @classmethod
    def treat_null_as_absent(cls, v):
        """Providers send the literal "null" and blanks for missing levels"""
        return _clean_label(v)

    @classmethod
    def from_raw(cls, level1: Any = None, level2: Any = None, level3: Any = None) -> "CategoryLabels":
        return cls(level1=level1, level2=level2, level3=level3)

    def as_tuple(self) -> tuple[Optional[str], Optional[str], Optional[str]]:
        return (self.level1, self.level2, self.level3)

    def is_empty(self) -> bool:
        return not any(self.as_tuple())


class MatchResult(BaseModel):
    """Outcome of reconciling one label tuple"""

    category: Optional[CategoryRecord] = None
    strategy: Optional[MatchStrategy] = None
    rejected_root: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def matched(self) -> bool:
        return self.category is not None


# ============================================================================
# Run accounting
# ============================================================================


class SyncCounts(BaseModel):
    """Counters reported by every sync operation"""

    processed: int = 0
    created: int = 0
    updated: int = 0
    errors: int = 0
    deferred: int = 0

    def record(self, outcome: UpsertOutcome) -> None:
        """Count one successfully applied record"""
        self.processed += 1
        if outcome == UpsertOutcome.CREATED:
            self.created += 1
        else:
            self.updated += 1

    def merge(self, other: "SyncCounts") -> "SyncCounts":
        """Add another set of counters into this one"""
        self.processed += other.processed
        self.created += other.created
        self.updated += other.updated
        self.errors += other.errors
        self.deferred += other.deferred
        return self


class UpsertReport(BaseModel):
    """Result of a chunked upsert run"""

    counts: SyncCounts = Field(default_factory=SyncCounts)
    deferred_records: list[Any] = Field(default_factory=list)
    chunks: int = 0


class SyncRunRecord(BaseModel):
    """Ledger entry for one sync operation"""

    id: Optional[int] = None
    sync_type: SyncType
    status: SyncStatus = SyncStatus.IN_PROGRESS
    records_processed: int = 0
    records_created: int = 0
    records_updated: int = 0
    errors: int = 0
    duration_ms: Optional[int] = None
    message: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)


__all__ = [
    "SyncType",
    "SyncStatus",
    "SpecificationType",
    "ProductStatus",
    "MatchStrategy",
    "UpsertOutcome",
    "CategoryRecord",
    "CategoryProviderRef",
    "ManufacturerRecord",
    "AttributeRecord",
    "AttributeOptionRecord",
    "ProductRecord",
    "AttributeAssignment",
    "ProductDocumentRecord",
    "SpecificationTemplateRecord",
    "SpecificationSubmission",
    "ProductSpecificationRecord",
    "CategoryLabels",
    "MatchResult",
    "SyncCounts",
    "UpsertReport",
    "SyncRunRecord",
]
