"""
SQLAlchemy database models for the canonical catalog.

Column types stay portable between PostgreSQL and SQLite so the same schema
backs production runs and the in-memory test database.
"""
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from catalog_sync.models.domain import (
    ProductStatus,
    SpecificationType,
    SyncStatus,
    SyncType,
)

Base = declarative_base()


class CategoryTable(Base):
    """Canonical category tree; children are owned by their parent"""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Provider that created the node; external_id and provider_slug are its values
    provider = Column(String(100))
    external_id = Column(String(100), index=True)
    provider_slug = Column(String(255), index=True)
    name = Column(String(255), nullable=False)
    name_en = Column(String(255))
    slug = Column(String(255), nullable=False, unique=True)
    path = Column(String(1024), index=True)
    parent_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), index=True)
    sort_order = Column(Integer, nullable=False, default=0)
    visible = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    parent = relationship("CategoryTable", remote_side=[id], back_populates="children")
    children = relationship(
        "CategoryTable",
        back_populates="parent",
        cascade="all, delete-orphan",
        order_by="CategoryTable.id",
    )
    attributes = relationship(
        "AttributeTable", back_populates="category", cascade="all, delete-orphan"
    )
    specification_templates = relationship(
        "SpecificationTemplateTable",
        back_populates="category",
        cascade="all, delete-orphan",
    )
    provider_refs = relationship(
        "CategoryProviderRefTable",
        back_populates="category",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("idx_categories_parent_external", "parent_id", "external_id"),)

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, slug='{self.slug}', path='{self.path}')>"



class CategoryProviderRefTable(Base):
    """Identifiers a provider uses for a canonical category"""

    __tablename__ = "category_provider_refs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider = Column(String(100), nullable=False)
    external_id = Column(String(100), nullable=False)
    provider_slug = Column(String(255))

    category = relationship("CategoryTable", back_populates="provider_refs")

    __table_args__ = (
        UniqueConstraint("provider", "external_id", name="uq_category_ref_provider_id"),
        Index("idx_category_refs_provider_slug", "provider", "provider_slug"),
    )

    def __repr__(self) -> str:
        return (
            f"<CategoryProviderRef(category_id={self.category_id}, "
            f"provider='{self.provider}', external_id='{self.external_id}')>"
        )


class ManufacturerTable(Base):
    """Product manufacturers"""

    __tablename__ = "manufacturers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(100), index=True)
    name = Column(String(255), nullable=False, index=True)
    information_name = Column(String(255))

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    def __repr__(self) -> str:
        return f"<Manufacturer(id={self.id}, name='{self.name}')>"


class AttributeTable(Base):
    """Category-scoped filterable attributes"""

    __tablename__ = "attributes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    external_key = Column(String(255))
    name = Column(String(255), nullable=False)
    name_en = Column(String(255))
    sort_order = Column(Integer, nullable=False, default=50)

    category = relationship("CategoryTable", back_populates="attributes")
    options = relationship(
        "AttributeOptionTable",
        back_populates="attribute",
        cascade="all, delete-orphan",
        order_by="AttributeOptionTable.sort_order",
    )

    __table_args__ = (
        UniqueConstraint("category_id", "external_key", name="uq_attribute_category_key"),
    )

    def __repr__(self) -> str:
        return f"<Attribute(id={self.id}, category_id={self.category_id}, key='{self.external_key}')>"


class AttributeOptionTable(Base):
    """Allowed values of an attribute"""

    __tablename__ = "attribute_options"

    id = Column(Integer, primary_key=True, autoincrement=True)
    attribute_id = Column(
        Integer, ForeignKey("attributes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    value = Column(String(500), nullable=False)
    # Case-folded, whitespace-collapsed value; one option per spelling
    value_key = Column(String(500), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    attribute = relationship("AttributeTable", back_populates="options")

    __table_args__ = (
        UniqueConstraint("attribute_id", "value_key", name="uq_attribute_option_value"),
    )

    def __repr__(self) -> str:
        return f"<AttributeOption(id={self.id}, value='{self.value}')>"


class ProductTable(Base):
    """Canonical products keyed by SKU"""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sku = Column(String(100), nullable=False, index=True)
    external_id = Column(String(100), index=True)
    name = Column(String(500), nullable=False)
    model = Column(String(255))
    description = Column(Text)

    # Prices stored verbatim from the provider
    price_client = Column(Numeric(12, 2))
    price_partner = Column(Numeric(12, 2))

    quantity = Column(Integer, nullable=False, default=0)
    weight = Column(Numeric(10, 3))
    visible = Column(Boolean, nullable=False, default=False)
    status = Column(Enum(ProductStatus), nullable=False, default=ProductStatus.NOT_AVAILABLE)

    primary_image_url = Column(String(1024))
    additional_images = Column(JSON, nullable=False, default=list)

    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), index=True)
    manufacturer_id = Column(Integer, ForeignKey("manufacturers.id", ondelete="SET NULL"))

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    attribute_assignments = relationship(
        "ProductAttributeTable", back_populates="product", cascade="all, delete-orphan"
    )
    documents = relationship(
        "ProductDocumentTable", back_populates="product", cascade="all, delete-orphan"
    )
    specifications = relationship(
        "ProductSpecificationTable", back_populates="product", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, sku='{self.sku}')>"


class ProductAttributeTable(Base):
    """Product value for one attribute"""

    __tablename__ = "product_attributes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    attribute_id = Column(
        Integer, ForeignKey("attributes.id", ondelete="CASCADE"), nullable=False
    )
    option_id = Column(
        Integer, ForeignKey("attribute_options.id", ondelete="CASCADE"), nullable=False
    )

    product = relationship("ProductTable", back_populates="attribute_assignments")

    __table_args__ = (
        UniqueConstraint("product_id", "attribute_id", name="uq_product_attribute"),
    )


class ProductDocumentTable(Base):
    """Documents attached to a product"""

    __tablename__ = "product_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    document_url = Column(String(1024), nullable=False)
    comment = Column(String(500))

    product = relationship("ProductTable", back_populates="documents")


class SpecificationTemplateTable(Base):
    """Category-scoped specification definitions"""

    __tablename__ = "specification_templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    spec_name = Column(String(255), nullable=False)
    unit = Column(String(50))
    spec_group = Column(String(100))
    type = Column(Enum(SpecificationType), nullable=False, default=SpecificationType.TEXT)
    allowed_values = Column(JSON)
    required = Column(Boolean, nullable=False, default=False)
    filterable = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)

    category = relationship("CategoryTable", back_populates="specification_templates")

    __table_args__ = (
        UniqueConstraint("category_id", "spec_name", name="uq_template_category_name"),
    )


class ProductSpecificationTable(Base):
    """Validated specification values stored on products"""

    __tablename__ = "product_specifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    template_id = Column(
        Integer,
        ForeignKey("specification_templates.id", ondelete="CASCADE"),
        nullable=False,
    )
    spec_value = Column(Text, nullable=False)
    spec_value_secondary = Column(Text)
    sort_order = Column(Integer, nullable=False, default=0)

    product = relationship("ProductTable", back_populates="specifications")


class SyncRunTable(Base):
    """Ledger of synchronization runs"""

    __tablename__ = "sync_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sync_type = Column(Enum(SyncType), nullable=False, index=True)
    status = Column(Enum(SyncStatus), nullable=False, default=SyncStatus.IN_PROGRESS)
    records_processed = Column(Integer, nullable=False, default=0)
    records_created = Column(Integer, nullable=False, default=0)
    records_updated = Column(Integer, nullable=False, default=0)
    errors = Column(Integer, nullable=False, default=0)
    duration_ms = Column(Integer)
    message = Column(Text)

    started_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    finished_at = Column(DateTime(timezone=True))

    __table_args__ = (Index("idx_sync_runs_type_started", "sync_type", "started_at"),)

    def __repr__(self) -> str:
        return f"<SyncRun(id={self.id}, type='{self.sync_type}', status='{self.status}')>"


__all__ = [
    "Base",
    "CategoryTable",
    "CategoryProviderRefTable",
    "ManufacturerTable",
    "AttributeTable",
    "AttributeOptionTable",
    "ProductTable",
    "ProductAttributeTable",
    "ProductDocumentTable",
    "SpecificationTemplateTable",
    "ProductSpecificationTable",
    "SyncRunTable",
]
