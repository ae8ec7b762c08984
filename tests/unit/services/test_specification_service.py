"""
Unit tests for manual specification submission.
"""
import pytest

from catalog_sync.models.domain import (
    ProductRecord,
    SpecificationSubmission,
    SpecificationTemplateRecord,
    SpecificationType,
)
from catalog_sync.repositories.base import RepositoryError
from catalog_sync.repositories.product_repository import ProductRepository
from catalog_sync.repositories.specification_repository import SpecificationRepository
from catalog_sync.services.specifications import SpecificationService


@pytest.fixture
def catalog(session, add_category):
    root = add_category("Видеонаблюдение", "videonablyudenie")
    category = add_category("IP камери", "ip-kameri", parent=root)
    product = ProductRepository(session).save(
        ProductRecord(sku="CAM-1", name="IP камера", category_id=category.id)
    )
    specifications = SpecificationRepository(session)
    templates = {
        "Резолюция": specifications.save_template(
            SpecificationTemplateRecord(
                category_id=category.id, name="Резолюция", type=SpecificationType.NUMBER,
                unit="MP", required=True, sort_order=1,
            )
        ),
        "Цвят": specifications.save_template(
            SpecificationTemplateRecord(
                category_id=category.id, name="Цвят", type=SpecificationType.DROPDOWN,
                allowed_values=("Бял", "Черен"), sort_order=2,
            )
        ),
        "Работна температура": specifications.save_template(
            SpecificationTemplateRecord(
                category_id=category.id, name="Работна температура",
                type=SpecificationType.RANGE, sort_order=3,
            )
        ),
    }
    return product, templates


class TestSpecificationService:
    """Test SpecificationService.submit"""

    def test_valid_submission_stored(self, session, catalog):
        """Accepted values replace the set with template sort order"""
        product, templates = catalog
        result = SpecificationService(session).submit(
            product.id,
            [
                SpecificationSubmission(name="Резолюция", value="4"),
                SpecificationSubmission(name="Работна температура", value="-30", secondary_value="60"),
            ],
        )

        assert not result.has_rejections
        stored = SpecificationRepository(session).list_product_specifications(product.id)
        assert [(s.template_id, s.value, s.secondary_value, s.sort_order) for s in stored] == [
            (templates["Резолюция"].id, "4", None, 1),
            (templates["Работна температура"].id, "-30", "60", 3),
        ]

    def test_invalid_field_rejected_rest_accepted(self, session, catalog):
        product, templates = catalog
        result = SpecificationService(session).submit(
            product.id,
            [
                SpecificationSubmission(name="Резолюция", value="4"),
                SpecificationSubmission(name="Цвят", value="Червен"),
            ],
        )

        assert [s.template_id for s in result.accepted] == [templates["Резолюция"].id]
        assert [(r.name, r.reason) for r in result.rejected] == [
            ("Цвят", "must be one of the allowed values")
        ]

    def test_missing_required_reported(self, session, catalog):
        product, _ = catalog
        result = SpecificationService(session).submit(
            product.id, [SpecificationSubmission(name="Цвят", value="Бял")]
        )

        assert len(result.accepted) == 1
        assert [(r.name, r.reason) for r in result.rejected] == [("Резолюция", "value required")]

    def test_unknown_specification_rejected(self, session, catalog):
        product, _ = catalog
        result = SpecificationService(session).submit(
            product.id,
            [
                SpecificationSubmission(name="Резолюция", value="2"),
                SpecificationSubmission(name="Тегло", value="1.2"),
            ],
        )

        assert [r.name for r in result.rejected] == ["Тегло"]

    def test_submission_replaces_previous_set(self, session, catalog):
        product, _ = catalog
        service = SpecificationService(session)
        service.submit(
            product.id,
            [
                SpecificationSubmission(name="Резолюция", value="2"),
                SpecificationSubmission(name="Цвят", value="Бял"),
            ],
        )
        service.submit(product.id, [SpecificationSubmission(name="Резолюция", value="8")])

        stored = SpecificationRepository(session).list_product_specifications(product.id)
        assert [s.value for s in stored] == ["8"]

    def test_values_checked_trimmed_but_stored_as_entered(self, session, catalog):
        """Surrounding whitespace does not fail validation and is kept on the stored value"""
        product, _ = catalog
        result = SpecificationService(session).submit(
            product.id, [SpecificationSubmission(name=" Резолюция ", value="  12 ")]
        )

        assert not result.has_rejections
        assert result.accepted[0].value == "  12 "
        stored = SpecificationRepository(session).list_product_specifications(product.id)
        assert [s.value for s in stored] == ["  12 "]

    def test_unknown_product(self, session, catalog):
        with pytest.raises(RepositoryError):
            SpecificationService(session).submit(9999, [])

    def test_product_without_category(self, session):
        product = ProductRepository(session).save(ProductRecord(sku="LOOSE", name="Loose"))
        with pytest.raises(RepositoryError, match="no category"):
            SpecificationService(session).submit(product.id, [])
