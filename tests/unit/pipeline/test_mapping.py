"""
Unit tests for raw record mapping.
"""
from decimal import Decimal

import pytest

from catalog_sync.models.domain import ManufacturerRecord, ProductRecord, ProductStatus
from catalog_sync.pipeline.mapping import (
    category_labels,
    documents_from_raw,
    extract_documents,
    extract_properties,
    get_decimal,
    get_int,
    get_string,
    localized_text,
    map_manufacturer,
    map_product,
    translated_text,
)


class TestFieldReaders:
    """Test scalar field readers"""

    def test_get_string(self):
        raw = {"a": "  text ", "b": "", "c": 12}
        assert get_string(raw, "a") == "text"
        assert get_string(raw, "b") is None
        assert get_string(raw, "c") == "12"
        assert get_string(raw, "missing") is None

    @pytest.mark.parametrize(
        "value, expected",
        [("12,50", Decimal("12.50")), ("7.25", Decimal("7.25")), (3, Decimal(3)), ("abc", None), ("", None), (True, None)],
    )
    def test_get_decimal(self, value, expected):
        assert get_decimal({"price": value}, "price") == expected

    def test_get_int_truncates(self):
        assert get_int({"quantity": "4.9"}, "quantity") == 4
        assert get_int({}, "quantity") is None


class TestLocalizedText:
    """Test localized provider names"""

    def test_language_list(self):
        value = [
            {"language_code": "en", "text": "Cameras"},
            {"language_code": "bg", "text": " Камери "},
        ]
        assert localized_text(value, "bg") == "Камери"
        assert localized_text(value, "de") == "Cameras"
        assert translated_text(value, "en") == "Cameras"
        assert translated_text(value, "de") is None

    def test_language_mapping(self):
        assert localized_text({"en": "Cameras", "bg": "Камери"}, "bg") == "Камери"
        assert localized_text({"en": "Cameras"}, "bg") == "Cameras"
        assert translated_text({"en": "Cameras"}, "bg") is None

    def test_plain_text(self):
        assert localized_text("  Камери ", "bg") == "Камери"
        assert localized_text(None, "bg") is None
        assert translated_text("Камери", "en") is None


class TestProperties:
    """Test property field extraction"""

    def test_prefixed_fields(self):
        raw = {"sku": "X", "prop_cvjat": " Бял ", "prop_zvuk": "", "prop_wdr": None, "name": "Cam"}
        assert extract_properties(raw, "prop_") == {"cvjat": "Бял"}

    def test_fallback_keys_when_no_prefixed_fields(self):
        raw = {"cvjat": "Бял", "model": "DS-2CD", "other": "ignored"}
        assert extract_properties(raw, "prop_", fallback_keys=("cvjat", "model", "zvuk")) == {
            "cvjat": "Бял",
            "model": "DS-2CD",
        }

    def test_prefixed_fields_win_over_fallback(self):
        raw = {"prop_zvuk": "Да", "cvjat": "Бял"}
        assert extract_properties(raw, "prop_", fallback_keys=("cvjat",)) == {"zvuk": "Да"}

    def test_category_labels(self):
        labels = category_labels({"category_1": "Камери", "category_2": "null", "category_3": "  "})
        assert labels.as_tuple() == ("Камери", None, None)


class TestDocuments:
    """Test document extraction"""

    def test_documents_from_mixed_entries(self):
        documents = documents_from_raw(
            [
                "https://example.com/a.pdf",
                {"url": "https://example.com/b.pdf", "comment": "Datasheet"},
                {"document_url": "https://example.com/c.pdf"},
                {"comment": "no url"},
                42,
            ]
        )
        assert [(d.url, d.comment) for d in documents] == [
            ("https://example.com/a.pdf", None),
            ("https://example.com/b.pdf", "Datasheet"),
            ("https://example.com/c.pdf", None),
        ]

    def test_absent_documents_field(self):
        assert extract_documents({"sku": "X"}) is None
        assert extract_documents({"documents": []}) == []


class TestMapProduct:
    """Test product value construction"""

    def test_new_product(self):
        raw = {
            "sku": "CAM-1",
            "id": "501",
            "name": "IP камера",
            "price": "120,50",
            "partner_price": "99.90",
            "quantity": 3,
            "net_weight": "0,45",
            "image": "https://img/1.jpg",
            "gallery": [{"url": "https://img/2.jpg"}, "https://img/1.jpg", "https://img/3.jpg"],
        }
        product = map_product(None, raw, category_id=5, manufacturer_id=2)

        assert product.sku == "CAM-1"
        assert product.external_id == "501"
        assert product.price_client == Decimal("120.50")
        assert product.price_partner == Decimal("99.90")
        assert product.weight == Decimal("0.45")
        assert product.visible is True
        assert product.status == ProductStatus.AVAILABLE
        assert product.primary_image_url == "https://img/1.jpg"
        assert product.additional_images == ("https://img/2.jpg", "https://img/3.jpg")
        assert (product.category_id, product.manufacturer_id) == (5, 2)

    def test_out_of_stock(self):
        product = map_product(None, {"sku": "A", "name": "B", "quantity": "0"}, 1, None)

        assert product.visible is False
        assert product.status == ProductStatus.NOT_AVAILABLE

    def test_update_keeps_absent_fields(self):
        existing = ProductRecord(
            id=9,
            sku="CAM-1",
            name="Old name",
            description="Kept",
            price_client=Decimal("100"),
            quantity=5,
            visible=True,
            status=ProductStatus.AVAILABLE,
            category_id=1,
            manufacturer_id=3,
        )
        updated = map_product(existing, {"sku": "CAM-1", "name": "New name", "price": "90"}, 2, None)

        assert updated.id == 9
        assert updated.name == "New name"
        assert updated.description == "Kept"
        assert updated.price_client == Decimal("90")
        assert updated.quantity == 5
        assert updated.visible is True
        assert updated.category_id == 2
        assert updated.manufacturer_id == 3
        assert existing.name == "Old name"

    def test_map_manufacturer(self):
        created = map_manufacturer(None, "  Hik   Vision ")
        assert (created.name, created.information_name) == ("Hik Vision", "Hik Vision")

        existing = ManufacturerRecord(id=1, name="Hikvision")
        assert map_manufacturer(existing, "HIKVISION").information_name == "HIKVISION"
