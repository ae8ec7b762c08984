"""
Mapping of raw provider records onto canonical values.

Raw records are plain dicts as decoded from the provider. Every function here
is pure: an update is a new immutable value built from the existing one and
the raw record, with absent provider fields keeping the existing value.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from catalog_sync.models.domain import (
    CategoryLabels,
    ManufacturerRecord,
    ProductDocumentRecord,
    ProductRecord,
    ProductStatus,
)

SKU_FIELD = "sku"
EXTERNAL_ID_FIELD = "id"
CATEGORY_ID_FIELD = "category_id"
CATEGORY_LABEL_FIELDS = ("category_1", "category_2", "category_3")
DOCUMENTS_FIELD = "documents"


def get_string(raw: dict[str, Any], key: str) -> Optional[str]:
    """Trimmed string value, None when absent or blank"""
    value = raw.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def get_decimal(raw: dict[str, Any], key: str) -> Optional[Decimal]:
    """Decimal value; accepts comma decimal separators, None when unparseable"""
    value = raw.get(key)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, Decimal)):
        return Decimal(value)
    text = str(value).strip().replace(",", ".")
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def get_int(raw: dict[str, Any], key: str) -> Optional[int]:
    """Integer value; decimals are truncated, None when unparseable"""
    number = get_decimal(raw, key)
    return int(number) if number is not None else None


def localized_text(value: Any, language: str) -> Optional[str]:
    """
    Pick the text for a language from a provider name field.

    Accepts a plain string, a ``{language: text}`` mapping, or a list of
    ``{"language_code": ..., "text": ...}`` entries. Falls back to the first
    available text when the language is missing.
    """
    if isinstance(value, dict):
        text = value.get(language)
        if text is None and value:
            text = next(iter(value.values()))
        return _clean_text(text)
    if isinstance(value, list):
        entries = [entry for entry in value if isinstance(entry, dict) and entry.get("text")]
        for entry in entries:
            if entry.get("language_code") == language:
                return _clean_text(entry["text"])
        return _clean_text(entries[0]["text"]) if entries else None
    return _clean_text(value)


def translated_text(value: Any, language: str) -> Optional[str]:
    """Text for exactly this language from a localized field, no fallback"""
    if isinstance(value, dict):
        return _clean_text(value.get(language))
    if isinstance(value, list):
        for entry in value:
            if isinstance(entry, dict) and entry.get("language_code") == language:
                return _clean_text(entry.get("text"))
    return None


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip() or None


def category_labels(raw: dict[str, Any]) -> CategoryLabels:
    """Denormalized category labels carried on a product record"""
    return CategoryLabels.from_raw(*(raw.get(field) for field in CATEGORY_LABEL_FIELDS))


def extract_properties(
    raw: dict[str, Any], prefix: str, fallback_keys: tuple[str, ...] = ()
) -> dict[str, str]:
    """
    Collect property fields from a raw product.

    Keys carrying the prefix are returned without it. When none are present,
    the fallback keys are read verbatim.

    Returns:
        Mapping of property key to trimmed, non-empty value
    """
    properties: dict[str, str] = {}
    for key, value in raw.items():
        if not key.startswith(prefix) or value is None:
            continue
        text = str(value).strip()
        if text:
            properties[key[len(prefix):]] = text

    if properties:
        return properties

    for key in fallback_keys:
        text = get_string(raw, key)
        if text:
            properties[key] = text
    return properties


def extract_documents(raw: dict[str, Any]) -> Optional[list[ProductDocumentRecord]]:
    """Documents listed on the record, None when the record carries none"""
    entries = raw.get(DOCUMENTS_FIELD)
    if entries is None:
        return None
    return documents_from_raw(entries)


def documents_from_raw(entries: Any) -> list[ProductDocumentRecord]:
    documents = []
    for entry in entries or []:
        if isinstance(entry, str):
            url, comment = entry.strip(), None
        elif isinstance(entry, dict):
            url = get_string(entry, "url") or get_string(entry, "document_url")
            comment = get_string(entry, "comment")
        else:
            continue
        if url:
            documents.append(ProductDocumentRecord(url=url, comment=comment))
    return documents


def _images(raw: dict[str, Any]) -> tuple[Optional[str], tuple[str, ...]]:
    urls = []
    primary = get_string(raw, "image")
    if primary:
        urls.append(primary)
    gallery = raw.get("gallery") or []
    if isinstance(gallery, str):
        gallery = [gallery]
    for entry in gallery:
        url = entry.get("url") if isinstance(entry, dict) else entry
        url = str(url).strip() if url else ""
        if url and url not in urls:
            urls.append(url)
    if not urls:
        return None, ()
    return urls[0], tuple(urls[1:])


def map_product(
    existing: Optional[ProductRecord],
    raw: dict[str, Any],
    category_id: int,
    manufacturer_id: Optional[int],
) -> ProductRecord:
    """
    Build the canonical product for a raw record.

    Args:
        existing: Stored product, None for a new one
        raw: Provider record; must carry SKU and name
        category_id: Reconciled canonical category
        manufacturer_id: Resolved manufacturer, None to keep the existing one

    Returns:
        New immutable product value
    """
    quantity = get_int(raw, "quantity")
    primary_image, additional_images = _images(raw)
    weight = get_decimal(raw, "weight")
    if weight is None:
        weight = get_decimal(raw, "net_weight")

    fields: dict[str, Any] = {
        "sku": get_string(raw, SKU_FIELD),
        "external_id": get_string(raw, EXTERNAL_ID_FIELD),
        "name": get_string(raw, "name"),
        "model": get_string(raw, "model"),
        "description": get_string(raw, "description"),
        "price_client": get_decimal(raw, "price"),
        "price_partner": get_decimal(raw, "partner_price"),
        "quantity": quantity,
        "weight": weight,
        "primary_image_url": primary_image,
        "additional_images": additional_images or None,
        "manufacturer_id": manufacturer_id,
    }
    if quantity is not None:
        in_stock = quantity > 0
        fields["visible"] = in_stock
        fields["status"] = ProductStatus.AVAILABLE if in_stock else ProductStatus.NOT_AVAILABLE

    provided = {key: value for key, value in fields.items() if value is not None}
    provided["category_id"] = category_id

    if existing is None:
        return ProductRecord(**provided)
    return existing.model_copy(update=provided)


def map_manufacturer(existing: Optional[ManufacturerRecord], name: str) -> ManufacturerRecord:
    """Build the canonical manufacturer for a provider name"""
    display_name = " ".join(name.split())
    if existing is None:
        return ManufacturerRecord(name=display_name, information_name=display_name)
    return existing.model_copy(update={"information_name": existing.information_name or display_name})


__all__ = [
    "SKU_FIELD",
    "EXTERNAL_ID_FIELD",
    "CATEGORY_ID_FIELD",
    "CATEGORY_LABEL_FIELDS",
    "get_string",
    "get_decimal",
    "get_int",
    "localized_text",
    "translated_text",
    "category_labels",
    "extract_properties",
    "extract_documents",
    "documents_from_raw",
    "map_product",
    "map_manufacturer",
]
