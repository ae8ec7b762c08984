"""
Attribute dictionary resolver.

Maps a provider property (key, value) on a product in a canonical category to
a canonical (attribute, option) pair, creating dictionary entries on first
sight. Lookups are served from a per-run cache seeded lazily per category.
"""
from collections.abc import Mapping
from typing import NamedTuple, Optional

import structlog

from catalog_sync.models.domain import (
    AttributeOptionRecord,
    AttributeRecord,
    CategoryRecord,
)
from catalog_sync.pipeline.run_cache import RunScopedCache
from catalog_sync.repositories.attribute_repository import AttributeRepository
from catalog_sync.services.slug import normalize_dictionary_value

logger = structlog.get_logger(__name__)

DEFAULT_ATTRIBUTE_ORDER = 50

# Provider property key -> display name in the primary language
PARAMETER_NAMES: Mapping[str, str] = {
    "cvjat": "Цвят",
    "merna": "Мерна единица",
    "model": "Модел",
    "rezolyutsiya": "Резолюция",
    "ir_podsvetka": "IR подсветка",
    "razmer": "Размери",
    "zvuk": "Звук",
    "wdr": "WDR",
    "obektiv": "Обектив",
    "korpus": "Корпус",
    "stepen_na_zashtita": "Степен на защита",
    "kompresiya": "Компресия",
    "poe_portove": "PoE портове",
    "broy_izhodi": "Брой изходи",
    "raboten_tok": "Работен ток",
    "moshtnost": "Мощност",
    "seriya_eco": "Eco серия",
}

# Display name -> English display name
PARAMETER_NAMES_EN: Mapping[str, str] = {
    "Цвят": "Color",
    "Мерна единица": "Unit of measure",
    "Модел": "Model",
    "Резолюция": "Resolution",
    "IR подсветка": "IR illumination",
    "Размери": "Dimensions",
    "Звук": "Audio",
    "WDR": "WDR",
    "Обектив": "Lens",
    "Корпус": "Housing",
    "Степен на защита": "Protection rating",
    "Компресия": "Compression",
    "PoE портове": "PoE ports",
    "Брой изходи": "Number of outputs",
    "Работен ток": "Operating current",
    "Мощност": "Power",
    "Eco серия": "Eco series",
}

# Provider property key -> attribute sort order
PARAMETER_ORDER: Mapping[str, int] = {
    "model": 1,
    "rezolyutsiya": 2,
    "obektiv": 3,
    "korpus": 4,
    "cvjat": 5,
    "razmer": 6,
    "stepen_na_zashtita": 7,
    "ir_podsvetka": 8,
    "zvuk": 9,
    "wdr": 10,
    "kompresiya": 11,
    "poe_portove": 12,
    "moshtnost": 13,
    "raboten_tok": 14,
    "broy_izhodi": 15,
    "seriya_eco": 16,
    "merna": 99,
}


def display_name_for_key(key: str, names: Mapping[str, str] = PARAMETER_NAMES) -> str:
    """Translated display name, or the key with a capital and spaces"""
    translated = names.get(key)
    if translated:
        return translated
    text = key.replace("_", " ").strip()
    return text[:1].upper() + text[1:] if text else key


class ResolvedAttribute(NamedTuple):
    attribute: AttributeRecord
    option: AttributeOptionRecord
    attribute_created: bool
    option_created: bool


class _CategoryDictionary:
    """Cached attributes of one category"""

    def __init__(self, attributes: list[AttributeRecord]) -> None:
        self.by_key: dict[str, AttributeRecord] = {}
        self.by_name: dict[str, AttributeRecord] = {}
        for attribute in attributes:
            self.add(attribute)

    def add(self, attribute: AttributeRecord) -> None:
        if attribute.external_key:
            self.by_key.setdefault(attribute.external_key, attribute)
        self.by_name.setdefault(normalize_dictionary_value(attribute.name), attribute)

    def replace(self, old: AttributeRecord, new: AttributeRecord) -> None:
        name = normalize_dictionary_value(old.name)
        if self.by_name.get(name) is old:
            self.by_name[name] = new
        if new.external_key:
            self.by_key[new.external_key] = new

    def revert_adoption(self, adopted: AttributeRecord, original: AttributeRecord) -> None:
        if self.by_key.get(adopted.external_key) is adopted:
            del self.by_key[adopted.external_key]
        name = normalize_dictionary_value(adopted.name)
        if self.by_name.get(name) is adopted:
            self.by_name[name] = original

    def remove(self, attribute: AttributeRecord) -> None:
        if attribute.external_key and self.by_key.get(attribute.external_key) is attribute:
            del self.by_key[attribute.external_key]
        name = normalize_dictionary_value(attribute.name)
        if self.by_name.get(name) is attribute:
            del self.by_name[name]


class AttributeDictionaryResolver(RunScopedCache):
    """
    Find-or-create resolver for attributes and their options.

    Attribute lookup: external key, then normalized display name derived from
    the key, then create. Option lookup: exact value, then normalized value,
    then create with the next sort order. A missing category is a soft miss.
    """

    def __init__(
        self,
        repository: AttributeRepository,
        names: Mapping[str, str] = PARAMETER_NAMES,
        names_en: Mapping[str, str] = PARAMETER_NAMES_EN,
        order: Mapping[str, int] = PARAMETER_ORDER,
    ) -> None:
        super().__init__()
        self.repository = repository
        self.names = names
        self.names_en = names_en
        self.order = order
        self._categories: dict[int, _CategoryDictionary] = {}
        self._options: dict[int, list[AttributeOptionRecord]] = {}
        self.statistics = {
            "resolved": 0,
            "not_found": 0,
            "attributes_created": 0,
            "options_created": 0,
        }
        self.logger = logger.bind(component="attribute_resolver")

    def resolve(
        self, category: Optional[CategoryRecord], key: str, value: str
    ) -> Optional[ResolvedAttribute]:
        """
        Resolve a provider property to a canonical attribute and option.

        Args:
            category: Reconciled category of the product, None when unmatched
            key: Provider property key without prefix
            value: Raw property value

        Returns:
            Resolved pair, or None when the category is unknown or the input blank
        """
        if category is None or category.id is None or not key or not (value and value.strip()):
            self.statistics["not_found"] += 1
            self.logger.debug("Attribute not resolved", key=key, has_category=category is not None)
            return None

        attribute, attribute_created = self.resolve_attribute(category.id, key)
        option, option_created = self.resolve_option(attribute, value)
        self.statistics["resolved"] += 1
        return ResolvedAttribute(attribute, option, attribute_created, option_created)

    def resolve_attribute(
        self,
        category_id: int,
        key: str,
        name: Optional[str] = None,
        name_en: Optional[str] = None,
        sort_order: Optional[int] = None,
    ) -> tuple[AttributeRecord, bool]:
        """
        Find or create the attribute for a provider key within a category.

        Explicit name/order override the translation and order tables.

        Returns:
            (attribute, created)
        """
        dictionary = self._dictionary(category_id)

        attribute = dictionary.by_key.get(key)
        if attribute is not None:
            return attribute, False

        display_name = name or display_name_for_key(key, self.names)
        attribute = dictionary.by_name.get(normalize_dictionary_value(display_name))
        if attribute is not None:
            if not attribute.external_key:
                # Attribute created by hand or by another provider adopts the key
                adopted = self.repository.save(attribute.model_copy(update={"external_key": key}))
                dictionary.replace(attribute, adopted)
                self._remember(lambda: dictionary.revert_adoption(adopted, attribute))
                return adopted, False
            return attribute, False

        attribute = self.repository.save(
            AttributeRecord(
                category_id=category_id,
                external_key=key,
                name=display_name,
                name_en=name_en or self.names_en.get(display_name),
                sort_order=sort_order
                if sort_order is not None
                else self.order.get(key, DEFAULT_ATTRIBUTE_ORDER),
            )
        )
        dictionary.add(attribute)
        self._remember(lambda: self._forget_attribute(dictionary, attribute))
        self.statistics["attributes_created"] += 1
        self.logger.debug(
            "Attribute created", category_id=category_id, key=key, name=attribute.name
        )
        return attribute, True

    def resolve_option(
        self, attribute: AttributeRecord, value: str
    ) -> tuple[AttributeOptionRecord, bool]:
        """
        Find or create the option for a value of an attribute.

        Returns:
            (option, created)
        """
        options = self._attribute_options(attribute.id)
        text = value.strip()

        for option in options:
            if option.value == text:
                return option, False

        normalized = normalize_dictionary_value(text)
        for option in options:
            if normalize_dictionary_value(option.value) == normalized:
                return option, False

        next_order = max((o.sort_order for o in options), default=-1) + 1
        option = self.repository.save_option(
            AttributeOptionRecord(attribute_id=attribute.id, value=text, sort_order=next_order)
        )
        options.append(option)
        self._remember(lambda: options.remove(option))
        self.statistics["options_created"] += 1
        return option, True

    def _dictionary(self, category_id: int) -> _CategoryDictionary:
        dictionary = self._categories.get(category_id)
        if dictionary is None:
            dictionary = _CategoryDictionary(self.repository.list_by_category(category_id))
            self._categories[category_id] = dictionary
        return dictionary

    def _attribute_options(self, attribute_id: int) -> list[AttributeOptionRecord]:
        options = self._options.get(attribute_id)
        if options is None:
            options = self.repository.list_options(attribute_id)
            self._options[attribute_id] = options
        return options

    def _forget_attribute(self, dictionary: _CategoryDictionary, attribute: AttributeRecord) -> None:
        dictionary.remove(attribute)
        self._options.pop(attribute.id, None)

    def _clear(self) -> None:
        self._categories.clear()
        self._options.clear()

    def get_statistics(self) -> dict[str, int]:
        return dict(self.statistics)


__all__ = [
    "AttributeDictionaryResolver",
    "ResolvedAttribute",
    "PARAMETER_NAMES",
    "PARAMETER_NAMES_EN",
    "PARAMETER_ORDER",
    "DEFAULT_ATTRIBUTE_ORDER",
    "display_name_for_key",
    "normalize_dictionary_value",
]
