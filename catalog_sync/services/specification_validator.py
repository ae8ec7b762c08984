"""
Type validation for manually entered product specifications.

Pure functions: a value is checked against its template and either accepted
or rejected with a human-readable reason.
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import AnyUrl, TypeAdapter, ValidationError

from catalog_sync.core.exceptions import SpecificationValidationError
from catalog_sync.models.domain import SpecificationTemplateRecord, SpecificationType

BOOLEAN_VALUES = frozenset({"true", "false", "yes", "no", "1", "0"})

_INTEGER_PATTERN = re.compile(r"[+-]?\d+")
_EMAIL_PATTERN = re.compile(r"[A-Za-z0-9+_.-]+@(.+)")
_COLOR_PATTERN = re.compile(r"#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})")
_URL_ADAPTER = TypeAdapter(AnyUrl)


def _is_integer(value: str) -> bool:
    return _INTEGER_PATTERN.fullmatch(value) is not None


def _is_decimal(value: str) -> bool:
    if value != value.strip():
        return False
    try:
        return Decimal(value).is_finite()
    except InvalidOperation:
        return False


def _is_url(value: str) -> bool:
    try:
        _URL_ADAPTER.validate_python(value)
    except ValidationError:
        return False
    return True


def validate_specification_value(
    value: Optional[str], template: SpecificationTemplateRecord
) -> None:
    """
    Check a raw value against the template's declared type.

    Args:
        value: Value as entered
        template: Template the value belongs to

    Raises:
        SpecificationValidationError: With the rejection reason
    """
    name = template.name

    if value is None or not value.strip():
        raise SpecificationValidationError("value required", name, value)

    spec_type = template.type

    if spec_type == SpecificationType.NUMBER:
        if not _is_integer(value):
            raise SpecificationValidationError("must be a whole number", name, value)

    elif spec_type == SpecificationType.DECIMAL:
        if not _is_decimal(value):
            raise SpecificationValidationError("must be a decimal number", name, value)

    elif spec_type == SpecificationType.BOOLEAN:
        if value.lower() not in BOOLEAN_VALUES:
            raise SpecificationValidationError(
                "must be one of: " + ", ".join(sorted(BOOLEAN_VALUES)), name, value
            )

    elif spec_type in (SpecificationType.DROPDOWN, SpecificationType.MULTI_SELECT):
        # Membership is only enforced when the template declares values
        if template.allowed_values and value not in template.allowed_values:
            raise SpecificationValidationError(
                "must be one of the allowed values", name, value
            )

    elif spec_type == SpecificationType.EMAIL:
        if not _EMAIL_PATTERN.fullmatch(value):
            raise SpecificationValidationError("must be a valid email address", name, value)

    elif spec_type == SpecificationType.URL:
        if not _is_url(value):
            raise SpecificationValidationError("must be a valid URL", name, value)

    elif spec_type == SpecificationType.COLOR:
        if not _COLOR_PATTERN.fullmatch(value):
            raise SpecificationValidationError(
                "must be a hex color (#RGB or #RRGGBB)", name, value
            )

    # TEXT, RANGE and DATE carry no format check


def is_valid_specification_value(
    value: Optional[str], template: SpecificationTemplateRecord
) -> bool:
    """Boolean form of validate_specification_value"""
    try:
        validate_specification_value(value, template)
    except SpecificationValidationError:
        return False
    return True


__all__ = [
    "BOOLEAN_VALUES",
    "validate_specification_value",
    "is_valid_specification_value",
]
