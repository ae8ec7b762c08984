"""
Unit tests for specification type validation.

Covers the boundary cases of every declared type.
"""
import pytest

from catalog_sync.core.exceptions import SpecificationValidationError
from catalog_sync.models.domain import SpecificationTemplateRecord, SpecificationType
from catalog_sync.services.specification_validator import (
    is_valid_specification_value,
    validate_specification_value,
)


def template(spec_type, allowed_values=None, name="Field"):
    return SpecificationTemplateRecord(
        category_id=1, name=name, type=spec_type, allowed_values=allowed_values
    )


class TestRequiredValue:
    """Blank values are rejected for every type"""

    @pytest.mark.parametrize("spec_type", list(SpecificationType))
    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_rejected(self, spec_type, value):
        with pytest.raises(SpecificationValidationError) as exc_info:
            validate_specification_value(value, template(spec_type))
        assert exc_info.value.reason == "value required"


class TestNumericTypes:
    """Test NUMBER and DECIMAL"""

    @pytest.mark.parametrize("value", ["12", "-3", "+7", "0"])
    def test_number_accepts_integers(self, value):
        assert is_valid_specification_value(value, template(SpecificationType.NUMBER))

    @pytest.mark.parametrize("value", ["1.5", "12a", " 12", "1e3"])
    def test_number_rejects_non_integers(self, value):
        assert not is_valid_specification_value(value, template(SpecificationType.NUMBER))

    @pytest.mark.parametrize("value", ["1.5", "-0.25", "42", "1e3"])
    def test_decimal_accepts(self, value):
        assert is_valid_specification_value(value, template(SpecificationType.DECIMAL))

    @pytest.mark.parametrize("value", ["abc", "1,5", "NaN", "Infinity", " 1.5"])
    def test_decimal_rejects(self, value):
        assert not is_valid_specification_value(value, template(SpecificationType.DECIMAL))


class TestBoolean:
    """Test BOOLEAN"""

    @pytest.mark.parametrize("value", ["true", "FALSE", "Yes", "no", "1", "0"])
    def test_accepts_known_literals(self, value):
        assert is_valid_specification_value(value, template(SpecificationType.BOOLEAN))

    def test_rejects_other_values(self):
        with pytest.raises(SpecificationValidationError) as exc_info:
            validate_specification_value("maybe", template(SpecificationType.BOOLEAN))
        assert exc_info.value.reason.startswith("must be one of")


class TestChoiceTypes:
    """Test DROPDOWN and MULTI_SELECT membership"""

    @pytest.mark.parametrize("spec_type", [SpecificationType.DROPDOWN, SpecificationType.MULTI_SELECT])
    def test_membership_enforced(self, spec_type):
        choice = template(spec_type, allowed_values=("Black", "White"))
        assert is_valid_specification_value("Black", choice)
        assert not is_valid_specification_value("Red", choice)
        assert not is_valid_specification_value("black", choice)

    @pytest.mark.parametrize("allowed_values", [None, ()])
    def test_no_declared_values_accepts_anything(self, allowed_values):
        choice = template(SpecificationType.DROPDOWN, allowed_values=allowed_values)
        assert is_valid_specification_value("Anything", choice)


class TestFormattedTypes:
    """Test EMAIL, URL and COLOR"""

    def test_email(self):
        email = template(SpecificationType.EMAIL)
        assert is_valid_specification_value("sales@example.com", email)
        assert not is_valid_specification_value("sales.example.com", email)

    def test_email_rejects_trailing_newline(self):
        assert not is_valid_specification_value("sales@example.com\n", template(SpecificationType.EMAIL))

    def test_url(self):
        url = template(SpecificationType.URL)
        assert is_valid_specification_value("https://example.com/datasheet.pdf", url)
        assert not is_valid_specification_value("not a url", url)

    @pytest.mark.parametrize("value", ["#fff", "#A1B2C3"])
    def test_color_accepts_hex(self, value):
        assert is_valid_specification_value(value, template(SpecificationType.COLOR))

    @pytest.mark.parametrize("value", ["fff", "#12345G", "#ffff", "red", "#ABC\n", "#A1B2C3\n"])
    def test_color_rejects(self, value):
        assert not is_valid_specification_value(value, template(SpecificationType.COLOR))

    @pytest.mark.parametrize(
        "spec_type", [SpecificationType.TEXT, SpecificationType.RANGE, SpecificationType.DATE]
    )
    def test_unchecked_types(self, spec_type):
        assert is_valid_specification_value("anything at all", template(spec_type))


class TestValidationError:
    """Test the rejection payload"""

    def test_error_details(self):
        with pytest.raises(SpecificationValidationError) as exc_info:
            validate_specification_value("x", template(SpecificationType.NUMBER, name="Weight"))

        error = exc_info.value
        assert error.reason == "must be a whole number"
        assert error.details == {"specification_name": "Weight", "value": "x"}
        assert error.to_dict()["stage"] == "specification"
