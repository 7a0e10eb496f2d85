"""Tests for PropertyType conversion."""

import pytest
from configfacade import ConversionError
from configfacade import Outcome
from configfacade import PropertyType
from configfacade import UnsupportedTypeError


class TestPropertyType:
    """Test the closed set of property types."""

    @pytest.mark.parametrize(
        "property_type, raw, expected",
        [
            (PropertyType.STRING, "x", "x"),
            (PropertyType.STRING, 12, "12"),
            (PropertyType.BOOLEAN, "Yes", True),
            (PropertyType.BOOLEAN, "off", False),
            (PropertyType.INTEGER, " 17 ", 17),
            (PropertyType.LONG, str(2**40), 2**40),
            (PropertyType.DOUBLE, "1e3", 1000.0),
            (PropertyType.DOUBLE, 2, 2.0),
        ],
    )
    def test_convert(self, property_type, raw, expected):
        """Test conversion of raw values."""
        assert property_type.convert(raw) == expected

    @pytest.mark.parametrize(
        "property_type, raw",
        [
            (PropertyType.BOOLEAN, "perhaps"),
            (PropertyType.INTEGER, "1.5"),
            (PropertyType.INTEGER, 2**31),
            (PropertyType.LONG, 2**63),
            (PropertyType.DOUBLE, "fast"),
        ],
    )
    def test_convert_failure(self, property_type, raw):
        """Test unconvertible values raise ConversionError."""
        with pytest.raises(ConversionError) as exc_info:
            property_type.convert(raw, key="some.key")
        assert exc_info.value.key == "some.key"
        assert exc_info.value.target == property_type.value

    def test_matches_native_types(self):
        """Test native type matching."""
        assert PropertyType.STRING.matches("x")
        assert PropertyType.LONG.matches(5)
        assert PropertyType.DOUBLE.matches(0.5)
        assert not PropertyType.DOUBLE.matches(5)
        assert not PropertyType.STRING.matches(5)

    def test_accept_native_values(self):
        """Test matching values are returned as is, with integer range checks."""
        assert PropertyType.DOUBLE.accept(0.5) == 0.5
        assert PropertyType.LONG.accept(2**40) == 2**40
        with pytest.raises(ConversionError) as exc_info:
            PropertyType.INTEGER.accept(2**40, key="some.key")
        assert exc_info.value.value == 2**40

    def test_parse_uses_string_form(self):
        """Test parse converts from the value's string form."""
        assert PropertyType.STRING.parse(1.5) == "1.5"
        assert PropertyType.INTEGER.parse(" 12") == 12
        with pytest.raises(ConversionError):
            PropertyType.BOOLEAN.parse(2)

    def test_bool_is_not_an_integer(self):
        """Test booleans never match integer types."""
        assert PropertyType.BOOLEAN.matches(True)
        assert not PropertyType.INTEGER.matches(True)
        with pytest.raises(ConversionError):
            PropertyType.INTEGER.convert(True)

    @pytest.mark.parametrize(
        "type_, expected",
        [
            (PropertyType.INTEGER, PropertyType.INTEGER),
            (str, PropertyType.STRING),
            (bool, PropertyType.BOOLEAN),
            (int, PropertyType.LONG),
            (float, PropertyType.DOUBLE),
            ("Integer", PropertyType.INTEGER),
        ],
    )
    def test_resolve(self, type_, expected):
        """Test resolving members, Python types and names."""
        assert PropertyType.resolve(type_) is expected

    @pytest.mark.parametrize("type_", [list, "decimal", None, object()])
    def test_resolve_unsupported(self, type_):
        """Test unsupported types raise UnsupportedTypeError."""
        with pytest.raises(UnsupportedTypeError):
            PropertyType.resolve(type_)


class TestOutcome:
    """Test the three evaluation states."""

    def test_states(self):
        """Test present, absent and failed outcomes."""
        assert Outcome(value=1).present
        assert not Outcome().present
        assert not Outcome().failed
        failed = Outcome(error=RuntimeError("x"))
        assert failed.failed
        assert not failed.present
