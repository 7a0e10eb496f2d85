"""Type coercion for property values.

The set of supported property types is closed. Each member of
``PropertyType`` carries its native Python type, a range check for native
values where the type is bounded, and a converter from the raw value's
string form, so the config layer never needs to branch on the requested
type itself.
"""

from enum import Enum
from typing import Any
from typing import Callable

from .exceptions import ConversionError
from .exceptions import UnsupportedTypeError

INTEGER_RANGE = (-(2**31), 2**31 - 1)
LONG_RANGE = (-(2**63), 2**63 - 1)

_TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "off", "0"})


def _to_boolean(text: str) -> bool:
    text = text.strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError("expected one of true/false, yes/no, on/off, 1/0")


def _in_range(bounds: tuple[int, int]) -> Callable[[int], int]:
    low, high = bounds

    def check(value: int) -> int:
        if not low <= value <= high:
            raise ValueError(f"out of range [{low}, {high}]")
        return value

    return check


def _parse_int(bounds: tuple[int, int]) -> Callable[[str], int]:
    check = _in_range(bounds)

    def parse(text: str) -> int:
        return check(int(text.strip()))

    return parse


def _to_double(text: str) -> float:
    return float(text.strip())


class PropertyType(Enum):
    """Supported property value types."""

    STRING = "string"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    LONG = "long"
    DOUBLE = "double"

    @property
    def native_type(self) -> type:
        """Python type a raw value must have to be returned unconverted."""
        return _NATIVE_TYPES[self]

    def matches(self, raw: Any) -> bool:
        """Check whether a raw value already has this type's native type.

        ``bool`` is an ``int`` subclass in Python but never counts as an
        integer here.
        """
        if isinstance(raw, bool):
            return self is PropertyType.BOOLEAN
        return isinstance(raw, self.native_type)

    def accept(self, raw: Any, key: str | None = None) -> Any:
        """Return a raw value that ``matches`` this type, range checked.

        Raises:
            ConversionError: If an INTEGER or LONG value is out of range
        """
        check = _NATIVE_CHECKS.get(self)
        if check is None:
            return raw
        try:
            return check(raw)
        except ValueError as e:
            raise ConversionError(key, raw, self.value, str(e)) from e

    def parse(self, raw: Any, key: str | None = None) -> Any:
        """Convert a raw value from its string form.

        Raises:
            ConversionError: If the string cannot be represented as this type
        """
        try:
            return _CONVERTERS[self](str(raw))
        except (TypeError, ValueError) as e:
            raise ConversionError(key, raw, self.value, str(e)) from e

    def convert(self, raw: Any, key: str | None = None) -> Any:
        """Convert a raw config value to this type.

        Values that already match are accepted as they are, anything else is
        parsed from its string form.

        Args:
            raw: Raw value from the config map (not None)
            key: Raw key the value was read from, for error messages

        Returns:
            Converted value

        Raises:
            ConversionError: If the value cannot be represented as this type
        """
        if self.matches(raw):
            return self.accept(raw, key)
        return self.parse(raw, key)

    @classmethod
    def resolve(cls, type_: "PropertyType | type | str") -> "PropertyType":
        """Find the property type for a member, Python type or type name.

        ``int`` resolves to LONG since Python integers are unbounded.

        Raises:
            UnsupportedTypeError: If no converter is registered for ``type_``
        """
        if isinstance(type_, PropertyType):
            return type_
        if isinstance(type_, str):
            try:
                return cls(type_.lower())
            except ValueError:
                raise UnsupportedTypeError(f"Unsupported property type '{type_}'") from None
        try:
            return _PYTHON_TYPES[type_]
        except (KeyError, TypeError):
            raise UnsupportedTypeError(f"Unsupported property type {type_!r}") from None


_NATIVE_TYPES: dict[PropertyType, type] = {
    PropertyType.STRING: str,
    PropertyType.BOOLEAN: bool,
    PropertyType.INTEGER: int,
    PropertyType.LONG: int,
    PropertyType.DOUBLE: float,
}

_NATIVE_CHECKS: dict[PropertyType, Callable[[int], int]] = {
    PropertyType.INTEGER: _in_range(INTEGER_RANGE),
    PropertyType.LONG: _in_range(LONG_RANGE),
}

_CONVERTERS: dict[PropertyType, Callable[[str], Any]] = {
    PropertyType.STRING: str,
    PropertyType.BOOLEAN: _to_boolean,
    PropertyType.INTEGER: _parse_int(INTEGER_RANGE),
    PropertyType.LONG: _parse_int(LONG_RANGE),
    PropertyType.DOUBLE: _to_double,
}

_PYTHON_TYPES: dict[type, PropertyType] = {
    str: PropertyType.STRING,
    bool: PropertyType.BOOLEAN,
    int: PropertyType.LONG,
    float: PropertyType.DOUBLE,
}
