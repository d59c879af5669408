import base64
from decimal import Decimal
from typing import Any, Dict, Optional

from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def _repr_str(value: Any) -> str:
    """
    Return a string wrapped in single quotes, or the literal 'None' if value
    is None.
    """
    return "None" if value is None else f"'{value}'"


def format_type_error(name: str, value: Any, expected: type | tuple[type, ...]) -> str:
    """Return a standardized type error message."""
    if isinstance(expected, tuple):
        expected_names = ", ".join(t.__name__ for t in expected)
    else:
        expected_names = expected.__name__
    return f"{name} must be {expected_names}, got {type(value).__name__}"


def assert_type(
    name: str,
    value: Any,
    expected: type | tuple[type, ...],
    exc_type: type[Exception] = TypeError,
) -> None:
    """Raise an exception if ``value`` is not an instance of ``expected``."""
    if not isinstance(value, expected):
        raise exc_type(format_type_error(name, value, expected))


def validate_positive_int(field_name: str, value: Any) -> None:
    """
    Validate that a field is a positive integer.

    Booleans are rejected even though ``bool`` subclasses ``int``.

    Raises:
        ValueError: If value is not an integer or not positive
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer")
    if value <= 0:
        raise ValueError(f"{field_name} must be positive")


def is_attribute_value(value: Any) -> bool:
    """True when ``value`` looks like a low-level AttributeValue dict."""
    return (
        isinstance(value, dict)
        and len(value) == 1
        and next(iter(value))
        in {"S", "N", "B", "SS", "NS", "BS", "M", "L", "NULL", "BOOL"}
    )


def to_attribute_value(value: Any) -> Dict[str, Any]:
    """
    Serialize a Python value into a low-level AttributeValue.

    Values that already are AttributeValue dicts pass through untouched.
    Floats are routed through ``Decimal`` since boto3 refuses raw floats.
    """
    if is_attribute_value(value):
        return value
    if isinstance(value, float):
        value = Decimal(str(value))
    return _serializer.serialize(value)


def from_attribute_value(value: Dict[str, Any]) -> Any:
    """Deserialize a low-level AttributeValue into a Python value."""
    result = _deserializer.deserialize(value)
    if isinstance(result, Binary):
        return result.value
    return result


def attribute_value_to_string(value: Dict[str, Any]) -> Optional[str]:
    """
    Render a scalar AttributeValue as the string used in unique index keys.

    ``S`` and ``N`` render verbatim, ``BOOL`` as ``true``/``false`` and ``B``
    as base64. Empty values and non-scalar types render as ``None``.
    """
    if not isinstance(value, dict) or len(value) != 1:
        return None

    type_name, raw = next(iter(value.items()))
    if type_name in ("S", "N"):
        rendered = str(raw)
    elif type_name == "BOOL":
        rendered = "true" if raw else "false"
    elif type_name == "B":
        if isinstance(raw, Binary):
            raw = raw.value
        rendered = base64.b64encode(bytes(raw)).decode("ascii")
    else:
        return None

    return rendered if rendered.strip() else None
