"""
Opaque pagination cursors built from DynamoDB ``LastEvaluatedKey`` maps.

A cursor is ``base64(JSON(last_evaluated_key))``. Binary key values are
carried as base64 strings inside the JSON document and restored to ``bytes``
on decode, so ``decode_cursor(encode_cursor(key)) == key`` for every key map
DynamoDB returns. The empty string means "start from the first page".
"""

import base64
import binascii
import json
from typing import Any, Dict, Optional

from dynamo_crud.data.shared_exceptions import CursorError

_SCALAR_KEY_TYPES = {"S", "N", "B"}


def encode_cursor(last_evaluated_key: Optional[Dict[str, Any]]) -> str:
    """Encode a ``LastEvaluatedKey`` map into an opaque cursor string."""
    if not last_evaluated_key:
        return ""

    payload = {}
    for name, value in last_evaluated_key.items():
        payload[name] = _encode_attribute_value(name, value)

    raw = json.dumps(payload, separators=(",", ":"), sort_keys=True)
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Decode a cursor produced by ``encode_cursor``.

    Returns:
        The ``ExclusiveStartKey`` map, or ``None`` for an empty cursor.

    Raises:
        CursorError: If the cursor is not valid base64 JSON of a key map.
    """
    if not cursor:
        return None

    try:
        raw = base64.b64decode(cursor.encode("ascii"), validate=True)
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise CursorError("Invalid pagination cursor") from e

    if not isinstance(payload, dict) or not payload:
        raise CursorError("Invalid pagination cursor")

    return {
        name: _decode_attribute_value(name, value)
        for name, value in payload.items()
    }


def _encode_attribute_value(name: str, value: Any) -> Dict[str, str]:
    if not isinstance(value, dict) or len(value) != 1:
        raise CursorError(f"Key attribute {name} is not an AttributeValue")

    type_name, raw = next(iter(value.items()))
    if type_name not in _SCALAR_KEY_TYPES:
        raise CursorError(
            f"Key attribute {name} has unsupported type {type_name}"
        )
    if type_name == "B":
        return {"B": base64.b64encode(bytes(raw)).decode("ascii")}
    return {type_name: str(raw)}


def _decode_attribute_value(name: str, value: Any) -> Dict[str, Any]:
    if not isinstance(value, dict) or len(value) != 1:
        raise CursorError("Invalid pagination cursor")

    type_name, raw = next(iter(value.items()))
    if type_name not in _SCALAR_KEY_TYPES or not isinstance(raw, str):
        raise CursorError(
            f"Invalid pagination cursor: bad value for key attribute {name}"
        )
    if type_name == "B":
        try:
            return {"B": base64.b64decode(raw.encode("ascii"), validate=True)}
        except (binascii.Error, UnicodeError) as e:
            raise CursorError("Invalid pagination cursor") from e
    return {type_name: raw}
