"""Shared DynamoDB utility functions to reduce code duplication."""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from dynamo_crud.constants import (
    ACTOR_ATTRIBUTE,
    AUDIT_ATTRIBUTES,
    CREATED_AT_ATTRIBUTE,
    ORIGIN_ATTRIBUTE,
    PK_NAME,
    SK_NAME,
    UPDATED_AT_ATTRIBUTE,
)
from dynamo_crud.data.shared_exceptions import EntityValidationError


def create_key(pk: str, sk: str) -> Dict[str, Dict[str, str]]:
    """
    Create a DynamoDB key structure.

    Args:
        pk: Partition key value
        sk: Sort key value

    Returns:
        Dict with PK and SK in DynamoDB format

    Raises:
        EntityValidationError: If either key is missing or blank
    """
    if not isinstance(pk, str) or not pk.strip():
        raise EntityValidationError("pk cannot be empty")
    if not isinstance(sk, str) or not sk.strip():
        raise EntityValidationError("sk cannot be empty")
    return {PK_NAME: {"S": pk}, SK_NAME: {"S": sk}}


def merge_projection(projection: Optional[Iterable[str]]) -> Optional[List[str]]:
    """
    Append the audit attributes to an explicit projection.

    Order is preserved and duplicates are dropped. ``None`` or an empty
    projection means "every attribute" and is returned as ``None``.
    """
    if not projection:
        return None

    merged: List[str] = []
    for name in list(projection) + list(AUDIT_ATTRIBUTES):
        if not isinstance(name, str) or not name.strip():
            raise EntityValidationError(
                "Projection attribute names must be non-empty strings"
            )
        if name not in merged:
            merged.append(name)
    return merged


def build_projection_expression(
    attribute_names: Iterable[str], prefix: str = "#p"
) -> Tuple[str, Dict[str, str]]:
    """Render a ProjectionExpression with a placeholder for every name."""
    names = {f"{prefix}{i}": name for i, name in enumerate(attribute_names)}
    return ", ".join(names), names


def projection_kwargs(projection: Optional[Iterable[str]]) -> Dict[str, Any]:
    """Request kwargs projecting ``projection`` plus the audit attributes."""
    merged = merge_projection(projection)
    if merged is None:
        return {}
    expression, names = build_projection_expression(merged)
    return {
        "ProjectionExpression": expression,
        "ExpressionAttributeNames": names,
    }


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def stamp_audit(
    item: Dict[str, Any],
    actor: Optional[str] = None,
    origin: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Return a copy of ``item`` carrying the audit attributes.

    ``UpdatedAt`` is always refreshed. ``CreatedAt``, ``Actor`` and ``Origin``
    are only filled in when the item does not already have them.
    """
    now = utc_timestamp()
    stamped = dict(item)
    stamped[UPDATED_AT_ATTRIBUTE] = {"S": now}
    stamped.setdefault(CREATED_AT_ATTRIBUTE, {"S": now})
    if actor:
        stamped.setdefault(ACTOR_ATTRIBUTE, {"S": actor})
    if origin:
        stamped.setdefault(ORIGIN_ATTRIBUTE, {"S": origin})
    return stamped
