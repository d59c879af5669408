"""
Unique secondary index emulation.

DynamoDB has no unique secondary indexes. Uniqueness of an attribute is
emulated with a shadow ``UniqueIndexRecord`` whose partition key encodes the
attribute value; writing it with ``attribute_not_exists(PK)`` inside the same
transaction as the owning record fails when another record already claims
the value.

The owning record keeps a manifest of every descriptor it holds in the
``UniqueFields`` attribute, as ``attr;;;field;;;indexValue`` strings. Updates
and deletes name only the attributes they touch, so the manifest is what
tells the data layer which shadow records to retire.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple

from dynamo_crud.constants import (
    PK_NAME,
    PK_SEPARATOR,
    SK_NAME,
    UNIQUE_FIELD_SEPARATOR,
    UNIQUE_FIELDS_ATTRIBUTE,
    UNIQUE_KEY_MARKER,
)
from dynamo_crud.data.shared_exceptions import EntityValidationError
from dynamo_crud.entities.base import DynamoDBEntity
from dynamo_crud.entities.util import (
    _repr_str,
    attribute_value_to_string,
    validate_positive_int,
)

logger = logging.getLogger(__name__)

_INDEX_MARKER = f"{PK_SEPARATOR}{UNIQUE_KEY_MARKER}{PK_SEPARATOR}"


@dataclass(frozen=True)
class UniqueField:
    """
    Declaration of one unique attribute on a domain type.

    Attributes
    ----------
    attribute_name : str
        Name of the item attribute whose value must be unique.
    pk_prefix_segments : int
        How many leading ``#``-delimited partition key segments scope the
        uniqueness. ``2`` on ``APP#SVC#TENANT#42`` makes the value unique
        across every record under ``APP#SVC``.
    field_name : str, optional
        Name used inside the index key. Defaults to ``attribute_name``.
    """

    attribute_name: str
    pk_prefix_segments: int
    field_name: Optional[str] = None

    @property
    def index_field_name(self) -> str:
        return self.field_name or self.attribute_name


@dataclass(frozen=True)
class UniqueFieldDescriptor:
    """A unique value claimed by one owning record."""

    attribute_name: str
    field_name: str
    field_index_value: str
    prior_field_index_value: Optional[str] = None

    @property
    def changed(self) -> bool:
        return (
            self.prior_field_index_value is not None
            and self.prior_field_index_value != self.field_index_value
        )

    @property
    def pk_prefix(self) -> str:
        prefix, _, _ = self.field_index_value.partition(_INDEX_MARKER)
        return prefix

    def to_manifest_entry(self) -> str:
        return UNIQUE_FIELD_SEPARATOR.join(
            (self.attribute_name, self.field_name, self.field_index_value)
        )

    @classmethod
    def from_manifest_entry(cls, entry: str) -> "UniqueFieldDescriptor":
        parts = entry.split(UNIQUE_FIELD_SEPARATOR)
        if len(parts) != 3 or not all(p.strip() for p in parts):
            raise EntityValidationError(
                f"Invalid unique field manifest entry: {entry}"
            )
        return cls(
            attribute_name=parts[0],
            field_name=parts[1],
            field_index_value=parts[2],
        )

    def __repr__(self) -> str:
        return (
            "UniqueFieldDescriptor("
            f"attribute_name={_repr_str(self.attribute_name)}, "
            f"field_name={_repr_str(self.field_name)}, "
            f"field_index_value={_repr_str(self.field_index_value)}, "
            f"prior_field_index_value={_repr_str(self.prior_field_index_value)}"
            ")"
        )


@dataclass(eq=True, unsafe_hash=True)
class UniqueIndexRecord(DynamoDBEntity):
    """Sentinel row occupying one unique value. Carries no payload."""

    field_index_value: str

    def __post_init__(self) -> None:
        if (
            not isinstance(self.field_index_value, str)
            or not self.field_index_value.strip()
        ):
            raise ValueError("field_index_value must be a non-empty string")

    @property
    def key(self) -> Dict[str, Any]:
        return {
            PK_NAME: {"S": self.field_index_value},
            SK_NAME: {"S": UNIQUE_KEY_MARKER},
        }

    def to_item(self) -> Dict[str, Any]:
        return dict(self.key)

    def __repr__(self) -> str:
        return (
            "UniqueIndexRecord("
            f"field_index_value={_repr_str(self.field_index_value)}"
            ")"
        )


def build_field_index_value(pk_prefix: str, field_name: str, value: str) -> str:
    """``<pkPrefix>#UniqueKey#<FIELDNAME>#<VALUE>`` with name and value upper."""
    return (
        f"{pk_prefix}{_INDEX_MARKER}{field_name.upper()}"
        f"{PK_SEPARATOR}{value.upper()}"
    )


def pk_prefix_of(pk_value: str, segments: int) -> str:
    """
    Return the first ``segments`` ``#``-delimited parts of ``pk_value``.

    Raises:
        EntityValidationError: If the key has fewer segments than requested.
    """
    parts = pk_value.split(PK_SEPARATOR)
    if len(parts) < segments:
        raise EntityValidationError(
            f"Partition key {pk_value} has {len(parts)} segments, "
            f"fewer than the {segments} required for its unique fields"
        )
    return PK_SEPARATOR.join(parts[:segments])


def describe_unique(entity: Any) -> Dict[str, UniqueFieldDescriptor]:
    """
    Compute the unique field descriptors an entity claims.

    Entities without a ``unique_fields()`` method claim nothing. Declared
    attributes that are absent or empty on the item claim nothing either.

    Raises:
        EntityValidationError: If a prefix segment count is not a positive
            integer, the partition key is too short, or the item carries a
            ``UniqueFields`` value that is not a manifest list.
    """
    declare = getattr(entity, "unique_fields", None)
    if declare is None:
        return {}

    declarations = declare() or []
    if not declarations:
        return {}

    item = entity.to_item()
    manifest = item.get(UNIQUE_FIELDS_ATTRIBUTE)
    if manifest is not None and "L" not in manifest and "NULL" not in manifest:
        raise EntityValidationError(
            f"{UNIQUE_FIELDS_ATTRIBUTE} is reserved for the unique field "
            "manifest and must be a list"
        )

    pk_value = item.get(PK_NAME, {}).get("S")
    if not pk_value:
        raise EntityValidationError("PK is required to describe unique fields")

    descriptors: Dict[str, UniqueFieldDescriptor] = {}
    for declaration in declarations:
        try:
            validate_positive_int(
                "pk_prefix_segments", declaration.pk_prefix_segments
            )
        except ValueError as e:
            raise EntityValidationError(
                f"Unique field {declaration.attribute_name}: {e}"
            ) from e

        if declaration.attribute_name == UNIQUE_FIELDS_ATTRIBUTE:
            raise EntityValidationError(
                f"{UNIQUE_FIELDS_ATTRIBUTE} cannot itself be unique"
            )

        rendered = attribute_value_to_string(
            item.get(declaration.attribute_name)
        )
        if rendered is None:
            continue

        prefix = pk_prefix_of(pk_value, declaration.pk_prefix_segments)
        descriptors[declaration.attribute_name] = UniqueFieldDescriptor(
            attribute_name=declaration.attribute_name,
            field_name=declaration.index_field_name,
            field_index_value=build_field_index_value(
                prefix, declaration.index_field_name, rendered
            ),
        )

    return descriptors


def reconcile(
    old: Dict[str, UniqueFieldDescriptor],
    incoming: Dict[str, Dict[str, Any]],
) -> Tuple[Dict[str, UniqueFieldDescriptor], Dict[str, UniqueFieldDescriptor]]:
    """
    Diff a persisted manifest against incoming attribute values.

    Args:
        old: The manifest currently stored on the owning record.
        incoming: New AttributeValues keyed by attribute name. Attributes
            not in ``old`` are ignored.

    Returns:
        ``(changed, full)``. ``changed`` holds descriptors whose index value
        differs from the stored one, with ``prior_field_index_value`` set.
        ``full`` enumerates every descriptor of ``old``, changed or not.

    Raises:
        EntityValidationError: If an incoming value for a unique attribute
            is empty or not a scalar.
    """
    changed: Dict[str, UniqueFieldDescriptor] = {}
    full: Dict[str, UniqueFieldDescriptor] = {}

    for attribute_name, descriptor in old.items():
        if attribute_name not in incoming:
            full[attribute_name] = descriptor
            continue

        rendered = attribute_value_to_string(incoming[attribute_name])
        if rendered is None:
            raise EntityValidationError(
                f"Unique attribute {attribute_name} must be set to a "
                "non-empty string, number, boolean or binary value"
            )

        new_index_value = build_field_index_value(
            descriptor.pk_prefix, descriptor.field_name, rendered
        )
        if new_index_value == descriptor.field_index_value:
            full[attribute_name] = descriptor
            continue

        updated = replace(
            descriptor,
            field_index_value=new_index_value,
            prior_field_index_value=descriptor.field_index_value,
        )
        changed[attribute_name] = updated
        full[attribute_name] = updated

    return changed, full


def retire(
    old: Dict[str, UniqueFieldDescriptor], removed_attributes: Iterable[str]
) -> Tuple[Dict[str, UniqueFieldDescriptor], Dict[str, UniqueFieldDescriptor]]:
    """Split ``old`` into ``(retired, remaining)`` by removed attribute."""
    removed = set(removed_attributes)
    if UNIQUE_FIELDS_ATTRIBUTE in removed:
        return dict(old), {}

    retired = {a: d for a, d in old.items() if a in removed}
    remaining = {a: d for a, d in old.items() if a not in removed}
    return retired, remaining


def manifest_to_attribute_value(
    descriptors: Dict[str, UniqueFieldDescriptor],
) -> Dict[str, Any]:
    """Serialize descriptors into the ``UniqueFields`` list AttributeValue."""
    return {
        "L": [
            {"S": d.to_manifest_entry()}
            for d in sorted(descriptors.values(), key=lambda d: d.attribute_name)
        ]
    }


def manifest_from_attribute_value(
    value: Optional[Dict[str, Any]],
) -> Dict[str, UniqueFieldDescriptor]:
    """Parse a ``UniqueFields`` AttributeValue, skipping corrupt entries."""
    if not value:
        return {}

    if "L" in value:
        entries: List[str] = [e.get("S", "") for e in value["L"]]
    elif "SS" in value:
        entries = list(value["SS"])
    else:
        return {}

    descriptors: Dict[str, UniqueFieldDescriptor] = {}
    for entry in entries:
        try:
            descriptor = UniqueFieldDescriptor.from_manifest_entry(entry)
        except EntityValidationError as e:
            logger.warning(f"Skipping unique field manifest entry: {e}")
            continue
        descriptors[descriptor.attribute_name] = descriptor
    return descriptors
