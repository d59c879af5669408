from dataclasses import dataclass, field
from typing import Any, Dict, List

from dynamo_crud.constants import PK_NAME, SK_NAME
from dynamo_crud.entities.base import DynamoDBEntity
from dynamo_crud.entities.transaction import ItemKey
from dynamo_crud.entities.unique_field import UniqueField
from dynamo_crud.entities.util import (
    _repr_str,
    assert_type,
    from_attribute_value,
    to_attribute_value,
)


@dataclass(eq=True, unsafe_hash=False)
class Record(DynamoDBEntity):
    """
    Generic record addressed by PK and SK.

    Attributes hold plain Python values (``str``, ``int``, ``float``,
    ``Decimal``, ``bool``, ``bytes``, lists, sets and dicts) or low-level
    AttributeValue dicts, which pass through unchanged.

    Attributes:
        pk (str): Partition key.
        sk (str): Sort key.
        attributes (dict): Non-key attributes.
        unique (list[UniqueField]): Attributes whose values must be unique.
    """

    pk: str
    sk: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    unique: List[UniqueField] = field(default_factory=list)

    def __post_init__(self) -> None:
        assert_type("pk", self.pk, str, ValueError)
        assert_type("sk", self.sk, str, ValueError)
        if not self.pk.strip() or not self.sk.strip():
            raise ValueError("pk and sk must be non-empty")
        assert_type("attributes", self.attributes, dict, ValueError)
        for name in (PK_NAME, SK_NAME):
            if name in self.attributes:
                raise ValueError(f"{name} must be given as a key, not an attribute")
        for declaration in self.unique:
            assert_type("unique", declaration, UniqueField, ValueError)

    @property
    def key(self) -> Dict[str, Any]:
        return ItemKey(self.pk, self.sk).key

    def to_item(self) -> Dict[str, Any]:
        item = self.key
        for name, value in self.attributes.items():
            if value is None:
                continue
            item[name] = to_attribute_value(value)
        return item

    def unique_fields(self) -> List[UniqueField]:
        return list(self.unique)

    def __repr__(self) -> str:
        return (
            "Record("
            f"pk={_repr_str(self.pk)}, "
            f"sk={_repr_str(self.sk)}, "
            f"attributes={self.attributes!r}"
            ")"
        )


def item_to_record(item: Dict[str, Any]) -> Record:
    """
    Converts a DynamoDB item to a Record object.

    Args:
        item (dict): The DynamoDB item to convert.

    Returns:
        Record: The Record object represented by the DynamoDB item.

    Raises:
        ValueError: When the item is missing its key attributes.
    """
    missing = DynamoDBEntity.validate_keys(item, {PK_NAME, SK_NAME})
    if missing:
        raise ValueError(f"Invalid item format\nmissing keys: {missing}")
    try:
        return Record(
            pk=item[PK_NAME]["S"],
            sk=item[SK_NAME]["S"],
            attributes={
                name: from_attribute_value(value)
                for name, value in item.items()
                if name not in (PK_NAME, SK_NAME)
            },
        )
    except KeyError as e:
        raise ValueError(f"Error converting item to Record: {e}") from e
