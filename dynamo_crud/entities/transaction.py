from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dynamo_crud.constants import PK_NAME, SK_NAME
from dynamo_crud.entities.base import DynamoDBEntity
from dynamo_crud.entities.update_expression import UpdateExpression
from dynamo_crud.entities.util import _repr_str


@dataclass(eq=True, unsafe_hash=True)
class ItemKey(DynamoDBEntity):
    """Primary key of one record."""

    pk: str
    sk: str

    def __post_init__(self) -> None:
        for name, value in (("pk", self.pk), ("sk", self.sk)):
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"{name} must be a non-empty string")

    @property
    def key(self) -> Dict[str, Any]:
        return {PK_NAME: {"S": self.pk}, SK_NAME: {"S": self.sk}}

    @classmethod
    def from_key(cls, key: Dict[str, Any]) -> "ItemKey":
        return cls(pk=key[PK_NAME]["S"], sk=key[SK_NAME]["S"])

    def __repr__(self) -> str:
        return f"ItemKey(pk={_repr_str(self.pk)}, sk={_repr_str(self.sk)})"


@dataclass
class UpdateItemInput:
    """One keyed update inside a composed transaction."""

    pk: str
    sk: str
    expression: UpdateExpression
    condition_expression: Optional[str] = None
    expression_attribute_names: Dict[str, str] = field(default_factory=dict)
    expression_attribute_values: Dict[str, Any] = field(default_factory=dict)

    @property
    def item_key(self) -> ItemKey:
        return ItemKey(self.pk, self.sk)


@dataclass
class ConditionCheckInput:
    """A condition on a record the transaction does not write."""

    pk: str
    sk: str
    condition_expression: str
    expression_attribute_names: Dict[str, str] = field(default_factory=dict)
    expression_attribute_values: Dict[str, Any] = field(default_factory=dict)

    @property
    def item_key(self) -> ItemKey:
        return ItemKey(self.pk, self.sk)


@dataclass
class TransactionWrites:
    """
    Puts, updates, deletes and condition checks for one table inside
    ``transaction_set``.

    Puts are unconditional unless ``put_condition`` is given. A failed
    condition check cancels the whole transaction. ``table_name``
    overrides the connection's table for this group only.
    """

    puts: List[Any] = field(default_factory=list)
    updates: List[UpdateItemInput] = field(default_factory=list)
    deletes: List[ItemKey] = field(default_factory=list)
    condition_checks: List[ConditionCheckInput] = field(default_factory=list)
    put_condition: Optional[str] = None
    table_name: Optional[str] = None

    def __len__(self) -> int:
        return (
            len(self.puts)
            + len(self.updates)
            + len(self.deletes)
            + len(self.condition_checks)
        )


@dataclass
class TransactionReads:
    """Keys to read inside ``transaction_get``."""

    keys: List[ItemKey] = field(default_factory=list)
    table_name: Optional[str] = None
    projection: Optional[List[str]] = None

    def __len__(self) -> int:
        return len(self.keys)
