from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterable,
    List,
    Protocol,
    runtime_checkable,
)

if TYPE_CHECKING:
    from dynamo_crud.entities.unique_field import UniqueField


@dataclass(eq=True, unsafe_hash=False)
class DynamoDBEntity:
    """Base dataclass for DynamoDB entities."""

    @staticmethod
    def validate_keys(item: Dict[str, Any], required_keys: Iterable[str]) -> set[str]:
        """Return any missing required keys."""
        return set(required_keys) - set(item.keys())


@runtime_checkable
class DynamoEntity(Protocol):
    """Protocol for objects that can be converted to DynamoDB items."""

    def to_item(self) -> Dict[str, Any]:
        """Convert entity to DynamoDB item format."""
        ...


@runtime_checkable
class UniqueFieldsProvider(Protocol):
    """
    Protocol for entities that declare unique attributes.

    ``unique_fields()`` replaces tag discovery: the entity states which of
    its attributes must be unique and how many leading partition-key
    segments scope that uniqueness.
    """

    def to_item(self) -> Dict[str, Any]:
        ...

    def unique_fields(self) -> List["UniqueField"]:
        ...
