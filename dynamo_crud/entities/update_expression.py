"""
Typed builder for DynamoDB update expressions.

Callers compose ``SET``, ``REMOVE``, ``ADD`` and ``DELETE`` actions instead of
writing the expression string themselves, so the data layer can see exactly
which attributes an update touches.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from dynamo_crud.constants import PK_NAME, SK_NAME
from dynamo_crud.data.shared_exceptions import EntityValidationError
from dynamo_crud.entities.util import to_attribute_value

_NAME_PREFIX = "#upd"
_VALUE_PREFIX = ":upd"


@dataclass(frozen=True)
class SetAction:
    attribute_name: str
    value: Any
    if_not_exists: bool = False


@dataclass(frozen=True)
class RemoveAction:
    attribute_name: str


@dataclass(frozen=True)
class AddAction:
    attribute_name: str
    delta: Any


@dataclass(frozen=True)
class DeleteAction:
    attribute_name: str
    elements: Any


UpdateAction = Union[SetAction, RemoveAction, AddAction, DeleteAction]


class UpdateExpression:
    """
    Chainable collection of update actions.

    Example::

        expression = (
            UpdateExpression()
            .set("Email", "a@b.com")
            .remove("Nickname")
            .add("LoginCount", 1)
        )

    Each attribute may appear in at most one action. Key attributes cannot be
    updated.
    """

    def __init__(self, actions: Optional[Iterable[UpdateAction]] = None):
        self._actions: List[UpdateAction] = []
        for action in actions or []:
            self._append(action)

    def set(
        self, attribute_name: str, value: Any, if_not_exists: bool = False
    ) -> "UpdateExpression":
        self._append(SetAction(attribute_name, value, if_not_exists))
        return self

    def remove(self, *attribute_names: str) -> "UpdateExpression":
        for attribute_name in attribute_names:
            self._append(RemoveAction(attribute_name))
        return self

    def add(self, attribute_name: str, delta: Any) -> "UpdateExpression":
        self._append(AddAction(attribute_name, delta))
        return self

    def delete(self, attribute_name: str, elements: Any) -> "UpdateExpression":
        self._append(DeleteAction(attribute_name, elements))
        return self

    def copy(self) -> "UpdateExpression":
        return UpdateExpression(self._actions)

    @property
    def actions(self) -> Tuple[UpdateAction, ...]:
        return tuple(self._actions)

    @property
    def attribute_names(self) -> List[str]:
        return [a.attribute_name for a in self._actions]

    def touches(self, attribute_name: str) -> bool:
        return attribute_name in self.attribute_names

    def set_values(self) -> Dict[str, Dict[str, Any]]:
        """AttributeValues assigned by ``SET`` actions, keyed by attribute."""
        return {
            a.attribute_name: to_attribute_value(a.value)
            for a in self._actions
            if isinstance(a, SetAction)
        }

    def removed_attributes(self) -> List[str]:
        return [
            a.attribute_name
            for a in self._actions
            if isinstance(a, RemoveAction)
        ]

    def conditional_set_attributes(self) -> List[str]:
        """Attributes assigned through ``if_not_exists``."""
        return [
            a.attribute_name
            for a in self._actions
            if isinstance(a, SetAction) and a.if_not_exists
        ]

    def incremental_attributes(self) -> List[str]:
        """Attributes targeted by ``ADD`` or ``DELETE`` actions."""
        return [
            a.attribute_name
            for a in self._actions
            if isinstance(a, (AddAction, DeleteAction))
        ]

    def build(self) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        """
        Render the expression string and its placeholder maps.

        Returns:
            ``(UpdateExpression, ExpressionAttributeNames,
            ExpressionAttributeValues)``. The values map is empty when the
            expression only removes attributes.

        Raises:
            EntityValidationError: If no actions were added.
        """
        if not self._actions:
            raise EntityValidationError("UpdateExpression has no actions")

        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}
        set_parts: List[str] = []
        remove_parts: List[str] = []
        add_parts: List[str] = []
        delete_parts: List[str] = []

        for index, action in enumerate(self._actions):
            name = f"{_NAME_PREFIX}{index}"
            names[name] = action.attribute_name
            value = f"{_VALUE_PREFIX}{index}"

            if isinstance(action, SetAction):
                values[value] = to_attribute_value(action.value)
                if action.if_not_exists:
                    set_parts.append(f"{name} = if_not_exists({name}, {value})")
                else:
                    set_parts.append(f"{name} = {value}")
            elif isinstance(action, RemoveAction):
                remove_parts.append(name)
            elif isinstance(action, AddAction):
                values[value] = to_attribute_value(action.delta)
                add_parts.append(f"{name} {value}")
            else:
                values[value] = to_attribute_value(action.elements)
                delete_parts.append(f"{name} {value}")

        clauses = []
        for keyword, parts in (
            ("SET", set_parts),
            ("REMOVE", remove_parts),
            ("ADD", add_parts),
            ("DELETE", delete_parts),
        ):
            if parts:
                clauses.append(f"{keyword} {', '.join(parts)}")

        return " ".join(clauses), names, values

    def _append(self, action: UpdateAction) -> None:
        attribute_name = action.attribute_name
        if not isinstance(attribute_name, str) or not attribute_name.strip():
            raise EntityValidationError(
                "Update attribute names must be non-empty strings"
            )
        if attribute_name in (PK_NAME, SK_NAME):
            raise EntityValidationError(
                f"Key attribute {attribute_name} cannot be updated"
            )
        if self.touches(attribute_name):
            raise EntityValidationError(
                f"Attribute {attribute_name} appears in more than one action"
            )
        if isinstance(action, (AddAction, DeleteAction)):
            payload = (
                action.delta if isinstance(action, AddAction) else action.elements
            )
            if payload is None:
                raise EntityValidationError(
                    f"{type(action).__name__} on {attribute_name} needs a value"
                )
        self._actions.append(action)

    def __len__(self) -> int:
        return len(self._actions)

    def __repr__(self) -> str:
        return f"UpdateExpression(actions={self._actions!r})"
