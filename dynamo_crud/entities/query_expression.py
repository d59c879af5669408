from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from dynamo_crud.constants import PK_NAME, SK_NAME, KeyComparator
from dynamo_crud.data.shared_exceptions import EntityValidationError


@dataclass
class QueryExpression:
    """
    Structured key condition for a query.

    Partition key equality plus an optional sort key comparison. Sort key
    values are sent as ``S`` unless ``sk_is_number`` is set. ``BETWEEN`` needs
    both ``sk_value`` and ``sk_value_end``.

    Attributes:
        pk_value: Partition key value to match.
        sk_comparator: Optional sort key comparator.
        sk_value: Sort key operand.
        sk_value_end: Upper bound for ``BETWEEN``.
        index_name: Secondary index to query instead of the table.
        pk_name: Partition key attribute name of the table or index.
        sk_name: Sort key attribute name of the table or index.
        sk_is_number: Send sort key operands as numbers.
        filter_expression: Optional filter applied after the key condition.
        filter_names: Placeholder names used in ``filter_expression``.
        filter_values: Placeholder values used in ``filter_expression``.
        scan_index_forward: Ascending sort key order when true.
    """

    pk_value: str
    sk_comparator: Optional[Union[KeyComparator, str]] = None
    sk_value: Any = None
    sk_value_end: Any = None
    index_name: Optional[str] = None
    pk_name: str = PK_NAME
    sk_name: str = SK_NAME
    sk_is_number: bool = False
    filter_expression: Optional[str] = None
    filter_names: Dict[str, str] = field(default_factory=dict)
    filter_values: Dict[str, Any] = field(default_factory=dict)
    scan_index_forward: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.pk_value, str) or not self.pk_value.strip():
            raise EntityValidationError("pk_value must be a non-empty string")

        if self.sk_comparator is None:
            if self.sk_value is not None:
                raise EntityValidationError(
                    "sk_value given without an sk_comparator"
                )
            return

        try:
            self.sk_comparator = KeyComparator(self.sk_comparator)
        except ValueError as e:
            raise EntityValidationError(
                f"Unsupported sort key comparator: {self.sk_comparator}"
            ) from e

        if self.sk_value is None:
            raise EntityValidationError(
                f"sk_value is required for comparator {self.sk_comparator.value}"
            )
        if self.sk_comparator is KeyComparator.BETWEEN:
            if self.sk_value_end is None:
                raise EntityValidationError("BETWEEN requires sk_value_end")
        if (
            self.sk_comparator is KeyComparator.BEGINS_WITH
            and self.sk_is_number
        ):
            raise EntityValidationError(
                "begins_with cannot be used on a numeric sort key"
            )

    @property
    def key_attribute_names(self) -> list:
        """Attributes making up the keys this query's cursors can carry."""
        names = [PK_NAME, SK_NAME]
        for name in (self.pk_name, self.sk_name):
            if name not in names:
                names.append(name)
        return names

    def _sk_operand(self, value: Any) -> Dict[str, str]:
        if self.sk_is_number:
            return {"N": str(value)}
        return {"S": str(value)}

    def build(self) -> Dict[str, Any]:
        """Render ``Query`` keyword arguments, minus table name and paging."""
        names = {"#pk": self.pk_name}
        values: Dict[str, Any] = {":pk": {"S": self.pk_value}}
        condition = "#pk = :pk"

        comparator = self.sk_comparator
        if comparator is not None:
            names["#sk"] = self.sk_name
            values[":sk"] = self._sk_operand(self.sk_value)
            if comparator is KeyComparator.BETWEEN:
                values[":sk_end"] = self._sk_operand(self.sk_value_end)
                condition += " AND #sk BETWEEN :sk AND :sk_end"
            elif comparator is KeyComparator.BEGINS_WITH:
                condition += " AND begins_with(#sk, :sk)"
            else:
                condition += f" AND #sk {comparator.value} :sk"

        kwargs: Dict[str, Any] = {
            "KeyConditionExpression": condition,
            "ScanIndexForward": self.scan_index_forward,
        }
        if self.index_name:
            kwargs["IndexName"] = self.index_name

        if self.filter_expression:
            clashes = (set(self.filter_names) & set(names)) | (
                set(self.filter_values) & set(values)
            )
            if clashes:
                raise EntityValidationError(
                    "Filter placeholders collide with key condition "
                    f"placeholders: {sorted(clashes)}"
                )
            kwargs["FilterExpression"] = self.filter_expression
            names.update(self.filter_names)
            values.update(self.filter_values)

        kwargs["ExpressionAttributeNames"] = names
        kwargs["ExpressionAttributeValues"] = values
        return kwargs
