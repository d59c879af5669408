from typing import Any, Callable, Dict, List, Optional, TypeVar

from dynamo_crud.constants import (
    CREATE_ONLY_CONDITION,
    MUST_EXIST_CONDITION,
    OperationClass,
)
from dynamo_crud.data._transaction import (
    TransactWriteBuilder,
    _Transaction,
    update_request,
    with_condition,
)
from dynamo_crud.entities.update_expression import UpdateExpression
from dynamo_crud.utils.dynamo_helpers import create_key, projection_kwargs

T = TypeVar("T")


class _Record(_Transaction):
    """
    A class used to read and write single records.

    Writes to records that declare unique fields, or that still carry a
    unique field manifest, run as transactions together with their unique
    index records. Everything else is a single request.

    Methods
    -------
    get(pk, sk, consistent_read, projection, converter)
        Reads one record.
    set(entity, condition_expression, ...)
        Puts one record, creating it by default.
    update(pk, sk, expression, condition_expression, ...)
        Applies an UpdateExpression to one record.
    delete(pk, sk, condition_expression, ...)
        Deletes one record.
    """

    def get(
        self,
        pk: str,
        sk: str,
        consistent_read: bool = False,
        projection: Optional[List[str]] = None,
        converter: Optional[Callable[[Dict[str, Any]], T]] = None,
    ) -> Optional[Any]:
        """
        Read one record.

        Args:
            pk: Partition key.
            sk: Sort key.
            consistent_read: Use a strongly consistent read.
            projection: Attributes to return; audit attributes are always
                added.
            converter: Applied to the item before it is returned, e.g.
                ``item_to_record``.

        Returns:
            The item (or its converted form), or ``None`` if no record exists.

        Raises:
            EntityValidationError: If pk or sk is empty.
        """
        key = create_key(pk, sk)
        snapshot = self._snapshot()
        response = self._call(
            snapshot,
            "get",
            OperationClass.READ,
            lambda client: client.get_item(
                TableName=snapshot.table_name,
                Key=key,
                ConsistentRead=consistent_read,
                **projection_kwargs(projection),
            ),
        )
        if not response or "Item" not in response:
            return None
        item = response["Item"]
        return converter(item) if converter else item

    def set(
        self,
        entity: Any,
        condition_expression: Optional[str] = CREATE_ONLY_CONDITION,
        expression_attribute_names: Optional[Dict[str, str]] = None,
        expression_attribute_values: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Put one record.

        By default the put only succeeds when no record with the same key
        exists. Pass ``condition_expression=None`` to overwrite
        unconditionally.

        Raises:
            EntityValidationError: If the entity is invalid.
            UniqueConflictError: If a unique value is already claimed.
            ConflictError: If the condition failed.
        """
        snapshot = self._snapshot()
        plan = self._plan_set(snapshot, entity, condition_expression)

        if plan.transactional:
            builder = TransactWriteBuilder(snapshot.table_name)
            builder.add_plan(
                plan,
                condition_expression,
                expression_attribute_names,
                expression_attribute_values,
            )
            self._submit_transaction(snapshot, builder, "set")
            return

        request = with_condition(
            {"TableName": snapshot.table_name, "Item": plan.item},
            condition_expression,
            expression_attribute_names,
            expression_attribute_values,
        )
        self._call(
            snapshot,
            "set",
            OperationClass.WRITE,
            lambda client: client.put_item(**request),
        )

    def update(
        self,
        pk: str,
        sk: str,
        expression: UpdateExpression,
        condition_expression: Optional[str] = None,
        expression_attribute_names: Optional[Dict[str, str]] = None,
        expression_attribute_values: Optional[Dict[str, Any]] = None,
        return_values: str = "NONE",
    ) -> Optional[Dict[str, Any]]:
        """
        Apply ``expression`` to one record.

        When the update changes or removes a unique attribute, the record and
        its unique index records are updated in one transaction that also
        requires the record to exist unless a condition is given.

        Returns:
            The ``Attributes`` DynamoDB returned for ``return_values``, or
            ``None``. Transactional updates never return attributes.

        Raises:
            EntityValidationError: If the expression is invalid or uses ADD or
                DELETE on a unique attribute.
            UniqueConflictError: If the new unique value is already claimed.
            ConflictError: If the condition failed.
        """
        snapshot = self._snapshot()
        plan = self._plan_update(snapshot, pk, sk, expression)

        if plan.transactional:
            builder = TransactWriteBuilder(snapshot.table_name)
            builder.add_plan(
                plan,
                condition_expression or MUST_EXIST_CONDITION,
                expression_attribute_names,
                expression_attribute_values,
            )
            self._submit_transaction(snapshot, builder, "update")
            return None

        request = update_request(
            snapshot.table_name,
            plan.key,
            plan.expression,
            condition_expression,
            expression_attribute_names,
            expression_attribute_values,
        )
        if return_values != "NONE":
            request["ReturnValues"] = return_values
        response = self._call(
            snapshot,
            "update",
            OperationClass.WRITE,
            lambda client: client.update_item(**request),
        )
        if not response:
            return None
        return response.get("Attributes")

    def delete(
        self,
        pk: str,
        sk: str,
        condition_expression: Optional[str] = None,
        expression_attribute_names: Optional[Dict[str, str]] = None,
        expression_attribute_values: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Delete one record and every unique index record it owns.

        Raises:
            EntityValidationError: If pk or sk is empty.
            ConflictError: If the condition failed.
        """
        snapshot = self._snapshot()
        plan = self._plan_delete(snapshot, pk, sk)

        if plan.transactional:
            builder = TransactWriteBuilder(snapshot.table_name)
            builder.add_plan(
                plan,
                condition_expression,
                expression_attribute_names,
                expression_attribute_values,
            )
            self._submit_transaction(snapshot, builder, "delete")
            return

        request = with_condition(
            {"TableName": snapshot.table_name, "Key": plan.key},
            condition_expression,
            expression_attribute_names,
            expression_attribute_values,
        )
        self._call(
            snapshot,
            "delete",
            OperationClass.WRITE,
            lambda client: client.delete_item(**request),
        )
