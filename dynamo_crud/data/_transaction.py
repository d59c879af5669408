"""
Transactional write composition and transactional reads.
"""

import logging
from functools import partial
from typing import Any, Dict, List, Optional, Set, Tuple

from dynamo_crud.constants import (
    CREATE_ONLY_CONDITION,
    MAX_TRANSACTION_GET_KEYS,
    MAX_TRANSACTION_ITEMS,
    MUST_EXIST_CONDITION,
    OperationClass,
)
from dynamo_crud.data._base import TransactWriteItemTypeDef
from dynamo_crud.data._unique_fields import WritePlan, _UniqueFields
from dynamo_crud.data.base_operations import (
    ConnectionSnapshot,
    classify_transaction_error,
)
from dynamo_crud.data.shared_exceptions import (
    EntityValidationError,
    TransactionLimitError,
)
from dynamo_crud.entities.results import TransactionGetResult
from dynamo_crud.entities.transaction import (
    ConditionCheckInput,
    ItemKey,
    TransactionReads,
    TransactionWrites,
    UpdateItemInput,
)
from dynamo_crud.entities.unique_field import UniqueIndexRecord
from dynamo_crud.entities.update_expression import UpdateExpression
from dynamo_crud.utils.dynamo_helpers import projection_kwargs

logger = logging.getLogger(__name__)


def with_condition(
    request: Dict[str, Any],
    condition_expression: Optional[str],
    names: Optional[Dict[str, str]],
    values: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    """Merge a caller condition and its placeholders into ``request``."""
    if not condition_expression:
        if names or values:
            raise EntityValidationError(
                "Expression attribute names or values given without a "
                "condition expression"
            )
        return request

    request["ConditionExpression"] = condition_expression
    for field_name, extra in (
        ("ExpressionAttributeNames", names),
        ("ExpressionAttributeValues", values),
    ):
        if not extra:
            continue
        existing = request.setdefault(field_name, {})
        clashes = set(existing) & set(extra)
        if clashes:
            raise EntityValidationError(
                f"Condition placeholders collide with update placeholders: "
                f"{sorted(clashes)}"
            )
        existing.update(extra)
    return request


def update_request(
    table_name: str,
    key: Dict[str, Any],
    expression: UpdateExpression,
    condition_expression: Optional[str] = None,
    names: Optional[Dict[str, str]] = None,
    values: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Keyword arguments shared by ``update_item`` and a transact ``Update``."""
    update, update_names, update_values = expression.build()
    request: Dict[str, Any] = {
        "TableName": table_name,
        "Key": key,
        "UpdateExpression": update,
        "ExpressionAttributeNames": update_names,
    }
    if update_values:
        request["ExpressionAttributeValues"] = update_values
    return with_condition(request, condition_expression, names, values)


class TransactWriteBuilder:
    """
    Ordered ``TransactItems`` for one ``transact_write_items`` call.

    Remembers which positions are unique index record puts and which are
    owning-record mutations, so a cancellation can be traced back to the
    entry whose condition failed.
    """

    def __init__(self, table_name: str, limit: int = MAX_TRANSACTION_ITEMS):
        self.table_name = table_name
        self.limit = limit
        self._items: List[TransactWriteItemTypeDef] = []
        self._targets: List[Tuple[str, str, str]] = []
        self._unique_positions: Dict[int, str] = {}
        self._owner_positions: Set[int] = set()

    def put(
        self,
        item: Dict[str, Any],
        condition_expression: Optional[str] = None,
        names: Optional[Dict[str, str]] = None,
        values: Optional[Dict[str, Any]] = None,
        table_name: Optional[str] = None,
        unique_attribute: Optional[str] = None,
        owner: bool = False,
    ) -> "TransactWriteBuilder":
        request = with_condition(
            {"TableName": table_name or self.table_name, "Item": item},
            condition_expression,
            names,
            values,
        )
        position = self._append("Put", request, item)
        if unique_attribute is not None:
            self._unique_positions[position] = unique_attribute
        if owner:
            self._owner_positions.add(position)
        return self

    def update(
        self,
        key: Dict[str, Any],
        expression: UpdateExpression,
        condition_expression: Optional[str] = None,
        names: Optional[Dict[str, str]] = None,
        values: Optional[Dict[str, Any]] = None,
        table_name: Optional[str] = None,
        owner: bool = True,
    ) -> "TransactWriteBuilder":
        request = update_request(
            table_name or self.table_name,
            key,
            expression,
            condition_expression,
            names,
            values,
        )
        position = self._append("Update", request, key)
        if owner:
            self._owner_positions.add(position)
        return self

    def delete(
        self,
        key: Dict[str, Any],
        condition_expression: Optional[str] = None,
        names: Optional[Dict[str, str]] = None,
        values: Optional[Dict[str, Any]] = None,
        table_name: Optional[str] = None,
        owner: bool = False,
    ) -> "TransactWriteBuilder":
        request = with_condition(
            {"TableName": table_name or self.table_name, "Key": key},
            condition_expression,
            names,
            values,
        )
        position = self._append("Delete", request, key)
        if owner:
            self._owner_positions.add(position)
        return self

    def condition_check(
        self,
        key: Dict[str, Any],
        condition_expression: str,
        names: Optional[Dict[str, str]] = None,
        values: Optional[Dict[str, Any]] = None,
        table_name: Optional[str] = None,
    ) -> "TransactWriteBuilder":
        if not condition_expression:
            raise EntityValidationError(
                "condition_check requires a condition expression"
            )
        request = with_condition(
            {"TableName": table_name or self.table_name, "Key": key},
            condition_expression,
            names,
            values,
        )
        self._append("ConditionCheck", request, key)
        return self

    def add_plan(
        self,
        plan: WritePlan,
        condition_expression: Optional[str] = None,
        names: Optional[Dict[str, str]] = None,
        values: Optional[Dict[str, Any]] = None,
        table_name: Optional[str] = None,
    ) -> "TransactWriteBuilder":
        """
        Append a planned owning mutation and its index record changes.

        New index records are put under ``attribute_not_exists(PK)``; retired
        ones are deleted unconditionally.
        """
        for descriptor in plan.claimed:
            self.put(
                UniqueIndexRecord(descriptor.field_index_value).to_item(),
                CREATE_ONLY_CONDITION,
                table_name=table_name,
                unique_attribute=descriptor.attribute_name,
            )
        for field_index_value in plan.retired:
            self.delete(
                UniqueIndexRecord(field_index_value).key,
                table_name=table_name,
            )

        if plan.kind == "put":
            self.put(
                plan.item,
                condition_expression,
                names,
                values,
                table_name=table_name,
                owner=True,
            )
        elif plan.kind == "update":
            self.update(
                plan.key,
                plan.expression,
                condition_expression,
                names,
                values,
                table_name=table_name,
            )
        else:
            self.delete(
                plan.key,
                condition_expression,
                names,
                values,
                table_name=table_name,
                owner=True,
            )
        return self

    @property
    def unique_positions(self) -> Dict[int, str]:
        return dict(self._unique_positions)

    @property
    def owner_positions(self) -> Set[int]:
        return set(self._owner_positions)

    def build(self) -> List[TransactWriteItemTypeDef]:
        """
        Raises:
            EntityValidationError: If the transaction is empty or touches the
                same record twice.
            TransactionLimitError: If it holds more than ``limit`` entries.
        """
        if not self._items:
            raise EntityValidationError("Transaction has no items")
        if len(self._items) > self.limit:
            raise TransactionLimitError(
                f"Transaction has {len(self._items)} items; "
                f"the maximum is {self.limit}"
            )
        seen: Set[Tuple[str, str, str]] = set()
        for target in self._targets:
            if target in seen:
                raise EntityValidationError(
                    f"Transaction touches {target[1]}/{target[2]} in "
                    f"{target[0]} more than once"
                )
            seen.add(target)
        return list(self._items)

    def _append(
        self, action: str, request: Dict[str, Any], key: Dict[str, Any]
    ) -> int:
        self._items.append({action: request})
        self._targets.append(
            (request["TableName"], key["PK"]["S"], key["SK"]["S"])
        )
        return len(self._items) - 1

    def __len__(self) -> int:
        return len(self._items)


class _Transaction(_UniqueFields):
    """
    A class used to compose and submit DynamoDB transactions.

    Methods
    -------
    transaction_set(*writes)
        Applies puts, updates and deletes atomically, unique fields included.
    transaction_get(*reads)
        Reads up to 25 keys in one isolated snapshot.
    """

    def _submit_transaction(
        self,
        snapshot: ConnectionSnapshot,
        builder: TransactWriteBuilder,
        operation: str,
    ) -> bool:
        transact_items = builder.build()
        logger.debug(
            f"{operation}: submitting transaction of {len(transact_items)} "
            f"items ({len(builder.unique_positions)} unique index puts)"
        )
        response = self._call(
            snapshot,
            operation,
            OperationClass.TRANSACTION,
            lambda client: client.transact_write_items(
                TransactItems=transact_items
            ),
            classify=partial(
                classify_transaction_error,
                unique_positions=builder.unique_positions,
                owner_positions=builder.owner_positions,
            ),
        )
        return response is not None

    def transaction_set(self, *writes: TransactionWrites) -> bool:
        """
        Apply every put, update, delete and condition check in ``writes``
        atomically.

        Unique fields are maintained for every owning mutation, so the extra
        index record entries count toward the 25 item ceiling.

        Returns:
            ``True`` once DynamoDB accepted the transaction, ``False`` when a
            suppressible failure outlasted the retry budget.

        Raises:
            EntityValidationError: If no writes are given or one is malformed.
            TransactionLimitError: If the composed transaction is too large.
            UniqueConflictError: If a unique value is already claimed.
            ConflictError: If a caller condition failed.
            TransactionAbortedError: If DynamoDB cancelled it for another
                reason.
        """
        if not writes:
            raise EntityValidationError("writes cannot be empty")
        for group in writes:
            if not isinstance(group, TransactionWrites):
                raise EntityValidationError(
                    "writes must be TransactionWrites instances, "
                    f"got {type(group).__name__}"
                )

        requested = sum(len(group) for group in writes)
        if requested == 0:
            raise EntityValidationError("writes cannot be empty")
        if requested > MAX_TRANSACTION_ITEMS:
            raise TransactionLimitError(
                f"Transaction has {requested} items; "
                f"the maximum is {MAX_TRANSACTION_ITEMS}"
            )

        snapshot = self._snapshot()
        builder = TransactWriteBuilder(snapshot.table_name)
        for group in writes:
            table_name = group.table_name or snapshot.table_name
            for entity in group.puts:
                plan = self._plan_set(
                    snapshot, entity, group.put_condition, table_name
                )
                builder.add_plan(
                    plan, group.put_condition, table_name=table_name
                )
            for update in group.updates:
                if not isinstance(update, UpdateItemInput):
                    raise EntityValidationError(
                        "updates must be UpdateItemInput instances"
                    )
                plan = self._plan_update(
                    snapshot,
                    update.pk,
                    update.sk,
                    update.expression,
                    table_name,
                )
                builder.add_plan(
                    plan,
                    update.condition_expression
                    or (MUST_EXIST_CONDITION if plan.transactional else None),
                    update.expression_attribute_names,
                    update.expression_attribute_values,
                    table_name=table_name,
                )
            for key in group.deletes:
                if not isinstance(key, ItemKey):
                    raise EntityValidationError(
                        "deletes must be ItemKey instances"
                    )
                plan = self._plan_delete(snapshot, key.pk, key.sk, table_name)
                builder.add_plan(plan, table_name=table_name)
            for check in group.condition_checks:
                if not isinstance(check, ConditionCheckInput):
                    raise EntityValidationError(
                        "condition_checks must be ConditionCheckInput instances"
                    )
                builder.condition_check(
                    check.item_key.key,
                    check.condition_expression,
                    check.expression_attribute_names,
                    check.expression_attribute_values,
                    table_name=table_name,
                )

        return self._submit_transaction(snapshot, builder, "transaction_set")

    def transaction_get(self, *reads: TransactionReads) -> TransactionGetResult:
        """
        Read up to 25 keys as one isolated snapshot.

        Returns:
            TransactionGetResult: Items in request order, ``None`` for keys
            with no record.

        Raises:
            EntityValidationError: If no keys are given.
            TransactionLimitError: If more than 25 keys are requested.
        """
        transact_items: List[Dict[str, Any]] = []
        snapshot = self._snapshot()
        for group in reads:
            if not isinstance(group, TransactionReads):
                raise EntityValidationError(
                    "reads must be TransactionReads instances, "
                    f"got {type(group).__name__}"
                )
            projection = projection_kwargs(group.projection)
            for key in group.keys:
                if not isinstance(key, ItemKey):
                    raise EntityValidationError("keys must be ItemKey instances")
                transact_items.append(
                    {
                        "Get": {
                            "TableName": group.table_name or snapshot.table_name,
                            "Key": key.key,
                            **projection,
                        }
                    }
                )

        if not transact_items:
            raise EntityValidationError("keys cannot be empty")
        if len(transact_items) > MAX_TRANSACTION_GET_KEYS:
            raise TransactionLimitError(
                f"Transaction get has {len(transact_items)} keys; "
                f"the maximum is {MAX_TRANSACTION_GET_KEYS}"
            )

        response = self._call(
            snapshot,
            "transaction_get",
            OperationClass.TRANSACTION,
            lambda client: client.transact_get_items(
                TransactItems=transact_items
            ),
        )
        if response is None:
            return TransactionGetResult()

        items = [
            entry.get("Item") or None for entry in response.get("Responses", [])
        ]
        return TransactionGetResult(
            success_count=sum(1 for item in items if item is not None),
            items=items,
        )
