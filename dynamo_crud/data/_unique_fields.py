"""
Planning of the unique index record changes that accompany a write.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from dynamo_crud.constants import (
    ACTOR_ATTRIBUTE,
    CREATE_ONLY_CONDITION,
    CREATED_AT_ATTRIBUTE,
    ORIGIN_ATTRIBUTE,
    UNIQUE_FIELDS_ATTRIBUTE,
    UPDATED_AT_ATTRIBUTE,
    OperationClass,
)
from dynamo_crud.data.base_operations import (
    ConnectionSnapshot,
    DynamoDBBaseOperations,
)
from dynamo_crud.data.shared_exceptions import EntityValidationError
from dynamo_crud.entities.unique_field import (
    UniqueFieldDescriptor,
    describe_unique,
    manifest_from_attribute_value,
    manifest_to_attribute_value,
    reconcile,
    retire,
)
from dynamo_crud.entities.update_expression import UpdateExpression
from dynamo_crud.utils.dynamo_helpers import create_key, stamp_audit, utc_timestamp


@dataclass
class WritePlan:
    """
    One owning-record mutation plus its unique index record changes.

    Attributes:
        kind: ``"put"``, ``"update"`` or ``"delete"``.
        key: Key of the owning record.
        item: Item to put, for ``"put"``.
        expression: Final update expression, for ``"update"``.
        claimed: Descriptors whose index records must be created.
        retired: Index values whose records must be deleted.
        transactional: Whether the mutation must run inside a transaction.
    """

    kind: str
    key: Dict[str, Any]
    item: Optional[Dict[str, Any]] = None
    expression: Optional[UpdateExpression] = None
    claimed: List[UniqueFieldDescriptor] = field(default_factory=list)
    retired: List[str] = field(default_factory=list)
    transactional: bool = False

    def __len__(self) -> int:
        return 1 + len(self.claimed) + len(self.retired)


class _UniqueFields(DynamoDBBaseOperations):
    """Loads manifests and works out which index records a write touches."""

    def load_unique(
        self, pk: str, sk: str
    ) -> Optional[Dict[str, UniqueFieldDescriptor]]:
        """
        Read only the ``UniqueFields`` manifest of a record.

        Returns:
            The manifest keyed by attribute name, or ``None`` when the record
            does not exist or carries no manifest.
        """
        return self._load_unique(self._snapshot(), pk, sk)

    def _load_unique(
        self,
        snapshot: ConnectionSnapshot,
        pk: str,
        sk: str,
        table_name: Optional[str] = None,
    ) -> Optional[Dict[str, UniqueFieldDescriptor]]:
        descriptors, _ = self._load_prior(snapshot, pk, sk, table_name)
        return descriptors or None

    def _load_prior(
        self,
        snapshot: ConnectionSnapshot,
        pk: str,
        sk: str,
        table_name: Optional[str] = None,
    ) -> Tuple[Dict[str, UniqueFieldDescriptor], Optional[Dict[str, Any]]]:
        """Read the stored manifest and ``CreatedAt`` of a record."""
        key = create_key(pk, sk)
        response = self._call(
            snapshot,
            "load_unique",
            OperationClass.READ,
            lambda client: client.get_item(
                TableName=table_name or snapshot.table_name,
                Key=key,
                ConsistentRead=True,
                ProjectionExpression="#uf, #ca",
                ExpressionAttributeNames={
                    "#uf": UNIQUE_FIELDS_ATTRIBUTE,
                    "#ca": CREATED_AT_ATTRIBUTE,
                },
            ),
        )
        if not response or "Item" not in response:
            return {}, None
        item = response["Item"]
        descriptors = manifest_from_attribute_value(
            item.get(UNIQUE_FIELDS_ATTRIBUTE)
        )
        return descriptors, item.get(CREATED_AT_ATTRIBUTE)

    def _plan_set(
        self,
        snapshot: ConnectionSnapshot,
        entity: Any,
        condition_expression: Optional[str],
        table_name: Optional[str] = None,
    ) -> WritePlan:
        """
        Plan a put of ``entity``.

        A create-only put cannot replace an existing record, so no prior
        manifest is read. Any other put may overwrite a record whose unique
        values then have to be swapped, and keeps that record's
        ``CreatedAt`` unless the entity carries its own.
        """
        item = self._validate_entity(entity, "entity")
        descriptors = describe_unique(entity)

        prior: Dict[str, UniqueFieldDescriptor] = {}
        if condition_expression != CREATE_ONLY_CONDITION:
            prior, created_at = self._load_prior(
                snapshot, item["PK"]["S"], item["SK"]["S"], table_name
            )
            if created_at and CREATED_AT_ATTRIBUTE not in item:
                item = {**item, CREATED_AT_ATTRIBUTE: created_at}
        item = stamp_audit(item, snapshot.config.actor, snapshot.config.origin)

        if descriptors:
            item[UNIQUE_FIELDS_ATTRIBUTE] = manifest_to_attribute_value(
                descriptors
            )
        else:
            item.pop(UNIQUE_FIELDS_ATTRIBUTE, None)

        prior_values = {d.field_index_value for d in prior.values()}
        new_values = {d.field_index_value for d in descriptors.values()}

        return WritePlan(
            kind="put",
            key={"PK": item["PK"], "SK": item["SK"]},
            item=item,
            claimed=[
                d
                for _, d in sorted(descriptors.items())
                if d.field_index_value not in prior_values
            ],
            retired=sorted(prior_values - new_values),
            transactional=bool(descriptors or prior),
        )

    def _plan_update(
        self,
        snapshot: ConnectionSnapshot,
        pk: str,
        sk: str,
        expression: UpdateExpression,
        table_name: Optional[str] = None,
    ) -> WritePlan:
        """
        Plan an update against the record's stored manifest.

        Raises:
            EntityValidationError: If the expression is empty, assigns the
                manifest directly, or uses ADD/DELETE or if_not_exists on a
                unique attribute.
        """
        key = create_key(pk, sk)
        if not isinstance(expression, UpdateExpression) or not len(expression):
            raise EntityValidationError(
                "expression must be a non-empty UpdateExpression"
            )
        if UNIQUE_FIELDS_ATTRIBUTE in expression.set_values() or (
            UNIQUE_FIELDS_ATTRIBUTE in expression.incremental_attributes()
        ):
            raise EntityValidationError(
                f"{UNIQUE_FIELDS_ATTRIBUTE} is maintained automatically and "
                "can only be removed"
            )

        expression = self._with_audit(snapshot, expression)
        prior = self._load_unique(snapshot, pk, sk, table_name) or {}
        if not prior:
            return WritePlan(kind="update", key=key, expression=expression)

        incremental = set(expression.incremental_attributes()) & set(prior)
        if incremental:
            raise EntityValidationError(
                "ADD and DELETE cannot target unique attributes: "
                f"{', '.join(sorted(incremental))}"
            )

        # The stored value survives if_not_exists, so its index record must too.
        conditional = set(expression.conditional_set_attributes()) & set(prior)
        if conditional:
            raise EntityValidationError(
                "if_not_exists cannot target unique attributes: "
                f"{', '.join(sorted(conditional))}"
            )

        retired, remaining = retire(prior, expression.removed_attributes())
        changed, full = reconcile(remaining, expression.set_values())
        if not retired and not changed:
            return WritePlan(kind="update", key=key, expression=expression)

        if full:
            expression.set(
                UNIQUE_FIELDS_ATTRIBUTE, manifest_to_attribute_value(full)
            )
        elif not expression.touches(UNIQUE_FIELDS_ATTRIBUTE):
            expression.remove(UNIQUE_FIELDS_ATTRIBUTE)

        return WritePlan(
            kind="update",
            key=key,
            expression=expression,
            claimed=[d for _, d in sorted(changed.items())],
            retired=sorted(
                [d.field_index_value for d in retired.values()]
                + [d.prior_field_index_value for d in changed.values()]
            ),
            transactional=True,
        )

    def _plan_delete(
        self,
        snapshot: ConnectionSnapshot,
        pk: str,
        sk: str,
        table_name: Optional[str] = None,
    ) -> WritePlan:
        key = create_key(pk, sk)
        prior = self._load_unique(snapshot, pk, sk, table_name) or {}
        return WritePlan(
            kind="delete",
            key=key,
            retired=sorted(d.field_index_value for d in prior.values()),
            transactional=bool(prior),
        )

    def _with_audit(
        self, snapshot: ConnectionSnapshot, expression: UpdateExpression
    ) -> UpdateExpression:
        """Copy ``expression`` adding audit SETs the caller did not make."""
        expression = expression.copy()
        now = utc_timestamp()
        if not expression.touches(UPDATED_AT_ATTRIBUTE):
            expression.set(UPDATED_AT_ATTRIBUTE, now)
        if not expression.touches(CREATED_AT_ATTRIBUTE):
            expression.set(CREATED_AT_ATTRIBUTE, now, if_not_exists=True)
        if snapshot.config.actor and not expression.touches(ACTOR_ATTRIBUTE):
            expression.set(ACTOR_ATTRIBUTE, snapshot.config.actor)
        if snapshot.config.origin and not expression.touches(ORIGIN_ATTRIBUTE):
            expression.set(ORIGIN_ATTRIBUTE, snapshot.config.origin)
        return expression
