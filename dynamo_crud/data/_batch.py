from typing import Any, Dict, List, Optional, Sequence

from dynamo_crud.constants import (
    MAX_BATCH_GET_KEYS,
    MAX_BATCH_WRITE_ITEMS,
    OperationClass,
)
from dynamo_crud.data._base import WriteRequestTypeDef
from dynamo_crud.data.base_operations import DynamoDBBaseOperations
from dynamo_crud.data.shared_exceptions import (
    EntityValidationError,
    TransactionLimitError,
)
from dynamo_crud.entities.results import BatchGetResult, BatchWriteResult
from dynamo_crud.entities.transaction import ItemKey
from dynamo_crud.utils.dynamo_helpers import projection_kwargs, stamp_audit


class _Batch(DynamoDBBaseOperations):
    """
    A class used to issue best-effort batch requests.

    Batches carry no uniqueness semantics. Whatever DynamoDB leaves
    unprocessed is reported back rather than retried.

    Methods
    -------
    batch_set(puts, delete_keys)
        Writes up to 25 puts and deletes in one request.
    batch_delete(*keys)
        Deletes up to 25 records in one request.
    batch_get(keys, consistent_read, projection)
        Reads up to 100 records in one request.
    """

    def batch_set(
        self,
        puts: Optional[Sequence[Any]] = None,
        delete_keys: Optional[Sequence[ItemKey]] = None,
    ) -> BatchWriteResult:
        """
        Write up to 25 puts and deletes in one ``batch_write_item`` call.

        Puts replace whole items without reading them first, so an
        overwritten record gets a fresh ``CreatedAt`` unless the entity
        carries one.

        Args:
            puts: Entities to put, each providing ``to_item()``.
            delete_keys: Keys of records to delete.

        Returns:
            BatchWriteResult: How many writes landed and which keys DynamoDB
            left unprocessed. When the request itself was throttled past the
            retry budget every key is reported as failed.

        Raises:
            EntityValidationError: If nothing is given or an input is invalid.
            TransactionLimitError: If more than 25 writes are given.
        """
        puts = list(puts or [])
        delete_keys = list(delete_keys or [])
        self._validate_entity_list(puts, "puts")
        self._validate_entity_list(delete_keys, "delete_keys")

        total = len(puts) + len(delete_keys)
        if total == 0:
            raise EntityValidationError("puts and delete_keys cannot both be empty")
        if total > MAX_BATCH_WRITE_ITEMS:
            raise TransactionLimitError(
                f"Batch has {total} writes; the maximum is {MAX_BATCH_WRITE_ITEMS}"
            )

        snapshot = self._snapshot()
        requests: List[WriteRequestTypeDef] = []
        put_keys: List[ItemKey] = []
        for entity in puts:
            item = stamp_audit(
                self._validate_entity(entity, "puts"),
                snapshot.config.actor,
                snapshot.config.origin,
            )
            put_keys.append(ItemKey.from_key(item))
            requests.append({"PutRequest": {"Item": item}})
        for key in delete_keys:
            if not isinstance(key, ItemKey):
                raise EntityValidationError(
                    "delete_keys must be ItemKey instances, "
                    f"got {type(key).__name__}"
                )
            requests.append({"DeleteRequest": {"Key": key.key}})

        response = self._call(
            snapshot,
            "batch_set",
            OperationClass.WRITE,
            lambda client: client.batch_write_item(
                RequestItems={snapshot.table_name: requests}
            ),
        )
        if response is None:
            return BatchWriteResult(
                success_count=0,
                failed_puts=put_keys,
                failed_deletes=list(delete_keys),
            )

        failed_puts: List[ItemKey] = []
        failed_deletes: List[ItemKey] = []
        unprocessed = response.get("UnprocessedItems", {}).get(
            snapshot.table_name, []
        )
        for request in unprocessed:
            if "PutRequest" in request:
                failed_puts.append(ItemKey.from_key(request["PutRequest"]["Item"]))
            elif "DeleteRequest" in request:
                failed_deletes.append(
                    ItemKey.from_key(request["DeleteRequest"]["Key"])
                )

        return BatchWriteResult(
            success_count=total - len(failed_puts) - len(failed_deletes),
            failed_puts=failed_puts,
            failed_deletes=failed_deletes,
        )

    def batch_delete(self, *keys: ItemKey) -> BatchWriteResult:
        """Delete up to 25 records in one request. See ``batch_set``."""
        return self.batch_set(delete_keys=list(keys))

    def batch_get(
        self,
        keys: Sequence[ItemKey],
        consistent_read: bool = False,
        projection: Optional[List[str]] = None,
    ) -> BatchGetResult:
        """
        Read up to 100 records in one ``batch_get_item`` call.

        Args:
            keys: Keys of the records to read. Must be unique.
            consistent_read: Use strongly consistent reads.
            projection: Attributes to return; audit attributes are always
                added.

        Returns:
            BatchGetResult: Found items, in no particular order, plus the
            keys DynamoDB left unprocessed.

        Raises:
            EntityValidationError: If keys are empty, invalid or repeated.
            TransactionLimitError: If more than 100 keys are given.
        """
        keys = list(keys or [])
        if not keys:
            raise EntityValidationError("keys cannot be empty")
        if len(keys) > MAX_BATCH_GET_KEYS:
            raise TransactionLimitError(
                f"Batch get has {len(keys)} keys; "
                f"the maximum is {MAX_BATCH_GET_KEYS}"
            )
        for key in keys:
            if not isinstance(key, ItemKey):
                raise EntityValidationError(
                    f"keys must be ItemKey instances, got {type(key).__name__}"
                )
        if len(set(keys)) != len(keys):
            raise EntityValidationError("keys must not contain duplicates")

        snapshot = self._snapshot()
        request: Dict[str, Any] = {
            "Keys": [key.key for key in keys],
            "ConsistentRead": consistent_read,
            **projection_kwargs(projection),
        }
        response = self._call(
            snapshot,
            "batch_get",
            OperationClass.READ,
            lambda client: client.batch_get_item(
                RequestItems={snapshot.table_name: request}
            ),
        )
        if response is None:
            return BatchGetResult(items=[], unprocessed_keys=keys)

        unprocessed = (
            response.get("UnprocessedKeys", {})
            .get(snapshot.table_name, {})
            .get("Keys", [])
        )
        return BatchGetResult(
            items=response.get("Responses", {}).get(snapshot.table_name, []),
            unprocessed_keys=[ItemKey.from_key(key) for key in unprocessed],
        )
