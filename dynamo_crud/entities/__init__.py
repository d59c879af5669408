"""
Entity classes for the dynamo_crud package.
"""

from dynamo_crud.entities.base import (  # noqa: F401
    DynamoDBEntity,
    DynamoEntity,
    UniqueFieldsProvider,
)
from dynamo_crud.entities.query_expression import QueryExpression  # noqa: F401
from dynamo_crud.entities.record import Record, item_to_record  # noqa: F401
from dynamo_crud.entities.results import (  # noqa: F401
    BatchGetResult,
    BatchWriteResult,
    TransactionGetResult,
)
from dynamo_crud.entities.transaction import (  # noqa: F401
    ConditionCheckInput,
    ItemKey,
    TransactionReads,
    TransactionWrites,
    UpdateItemInput,
)
from dynamo_crud.entities.unique_field import (  # noqa: F401
    UniqueField,
    UniqueFieldDescriptor,
    UniqueIndexRecord,
    build_field_index_value,
    describe_unique,
    manifest_from_attribute_value,
    manifest_to_attribute_value,
    reconcile,
    retire,
)
from dynamo_crud.entities.update_expression import (  # noqa: F401
    AddAction,
    DeleteAction,
    RemoveAction,
    SetAction,
    UpdateExpression,
)

__all__ = [
    "AddAction",
    "BatchGetResult",
    "BatchWriteResult",
    "ConditionCheckInput",
    "DeleteAction",
    "DynamoDBEntity",
    "DynamoEntity",
    "ItemKey",
    "QueryExpression",
    "Record",
    "RemoveAction",
    "SetAction",
    "TransactionGetResult",
    "TransactionReads",
    "TransactionWrites",
    "UniqueField",
    "UniqueFieldDescriptor",
    "UniqueFieldsProvider",
    "UniqueIndexRecord",
    "UpdateExpression",
    "UpdateItemInput",
    "build_field_index_value",
    "describe_unique",
    "item_to_record",
    "manifest_from_attribute_value",
    "manifest_to_attribute_value",
    "reconcile",
    "retire",
]
