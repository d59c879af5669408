from typing import TYPE_CHECKING, Optional, Protocol

if TYPE_CHECKING:
    from mypy_boto3_dynamodb import DynamoDBClient
    from mypy_boto3_dynamodb.type_defs import (
        QueryInputTypeDef,
        TransactWriteItemTypeDef,
        WriteRequestTypeDef,
    )

    from dynamo_crud.data.connection import Connection, ConnectionConfig
    from dynamo_crud.utils.rwlock import ReadWriteLock
else:
    # Runtime fallback
    DynamoDBClient = object
    QueryInputTypeDef = dict
    WriteRequestTypeDef = dict
    TransactWriteItemTypeDef = dict


class DynamoClientProtocol(Protocol):
    """Protocol defining attributes shared by DynamoDB mixin classes."""

    _lock: "ReadWriteLock"
    _connection: Optional["Connection"]
    _config: "ConnectionConfig"
    _skip_dax: bool
