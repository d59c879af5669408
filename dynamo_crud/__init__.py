"""CRUD layer for DynamoDB with unique field emulation."""

__version__ = "0.1.0"

from dynamo_crud.constants import KeyComparator  # noqa: F401
from dynamo_crud.data.connection import ConnectionConfig  # noqa: F401
from dynamo_crud.data.dynamo_client import DynamoClient  # noqa: F401
from dynamo_crud.data.shared_exceptions import (  # noqa: F401
    CapacityError,
    ConflictError,
    CursorError,
    DynamoCrudError,
    DynamoCriticalErrorException,
    DynamoDBAccessError,
    DynamoDBConnectionError,
    DynamoDBError,
    DynamoDBResourceNotFoundError,
    DynamoDBValidationError,
    DynamoRetryableException,
    EntityValidationError,
    TransactionAbortedError,
    TransactionLimitError,
    TransientError,
    UniqueConflictError,
)
from dynamo_crud.entities import *  # noqa: F401, F403
from dynamo_crud.utils.pagination import decode_cursor, encode_cursor  # noqa: F401
from dynamo_crud.utils.retry_with_backoff import RetryPolicy  # noqa: F401
