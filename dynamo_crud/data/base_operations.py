"""
Base classes and mixins for DynamoDB operations to reduce code duplication.

This module classifies every failure a DynamoDB call can raise into a retry
verdict and a typed exception, and provides the connection snapshot and
retry plumbing the data mixins share.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, TypeVar

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from dynamo_crud.constants import OperationClass, RetryAction
from dynamo_crud.data._base import DynamoClientProtocol
from dynamo_crud.data.connection import Connection, ConnectionConfig
from dynamo_crud.data.shared_exceptions import (
    CapacityError,
    ConflictError,
    DynamoCrudError,
    DynamoDBAccessError,
    DynamoDBConnectionError,
    DynamoDBError,
    DynamoDBResourceNotFoundError,
    DynamoDBValidationError,
    EntityValidationError,
    TransactionAbortedError,
    TransientError,
    UniqueConflictError,
)
from dynamo_crud.utils.retry_with_backoff import ErrorVerdict, call_with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FATAL = (RetryAction.FATAL, False)
_BACKOFF_REPORT = (RetryAction.RETRY_WITH_BACKOFF, False)
_BACKOFF_SUPPRESS = (RetryAction.RETRY_WITH_BACKOFF, True)
_NOW_SUPPRESS = (RetryAction.RETRY_NOW, True)

# error code -> (action, suppress, exception type)
ERROR_CLASSIFICATION: Dict[str, tuple] = {
    "ConditionalCheckFailedException": (*_FATAL, ConflictError),
    "TransactionCanceledException": (*_FATAL, TransactionAbortedError),
    "TransactionConflictException": (*_FATAL, TransactionAbortedError),
    "TransactionInProgressException": (*_FATAL, TransactionAbortedError),
    "ValidationException": (*_FATAL, DynamoDBValidationError),
    "SerializationException": (*_FATAL, DynamoDBValidationError),
    "IdempotentParameterMismatchException": (
        *_FATAL,
        DynamoDBValidationError,
    ),
    "ResourceNotFoundException": (*_FATAL, DynamoDBResourceNotFoundError),
    "TableNotFoundException": (*_FATAL, DynamoDBResourceNotFoundError),
    "IndexNotFoundException": (*_FATAL, DynamoDBResourceNotFoundError),
    "ResourceInUseException": (*_FATAL, DynamoDBError),
    "TableInUseException": (*_FATAL, DynamoDBError),
    "TableAlreadyExistsException": (*_FATAL, DynamoDBError),
    "BackupInUseException": (*_FATAL, DynamoDBError),
    "BackupNotFoundException": (*_FATAL, DynamoDBError),
    "ContinuousBackupsUnavailableException": (*_FATAL, DynamoDBError),
    "GlobalTableAlreadyExistsException": (*_FATAL, DynamoDBError),
    "GlobalTableNotFoundException": (*_FATAL, DynamoDBError),
    "ReplicaAlreadyExistsException": (*_FATAL, DynamoDBError),
    "ReplicaNotFoundException": (*_FATAL, DynamoDBError),
    "PointInTimeRecoveryUnavailableException": (*_FATAL, DynamoDBError),
    "InvalidRestoreTimeException": (*_FATAL, DynamoDBError),
    "AccessDeniedException": (*_FATAL, DynamoDBAccessError),
    "UnrecognizedClientException": (*_FATAL, DynamoDBAccessError),
    "LimitExceededException": (*_BACKOFF_REPORT, CapacityError),
    "ItemCollectionSizeLimitExceededException": (
        *_BACKOFF_REPORT,
        CapacityError,
    ),
    "ProvisionedThroughputExceededException": (
        *_BACKOFF_SUPPRESS,
        CapacityError,
    ),
    "RequestLimitExceeded": (*_BACKOFF_SUPPRESS, CapacityError),
    "ThrottlingException": (*_BACKOFF_SUPPRESS, CapacityError),
    "InternalServerError": (*_NOW_SUPPRESS, TransientError),
    "ServiceUnavailable": (*_NOW_SUPPRESS, TransientError),
}

_NETWORK_ERRORS = (
    ReadTimeoutError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ConnectionClosedError,
)

_REASONS_IN_MESSAGE = re.compile(r"\[([^\[\]]*)\]\s*$")


def error_code_of(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def format_error_message(operation: str, error: ClientError) -> str:
    details = error.response.get("Error", {})
    return (
        f"{operation} failed: [AWS] {details.get('Code', 'Unknown')} - "
        f"{details.get('Message', str(error))}"
    )


def classify_error(error: Exception, operation: str) -> ErrorVerdict:
    """
    Map one failed attempt to a retry verdict.

    Errors already raised as ``DynamoCrudError`` are fatal and pass through
    untouched. Unknown codes and non-AWS exceptions are fatal
    ``DynamoDBError``.
    """
    if isinstance(error, DynamoCrudError):
        return ErrorVerdict(RetryAction.FATAL, False, error)

    if isinstance(error, ClientError):
        code = error_code_of(error)
        message = format_error_message(operation, error)
        action, suppress, error_type = ERROR_CLASSIFICATION.get(
            code, (RetryAction.FATAL, False, DynamoDBError)
        )
        if error_type is TransactionAbortedError:
            typed: Exception = TransactionAbortedError(
                message,
                code,
                cancellation_reasons=transaction_cancellation_reasons(error),
            )
        else:
            typed = error_type(message, code)
        return ErrorVerdict(action, suppress, typed)

    if isinstance(error, _NETWORK_ERRORS):
        return ErrorVerdict(
            RetryAction.RETRY_WITH_BACKOFF,
            False,
            TransientError(f"{operation} failed: {error}", type(error).__name__),
        )

    if isinstance(error, BotoCoreError):
        return ErrorVerdict(
            RetryAction.FATAL,
            False,
            DynamoDBError(f"{operation} failed: {error}", type(error).__name__),
        )

    return ErrorVerdict(
        RetryAction.FATAL,
        False,
        DynamoDBError(f"{operation} failed: {error}"),
    )


def transaction_cancellation_reasons(error: ClientError) -> List[str]:
    """
    Return the per-item cancellation codes of a cancelled transaction.

    botocore exposes them as ``CancellationReasons``; some endpoints only
    embed them in the message as ``[ConditionalCheckFailed, None]``.
    """
    reasons = error.response.get("CancellationReasons")
    if reasons:
        return [reason.get("Code", "None") for reason in reasons]

    message = error.response.get("Error", {}).get("Message", "")
    match = _REASONS_IN_MESSAGE.search(message)
    if not match:
        return []
    return [code.strip() for code in match.group(1).split(",")]


def classify_transaction_error(
    error: Exception,
    operation: str,
    unique_positions: Mapping[int, str],
    owner_positions: Set[int],
) -> ErrorVerdict:
    """
    Refine ``classify_error`` for a submitted write transaction.

    A failed condition on a unique index record means the value is taken and
    becomes ``UniqueConflictError``. A failed condition on an owning record
    becomes ``ConflictError``. Any other cancellation stays a
    ``TransactionAbortedError``.
    """
    verdict = classify_error(error, operation)
    if not (
        isinstance(error, ClientError)
        and error_code_of(error) == "TransactionCanceledException"
    ):
        return verdict

    reasons = transaction_cancellation_reasons(error)
    failed = {
        position
        for position, code in enumerate(reasons)
        if code == "ConditionalCheckFailed"
    }
    message = format_error_message(operation, error)

    claimed = sorted(
        unique_positions[position]
        for position in failed
        if position in unique_positions
    )
    if claimed:
        return ErrorVerdict(
            RetryAction.FATAL,
            False,
            UniqueConflictError(
                f"{message} (unique value already claimed for "
                f"{', '.join(claimed)})",
                "ConditionalCheckFailed",
                attribute_names=claimed,
            ),
        )

    if failed:
        kind = (
            "conditional check failed"
            if failed & set(owner_positions)
            else "condition check failed"
        )
        return ErrorVerdict(
            RetryAction.FATAL,
            False,
            ConflictError(f"{message} ({kind})", "ConditionalCheckFailed"),
        )

    return verdict


@dataclass(frozen=True)
class ConnectionSnapshot:
    """Connection and settings captured at the start of one operation."""

    connection: Connection
    config: ConnectionConfig
    skip_dax: bool

    @property
    def table_name(self) -> str:
        return self.config.table_name

    def client_for(self, operation_class: OperationClass) -> Any:
        return self.connection.client_for(operation_class, self.skip_dax)


class DynamoDBBaseOperations(DynamoClientProtocol):
    """
    Base class for all DynamoDB operations with common functionality.

    Every public operation takes one ``ConnectionSnapshot`` under the shared
    lock and runs its store calls through ``_call`` so that retry and error
    classification happen in exactly one place.
    """

    def _snapshot(self) -> ConnectionSnapshot:
        """
        Raises:
            DynamoDBConnectionError: If the client has not been opened.
        """
        with self._lock.read_locked():
            if self._connection is None:
                raise DynamoDBConnectionError(
                    "DynamoClient is not open; call open() first"
                )
            return ConnectionSnapshot(
                self._connection, self._config, self._skip_dax
            )

    def _call(
        self,
        snapshot: ConnectionSnapshot,
        operation: str,
        operation_class: OperationClass,
        func: Callable[[Any], T],
        classify: Optional[Callable[[Exception, str], ErrorVerdict]] = None,
    ) -> Optional[T]:
        client = snapshot.client_for(operation_class)
        return call_with_retry(
            operation,
            lambda: func(client),
            classify or classify_error,
            snapshot.config.retry_policy,
        )

    def _validate_entity(self, entity: Any, param_name: str) -> Dict[str, Any]:
        """
        Common entity validation logic with consistent error messages.

        Returns:
            The entity's item.

        Raises:
            EntityValidationError: If the entity is missing, cannot be
                converted to an item, or has no string PK and SK.
        """
        if entity is None:
            raise EntityValidationError(f"{param_name} cannot be None")
        to_item = getattr(entity, "to_item", None)
        if not callable(to_item):
            raise EntityValidationError(
                f"{param_name} must provide a to_item() method, "
                f"got {type(entity).__name__}"
            )
        item = to_item()
        for key in ("PK", "SK"):
            value = item.get(key, {}).get("S") if isinstance(item, dict) else None
            if not value or not value.strip():
                raise EntityValidationError(
                    f"{param_name} must have a non-empty string {key}"
                )
        return item

    def _validate_entity_list(self, entities: Any, param_name: str) -> None:
        if entities is None:
            raise EntityValidationError(f"{param_name} cannot be None")
        if not isinstance(entities, (list, tuple)):
            raise EntityValidationError(
                f"{param_name} must be a list, got {type(entities).__name__}"
            )
