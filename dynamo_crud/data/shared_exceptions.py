"""Custom exceptions for dynamo_crud data layer operations."""

from typing import Optional


class DynamoCrudError(Exception):
    """Base exception for all dynamo_crud errors."""


# Input validation
class EntityValidationError(DynamoCrudError):
    """Raised when caller input is missing or malformed.

    Always raised before any request reaches DynamoDB and never retried.
    """


class TransactionLimitError(EntityValidationError):
    """Raised when a composed transaction exceeds the 25 item ceiling."""


class CursorError(EntityValidationError):
    """Raised when a pagination cursor cannot be decoded."""


# Connection state
class DynamoDBConnectionError(DynamoCrudError):
    """Raised when no usable connection to the table is available."""


# DynamoDB specific exceptions
class DynamoDBError(DynamoCrudError):
    """Base exception for failures reported by DynamoDB."""

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.error_code = error_code


class DynamoRetryableException(DynamoDBError):
    """
    Exception raised for retryable errors in DynamoDB operations.

    This exception is raised when an operation fails due to a temporary
    issue, such as exceeded throughput, and the retry budget ran out before
    the operation succeeded.
    """


class DynamoCriticalErrorException(DynamoDBError):
    """
    Exception raised for critical errors in DynamoDB operations.

    This exception is raised when an operation fails for a reason that would
    not succeed if retried without addressing the underlying issue.
    """


class CapacityError(DynamoRetryableException):
    """Raised when throughput or a size limit is exceeded."""


class TransientError(DynamoRetryableException):
    """Raised when DynamoDB reports an internal fault or the call timed out."""


class ConflictError(DynamoCriticalErrorException):
    """Raised when a conditional check failed."""

    duplicate = False


class UniqueConflictError(ConflictError):
    """Raised when a unique value is already claimed by another record."""

    duplicate = True

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        attribute_names: Optional[list] = None,
    ):
        super().__init__(message, error_code)
        self.attribute_names = attribute_names or []


class TransactionAbortedError(DynamoCriticalErrorException):
    """Raised when a multi-item transaction was cancelled as a whole."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        cancellation_reasons: Optional[list] = None,
    ):
        super().__init__(message, error_code)
        self.cancellation_reasons = cancellation_reasons or []


class DynamoDBValidationError(DynamoCriticalErrorException):
    """Raised when DynamoDB rejects the request as malformed."""


class DynamoDBResourceNotFoundError(DynamoCriticalErrorException):
    """Raised when the table or index does not exist."""


class DynamoDBAccessError(DynamoCriticalErrorException):
    """Raised when access to DynamoDB is denied."""
