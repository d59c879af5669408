import pytest
from botocore.exceptions import (
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

from dynamo_crud.constants import RetryAction
from dynamo_crud.data.base_operations import (
    classify_error,
    classify_transaction_error,
    transaction_cancellation_reasons,
)
from dynamo_crud.data.shared_exceptions import (
    CapacityError,
    ConflictError,
    CursorError,
    DynamoDBAccessError,
    DynamoDBError,
    DynamoDBResourceNotFoundError,
    DynamoDBValidationError,
    TransactionAbortedError,
    TransientError,
    UniqueConflictError,
)


def client_error(code, message="boom", operation="PutItem", **extra):
    response = {"Error": {"Code": code, "Message": message}}
    response.update(extra)
    return ClientError(response, operation)


@pytest.mark.unit
@pytest.mark.parametrize(
    "code,action,suppress,error_type",
    [
        ("ConditionalCheckFailedException", RetryAction.FATAL, False, ConflictError),
        (
            "TransactionConflictException",
            RetryAction.FATAL,
            False,
            TransactionAbortedError,
        ),
        ("ValidationException", RetryAction.FATAL, False, DynamoDBValidationError),
        (
            "ResourceNotFoundException",
            RetryAction.FATAL,
            False,
            DynamoDBResourceNotFoundError,
        ),
        ("ResourceInUseException", RetryAction.FATAL, False, DynamoDBError),
        ("AccessDeniedException", RetryAction.FATAL, False, DynamoDBAccessError),
        (
            "LimitExceededException",
            RetryAction.RETRY_WITH_BACKOFF,
            False,
            CapacityError,
        ),
        (
            "ItemCollectionSizeLimitExceededException",
            RetryAction.RETRY_WITH_BACKOFF,
            False,
            CapacityError,
        ),
        (
            "ProvisionedThroughputExceededException",
            RetryAction.RETRY_WITH_BACKOFF,
            True,
            CapacityError,
        ),
        ("RequestLimitExceeded", RetryAction.RETRY_WITH_BACKOFF, True, CapacityError),
        ("ThrottlingException", RetryAction.RETRY_WITH_BACKOFF, True, CapacityError),
        ("InternalServerError", RetryAction.RETRY_NOW, True, TransientError),
        ("ServiceUnavailable", RetryAction.RETRY_NOW, True, TransientError),
        ("SomethingNew", RetryAction.FATAL, False, DynamoDBError),
    ],
)
def test_classify_error_buckets(code, action, suppress, error_type):
    verdict = classify_error(client_error(code), "set")

    assert verdict.action is action
    assert verdict.suppress is suppress
    assert type(verdict.error) is error_type
    assert verdict.error.error_code == code


@pytest.mark.unit
def test_classify_error_message_carries_operation_prefix():
    verdict = classify_error(
        client_error("ValidationException", "bad request"), "update"
    )
    assert str(verdict.error) == (
        "update failed: [AWS] ValidationException - bad request"
    )


@pytest.mark.unit
def test_classify_error_timeouts_retry_with_backoff_and_report():
    verdict = classify_error(ReadTimeoutError(endpoint_url="https://x"), "get")
    assert verdict.action is RetryAction.RETRY_WITH_BACKOFF
    assert verdict.suppress is False
    assert isinstance(verdict.error, TransientError)

    verdict = classify_error(EndpointConnectionError(endpoint_url="https://x"), "get")
    assert verdict.action is RetryAction.RETRY_WITH_BACKOFF


@pytest.mark.unit
def test_classify_error_other_failures_are_fatal():
    assert classify_error(NoCredentialsError(), "get").action is RetryAction.FATAL
    verdict = classify_error(RuntimeError("nope"), "get")
    assert verdict.action is RetryAction.FATAL
    assert isinstance(verdict.error, DynamoDBError)


@pytest.mark.unit
def test_classify_error_passes_library_errors_through():
    error = CursorError("bad cursor")
    verdict = classify_error(error, "query_by_page")
    assert verdict.action is RetryAction.FATAL
    assert verdict.error is error


@pytest.mark.unit
def test_cancellation_reasons_from_response():
    error = client_error(
        "TransactionCanceledException",
        CancellationReasons=[
            {"Code": "None"},
            {"Code": "ConditionalCheckFailed", "Message": "failed"},
        ],
    )
    assert transaction_cancellation_reasons(error) == [
        "None",
        "ConditionalCheckFailed",
    ]


@pytest.mark.unit
def test_cancellation_reasons_parsed_from_message():
    error = client_error(
        "TransactionCanceledException",
        "Transaction cancelled, please refer cancellation reasons for "
        "specific reasons [ConditionalCheckFailed, None]",
    )
    assert transaction_cancellation_reasons(error) == [
        "ConditionalCheckFailed",
        "None",
    ]


@pytest.mark.unit
def test_transaction_error_on_unique_position_is_duplicate():
    error = client_error(
        "TransactionCanceledException",
        CancellationReasons=[{"Code": "ConditionalCheckFailed"}, {"Code": "None"}],
    )
    verdict = classify_transaction_error(
        error, "set", unique_positions={0: "Email"}, owner_positions={1}
    )

    assert verdict.action is RetryAction.FATAL
    assert isinstance(verdict.error, UniqueConflictError)
    assert verdict.error.duplicate is True
    assert verdict.error.attribute_names == ["Email"]


@pytest.mark.unit
def test_transaction_error_on_owner_position_is_plain_conflict():
    error = client_error(
        "TransactionCanceledException",
        CancellationReasons=[{"Code": "None"}, {"Code": "ConditionalCheckFailed"}],
    )
    verdict = classify_transaction_error(
        error, "set", unique_positions={0: "Email"}, owner_positions={1}
    )

    assert type(verdict.error) is ConflictError
    assert verdict.error.duplicate is False


@pytest.mark.unit
def test_transaction_error_other_reasons_abort():
    error = client_error(
        "TransactionCanceledException",
        CancellationReasons=[{"Code": "TransactionConflict"}, {"Code": "None"}],
    )
    verdict = classify_transaction_error(
        error, "set", unique_positions={0: "Email"}, owner_positions={1}
    )

    assert type(verdict.error) is TransactionAbortedError
    assert verdict.error.cancellation_reasons == ["TransactionConflict", "None"]
