import pytest

from dynamo_crud.constants import OperationClass, RetryAction
from dynamo_crud.data.shared_exceptions import (
    CapacityError,
    ConflictError,
    TransientError,
)
from dynamo_crud.utils.retry_with_backoff import (
    ErrorVerdict,
    RetryPolicy,
    call_with_retry,
    clamp_retries,
    clamp_timeout,
)


class Flaky:
    """Fails ``failures`` times with ``exc`` and then returns ``result``."""

    def __init__(self, failures, exc=None, result="ok"):
        self.failures = failures
        self.exc = exc or RuntimeError("throttled")
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return self.result


def verdict_of(action, suppress, error):
    return lambda exc, operation: ErrorVerdict(action, suppress, error)


suppressed_backoff = verdict_of(
    RetryAction.RETRY_WITH_BACKOFF, True, CapacityError("capacity")
)
reported_backoff = verdict_of(
    RetryAction.RETRY_WITH_BACKOFF, False, CapacityError("limit")
)
fatal = verdict_of(RetryAction.FATAL, False, ConflictError("conflict"))


@pytest.fixture
def sleep(mocker):
    return mocker.patch("dynamo_crud.utils.retry_with_backoff.time.sleep")


@pytest.mark.unit
def test_succeeds_when_budget_covers_failures(sleep):
    func = Flaky(failures=3)
    result = call_with_retry(
        "get", func, suppressed_backoff, RetryPolicy(max_retries=3)
    )

    assert result == "ok"
    assert func.calls == 4
    assert sleep.call_count == 3
    sleep.assert_called_with(0.5)


@pytest.mark.unit
def test_suppressed_failure_returns_none_when_budget_exhausted(sleep):
    func = Flaky(failures=5)
    result = call_with_retry(
        "get", func, suppressed_backoff, RetryPolicy(max_retries=2)
    )

    assert result is None
    assert func.calls == 3


@pytest.mark.unit
def test_suppression_can_be_turned_off(sleep):
    func = Flaky(failures=5)
    with pytest.raises(CapacityError, match="capacity"):
        call_with_retry(
            "get",
            func,
            suppressed_backoff,
            RetryPolicy(max_retries=2, suppress_exhausted=False),
        )


@pytest.mark.unit
def test_reported_failure_raises_when_budget_exhausted(sleep):
    func = Flaky(failures=5)
    with pytest.raises(CapacityError, match="limit"):
        call_with_retry("set", func, reported_backoff, RetryPolicy(max_retries=1))
    assert func.calls == 2


@pytest.mark.unit
def test_fatal_failure_is_never_retried(sleep):
    func = Flaky(failures=1)
    with pytest.raises(ConflictError) as exc_info:
        call_with_retry("set", func, fatal, RetryPolicy(max_retries=4))

    assert func.calls == 1
    sleep.assert_not_called()
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.unit
def test_retry_now_uses_short_delay(sleep):
    retry_now = verdict_of(RetryAction.RETRY_NOW, True, TransientError("blip"))
    call_with_retry("get", Flaky(failures=1), retry_now, RetryPolicy())
    sleep.assert_called_once_with(0.1)


@pytest.mark.unit
def test_zero_retries_means_single_attempt(sleep):
    func = Flaky(failures=1)
    assert (
        call_with_retry("get", func, suppressed_backoff, RetryPolicy(max_retries=0))
        is None
    )
    assert func.calls == 1
    sleep.assert_not_called()


@pytest.mark.unit
@pytest.mark.parametrize(
    "requested,expected", [(None, 4), (-3, 0), (0, 0), (7, 7), (10, 10), (99, 10)]
)
def test_clamp_retries(requested, expected):
    assert clamp_retries(requested) == expected
    if requested is not None:
        assert RetryPolicy(max_retries=requested).max_retries == expected


@pytest.mark.unit
@pytest.mark.parametrize(
    "requested,operation_class,expected",
    [
        (None, OperationClass.READ, 5.0),
        (1, OperationClass.READ, 5.0),
        (8, OperationClass.READ, 8.0),
        (60, OperationClass.READ, 15.0),
        (5, OperationClass.WRITE, 10.0),
        (20, OperationClass.WRITE, 20.0),
        (60, OperationClass.TRANSACTION, 30.0),
    ],
)
def test_clamp_timeout(requested, operation_class, expected):
    assert clamp_timeout(requested, operation_class) == expected
