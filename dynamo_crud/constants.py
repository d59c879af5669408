"""
This module defines the limits, reserved attribute names and enums shared by
the dynamo_crud data layer.
"""

from enum import Enum

# DynamoDB request ceilings
MAX_TRANSACTION_ITEMS = 25
MAX_TRANSACTION_GET_KEYS = 25
MAX_BATCH_WRITE_ITEMS = 25
MAX_BATCH_GET_KEYS = 100

# Retry policy
DEFAULT_ACTION_RETRIES = 4
MAX_ACTION_RETRIES = 10
BACKOFF_DELAY_SECONDS = 0.5
IMMEDIATE_RETRY_DELAY_SECONDS = 0.1

# Per-call timeout windows (seconds)
DEFAULT_TIMEOUT_SECONDS = 5
READ_TIMEOUT_WINDOW = (5, 15)
WRITE_TIMEOUT_WINDOW = (10, 30)

# Query paging
DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 250

# Key schema
PK_NAME = "PK"
SK_NAME = "SK"
PK_SEPARATOR = "#"

# Unique index emulation
UNIQUE_KEY_MARKER = "UniqueKey"
UNIQUE_FIELDS_ATTRIBUTE = "UniqueFields"
UNIQUE_FIELD_SEPARATOR = ";;;"

# Conditions
CREATE_ONLY_CONDITION = "attribute_not_exists(PK)"
MUST_EXIST_CONDITION = "attribute_exists(PK)"

# Audit attributes projected on every read
CREATED_AT_ATTRIBUTE = "CreatedAt"
UPDATED_AT_ATTRIBUTE = "UpdatedAt"
ACTOR_ATTRIBUTE = "Actor"
ORIGIN_ATTRIBUTE = "Origin"
AUDIT_ATTRIBUTES = (
    CREATED_AT_ATTRIBUTE,
    UPDATED_AT_ATTRIBUTE,
    ACTOR_ATTRIBUTE,
    ORIGIN_ATTRIBUTE,
)

# Regions where DynamoDB Accelerator clusters can be provisioned. Built once at
# import time and never mutated.
DAX_SUPPORTED_REGIONS = frozenset(
    {
        "us-east-1",
        "us-east-2",
        "us-west-1",
        "us-west-2",
        "ca-central-1",
        "sa-east-1",
        "eu-west-1",
        "eu-west-2",
        "eu-west-3",
        "eu-central-1",
        "eu-north-1",
        "eu-south-1",
        "ap-south-1",
        "ap-northeast-1",
        "ap-northeast-2",
        "ap-southeast-1",
        "ap-southeast-2",
        "ap-east-1",
        "af-south-1",
        "me-south-1",
        "cn-north-1",
        "cn-northwest-1",
        "us-gov-west-1",
    }
)


class OperationClass(str, Enum):
    """Timeout class of a store call."""

    READ = "READ"
    WRITE = "WRITE"
    TRANSACTION = "TRANSACTION"


class RetryAction(str, Enum):
    """What the retry wrapper should do after a failed attempt."""

    FATAL = "FATAL"  # Surface immediately, never retry
    RETRY_NOW = "RETRY_NOW"  # Retry after the short fixed delay
    RETRY_WITH_BACKOFF = "RETRY_WITH_BACKOFF"  # Retry after the long delay


class KeyComparator(str, Enum):
    """Sort-key comparators accepted in a key condition."""

    EQ = "="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    BETWEEN = "BETWEEN"
    BEGINS_WITH = "begins_with"
