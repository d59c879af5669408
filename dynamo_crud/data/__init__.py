"""
DynamoDB access layer.

``DynamoClient`` lives in ``dynamo_crud.data.dynamo_client``; only the
exception taxonomy is re-exported here so entity modules can import it
without pulling in the client.
"""

from .shared_exceptions import (  # noqa: F401
    DynamoCriticalErrorException,
    DynamoRetryableException,
)
