"""
Connection settings and the per-operation-class clients built from them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from dynamo_crud.constants import (
    DAX_SUPPORTED_REGIONS,
    DEFAULT_ACTION_RETRIES,
    DEFAULT_TIMEOUT_SECONDS,
    OperationClass,
)
from dynamo_crud.data._base import DynamoDBClient
from dynamo_crud.data.shared_exceptions import (
    DynamoDBConnectionError,
    EntityValidationError,
)
from dynamo_crud.utils.retry_with_backoff import (
    RetryPolicy,
    clamp_retries,
    clamp_timeout,
)

logger = logging.getLogger(__name__)

class ConnectionSettings(BaseSettings):
    """Environment source for ``ConnectionConfig.from_env``."""

    model_config = SettingsConfigDict(
        env_prefix="DYNAMO_CRUD_",
        case_sensitive=False,
        extra="ignore",
    )

    region: str = Field(default="", description="AWS region of the table")
    # Unprefixed fallback for region
    aws_region: str = Field(default="", validation_alias="AWS_REGION")
    table_name: str = Field(default="", description="DynamoDB table name")
    use_dax: bool = Field(default=False, description="Route calls through DAX")
    dax_endpoint: Optional[str] = Field(default=None)
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS)
    action_retries: int = Field(default=DEFAULT_ACTION_RETRIES)
    pk_app_name: str = Field(default="")
    pk_service_name: str = Field(default="")
    actor: Optional[str] = Field(default=None)
    origin: Optional[str] = Field(default=None)
    suppress_exhausted: bool = Field(default=True)
    endpoint_url: Optional[str] = Field(
        default=None,
        description="Override DynamoDB endpoint URL (for local testing)",
    )


@dataclass(frozen=True)
class ConnectionConfig:
    """
    Everything ``DynamoClient.open`` needs to reach a table.

    Attributes:
        region: AWS region of the table.
        table_name: Name of the DynamoDB table.
        use_dax: Route calls through a DAX cluster.
        dax_endpoint: Cluster endpoint, e.g. ``dax://my-cluster.abc.dax-clusters.us-east-1.amazonaws.com``.
        timeout_seconds: Requested per-call timeout, clamped per operation class.
        action_retries: Retries after the first attempt, clamped to [0, 10].
        pk_app_name: First segment of keys built by ``create_pk_value``.
        pk_service_name: Second segment of keys built by ``create_pk_value``.
        actor: Written to ``Actor`` on records that do not carry one.
        origin: Written to ``Origin`` on records that do not carry one.
        suppress_exhausted: Return ``None`` instead of raising when a
            suppressible failure outlasts the retry budget.
        endpoint_url: Alternative DynamoDB endpoint, e.g. DynamoDB Local.
    """

    region: str = ""
    table_name: str = ""
    use_dax: bool = False
    dax_endpoint: Optional[str] = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    action_retries: int = DEFAULT_ACTION_RETRIES
    pk_app_name: str = ""
    pk_service_name: str = ""
    actor: Optional[str] = None
    origin: Optional[str] = None
    suppress_exhausted: bool = True
    endpoint_url: Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "action_retries", clamp_retries(self.action_retries)
        )

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.action_retries,
            suppress_exhausted=self.suppress_exhausted,
        )

    def validate(self) -> None:
        """
        Raises:
            EntityValidationError: If region or table name is missing.
            DynamoDBConnectionError: If DAX is requested but unusable.
        """
        if not self.region or not self.region.strip():
            raise EntityValidationError("region cannot be empty")
        if not self.table_name or not self.table_name.strip():
            raise EntityValidationError("table_name cannot be empty")
        if self.use_dax:
            validate_dax_settings(self.region, self.dax_endpoint)

    @classmethod
    def from_env(cls, prefix: str = "DYNAMO_CRUD_") -> "ConnectionConfig":
        """
        Build a config from ``<prefix>REGION``, ``<prefix>TABLE_NAME`` and
        friends. ``AWS_REGION`` fills in a missing region. Unset variables
        keep their defaults.

        Raises:
            EntityValidationError: If a variable cannot be parsed.
        """
        try:
            settings = ConnectionSettings(_env_prefix=prefix)
        except ValidationError as e:
            raise EntityValidationError(
                f"Invalid connection settings in environment: {e}"
            ) from e
        values = settings.model_dump(exclude={"aws_region"})
        values["region"] = settings.region or settings.aws_region
        return cls(**values)


def validate_dax_settings(region: str, dax_endpoint: Optional[str]) -> None:
    if region not in DAX_SUPPORTED_REGIONS:
        raise DynamoDBConnectionError(
            f"DAX is not supported in region '{region}'"
        )
    if not dax_endpoint:
        raise DynamoDBConnectionError("dax_endpoint is required to use DAX")


def _client_config(
    timeout_seconds: float, operation_class: OperationClass
) -> Config:
    timeout = clamp_timeout(timeout_seconds, operation_class)
    return Config(
        read_timeout=timeout,
        connect_timeout=timeout,
        # Retries are decided by call_with_retry alone.
        retries={"total_max_attempts": 1, "mode": "standard"},
    )


def _dynamodb_client(
    config: ConnectionConfig, operation_class: OperationClass
) -> DynamoDBClient:
    kwargs: Dict[str, Any] = {
        "region_name": config.region,
        "config": _client_config(config.timeout_seconds, operation_class),
    }
    if config.endpoint_url:
        kwargs["endpoint_url"] = config.endpoint_url
    return boto3.client("dynamodb", **kwargs)


def _dax_client_factory(region: str, dax_endpoint: str) -> Any:
    """Build an ``AmazonDaxClient`` for ``dax_endpoint``."""
    try:
        from amazondax import AmazonDaxClient
    except ImportError as e:
        raise DynamoDBConnectionError(
            "amazon-dax-client is required to use DAX; "
            "install dynamo-crud[dax]"
        ) from e
    return AmazonDaxClient(region_name=region, endpoint_url=dax_endpoint)


class Connection:
    """
    Clients for one open table.

    Reads use a client whose timeouts sit in the read window; writes and
    transactions share one in the write window. A DAX client, when present,
    serves every operation class.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        read_client: DynamoDBClient,
        write_client: DynamoDBClient,
        dax_client: Any = None,
    ):
        self.config = config
        self.read_client = read_client
        self.write_client = write_client
        self.dax_client = dax_client

    @classmethod
    def open(cls, config: ConnectionConfig) -> "Connection":
        """
        Build the clients for ``config`` and verify the table exists.

        Raises:
            EntityValidationError: If the config is incomplete.
            DynamoDBConnectionError: If the table cannot be reached or DAX
                cannot be set up.
        """
        config.validate()

        read_client = _dynamodb_client(config, OperationClass.READ)
        write_client = _dynamodb_client(config, OperationClass.WRITE)

        try:
            read_client.describe_table(TableName=config.table_name)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code == "ResourceNotFoundException":
                raise DynamoDBConnectionError(
                    f"The table '{config.table_name}' does not exist in "
                    f"region '{config.region}'."
                ) from e
            raise DynamoDBConnectionError(
                f"Could not describe table '{config.table_name}': {e}"
            ) from e
        except BotoCoreError as e:
            raise DynamoDBConnectionError(
                f"Could not reach DynamoDB in region '{config.region}': {e}"
            ) from e

        dax_client = None
        if config.use_dax:
            dax_client = _dax_client_factory(config.region, config.dax_endpoint)

        logger.info(
            f"Opened table {config.table_name} in {config.region}"
            f"{' through DAX' if dax_client is not None else ''}"
        )
        return cls(config, read_client, write_client, dax_client)

    def client_for(
        self, operation_class: OperationClass, skip_dax: bool = False
    ) -> DynamoDBClient:
        if self.dax_client is not None and not skip_dax:
            return self.dax_client
        if operation_class is OperationClass.READ:
            return self.read_client
        return self.write_client

    def attach_dax(self, dax_endpoint: Optional[str] = None) -> None:
        endpoint = dax_endpoint or self.config.dax_endpoint
        validate_dax_settings(self.config.region, endpoint)
        self.dax_client = _dax_client_factory(self.config.region, endpoint)

    def close(self) -> None:
        for client in (self.dax_client, self.read_client, self.write_client):
            close = getattr(client, "close", None)
            if close is not None:
                close()
        self.dax_client = None
