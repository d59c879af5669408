import logging
from typing import Any, Optional

from dynamo_crud.constants import PK_SEPARATOR
from dynamo_crud.data._batch import _Batch
from dynamo_crud.data._query import _Query
from dynamo_crud.data._record import _Record
from dynamo_crud.data.connection import Connection, ConnectionConfig
from dynamo_crud.data.shared_exceptions import DynamoDBConnectionError
from dynamo_crud.utils.rwlock import ReadWriteLock

logger = logging.getLogger(__name__)


class DynamoClient(
    _Record,
    _Query,
    _Batch,
):
    """A class used to represent a DynamoDB client."""

    def __init__(
        self,
        table_name: Optional[str] = None,
        region: str = "us-east-1",
        config: Optional[ConnectionConfig] = None,
    ):
        """Initializes a DynamoClient instance.

        Opens a connection right away when ``config`` or ``table_name`` is
        given; otherwise call ``open`` later.

        Args:
            table_name (str, optional): The name of the DynamoDB table.
            region (str, optional): The AWS region where the DynamoDB table is
                located. Defaults to "us-east-1".
            config (ConnectionConfig, optional): Full connection settings.
                Takes precedence over ``table_name`` and ``region``.

        Attributes:
            _connection (Connection): Clients of the open table, if any.
            _config (ConnectionConfig): Settings of the open connection.
        """
        super().__init__()
        self._lock = ReadWriteLock()
        self._connection: Optional[Connection] = None
        self._config = ConnectionConfig()
        self._skip_dax = False

        if config is None and table_name is not None:
            config = ConnectionConfig(region=region, table_name=table_name)
        if config is not None:
            self.open(config)

    def open(self, config: ConnectionConfig) -> None:
        """
        Connect to the table described by ``config``.

        Any previous connection is closed once the new one is ready.

        Raises:
            EntityValidationError: If region or table name is missing.
            DynamoDBConnectionError: If the table does not exist or DAX is
                requested in an unsupported region or without an endpoint.
        """
        connection = Connection.open(config)
        with self._lock.write_locked():
            previous = self._connection
            self._connection = connection
            self._config = config
            self._skip_dax = False
        if previous is not None:
            previous.close()

    def close(self) -> None:
        """Drop the connection and restore default settings."""
        with self._lock.write_locked():
            connection = self._connection
            self._connection = None
            self._config = ConnectionConfig()
            self._skip_dax = False
        if connection is not None:
            connection.close()
            logger.info(f"Closed table {connection.config.table_name}")

    @property
    def is_open(self) -> bool:
        with self._lock.read_locked():
            return self._connection is not None

    @property
    def config(self) -> ConnectionConfig:
        with self._lock.read_locked():
            return self._config

    @property
    def table_name(self) -> str:
        return self.config.table_name

    def enable_dax(self, dax_endpoint: Optional[str] = None) -> None:
        """
        Route calls through DAX, building the DAX client if needed.

        Raises:
            DynamoDBConnectionError: If the client is not open, or DAX is not
                supported in the region or has no endpoint.
        """
        with self._lock.write_locked():
            if self._connection is None:
                raise DynamoDBConnectionError(
                    "DynamoClient is not open; call open() first"
                )
            if self._connection.dax_client is None:
                self._connection.attach_dax(dax_endpoint)
            self._skip_dax = False
        logger.info("DAX enabled")

    def disable_dax(self) -> None:
        """Send calls straight to DynamoDB, keeping any DAX client for later."""
        with self._lock.write_locked():
            self._skip_dax = True
        logger.info("DAX disabled")

    @property
    def dax_enabled(self) -> bool:
        with self._lock.read_locked():
            return (
                self._connection is not None
                and self._connection.dax_client is not None
                and not self._skip_dax
            )

    def create_pk_value(self, *values: Any) -> str:
        """
        Build ``app#service#v1#v2...`` from the configured key prefix.

        Blank parts are skipped.
        """
        config = self.config
        parts = [config.pk_app_name, config.pk_service_name, *values]
        return PK_SEPARATOR.join(
            str(part) for part in parts if part is not None and str(part).strip()
        )

    def __enter__(self) -> "DynamoClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
