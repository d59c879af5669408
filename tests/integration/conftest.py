import boto3
import pytest
from moto import mock_aws

from dynamo_crud import ConnectionConfig, DynamoClient


@pytest.fixture
def dynamodb_table():
    """
    Spins up a mock DynamoDB instance, creates a table with a GSI1 index,
    waits until it is active, then yields the table name for tests.

    After the tests, everything is torn down automatically.
    """
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        table_name = "MyMockedTable"
        dynamodb.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
                {"AttributeName": "GSI1PK", "AttributeType": "S"},
                {"AttributeName": "GSI1SK", "AttributeType": "S"},
            ],
            ProvisionedThroughput={
                "ReadCapacityUnits": 5,
                "WriteCapacityUnits": 5,
            },
            GlobalSecondaryIndexes=[
                {
                    "IndexName": "GSI1",
                    "KeySchema": [
                        {"AttributeName": "GSI1PK", "KeyType": "HASH"},
                        {"AttributeName": "GSI1SK", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                    "ProvisionedThroughput": {
                        "ReadCapacityUnits": 5,
                        "WriteCapacityUnits": 5,
                    },
                },
            ],
        )

        # Wait for the table to be created
        dynamodb.meta.client.get_waiter("table_exists").wait(TableName=table_name)

        yield table_name


@pytest.fixture
def client(dynamodb_table):
    """Return a DynamoClient instance that uses the mocked DynamoDB table"""
    dynamo = DynamoClient(
        config=ConnectionConfig(
            region="us-east-1",
            table_name=dynamodb_table,
            action_retries=2,
        )
    )
    yield dynamo
    dynamo.close()


@pytest.fixture
def raw_client(dynamodb_table):
    """Plain boto3 client for inspecting the table behind DynamoClient."""
    return boto3.client("dynamodb", region_name="us-east-1")


@pytest.fixture
def table_keys(raw_client, dynamodb_table):
    """Return a callable listing every (PK, SK) pair in the table, sorted."""

    def scan():
        items = raw_client.scan(TableName=dynamodb_table)["Items"]
        return sorted((item["PK"]["S"], item["SK"]["S"]) for item in items)

    return scan
