import pytest

from dynamo_crud import (
    ConditionCheckInput,
    ConflictError,
    EntityValidationError,
    ItemKey,
    Record,
    TransactionLimitError,
    TransactionReads,
    TransactionWrites,
    UniqueConflictError,
    UniqueField,
    UpdateExpression,
    UpdateItemInput,
)


def user(index, email=None):
    return Record(
        pk=f"APP#SVC#USER#{index}",
        sk="PROFILE",
        attributes={"Email": email or f"user{index}@example.com"},
        unique=[UniqueField("Email", 2)],
    )


def shadow(email):
    return (f"APP#SVC#UniqueKey#EMAIL#{email.upper()}", "UniqueKey")


@pytest.fixture
def write_client(client):
    return client._connection.write_client


# -------------------------------------------------------------------
#                          transaction_set
# -------------------------------------------------------------------


@pytest.mark.integration
def test_transaction_set_applies_every_write(client, table_keys):
    client.set(Record(pk="P#old", sk="META"))
    client.set(Record(pk="P#counter", sk="META", attributes={"Count": 1}))

    accepted = client.transaction_set(
        TransactionWrites(
            puts=[user(1), Record(pk="P#new", sk="META")],
            updates=[
                UpdateItemInput(
                    "P#counter", "META", UpdateExpression().add("Count", 2)
                )
            ],
            deletes=[ItemKey("P#old", "META")],
        )
    )

    assert accepted is True
    assert table_keys() == [
        ("APP#SVC#USER#1", "PROFILE"),
        shadow("user1@example.com"),
        ("P#counter", "META"),
        ("P#new", "META"),
    ]
    assert client.get("P#counter", "META")["Count"] == {"N": "3"}


@pytest.mark.integration
def test_transaction_set_swaps_and_retires_unique_values(client, table_keys):
    client.set(user(1))
    client.set(user(2))

    client.transaction_set(
        TransactionWrites(
            updates=[
                UpdateItemInput(
                    "APP#SVC#USER#1",
                    "PROFILE",
                    UpdateExpression().set("Email", "new@example.com"),
                )
            ],
            deletes=[ItemKey("APP#SVC#USER#2", "PROFILE")],
        )
    )

    assert table_keys() == [
        ("APP#SVC#USER#1", "PROFILE"),
        shadow("new@example.com"),
    ]


@pytest.mark.integration
def test_transaction_set_unique_conflict_rolls_back(client, table_keys):
    client.set(user(1))
    before = table_keys()

    with pytest.raises(UniqueConflictError) as exc_info:
        client.transaction_set(
            TransactionWrites(
                puts=[
                    Record(pk="P#new", sk="META"),
                    user(2, email="USER1@example.com"),
                ]
            )
        )

    assert exc_info.value.attribute_names == ["Email"]
    assert table_keys() == before


@pytest.mark.integration
def test_transaction_set_put_condition_failure_is_a_conflict(client):
    client.set(Record(pk="P#1", sk="META"))

    with pytest.raises(ConflictError) as exc_info:
        client.transaction_set(
            TransactionWrites(
                puts=[Record(pk="P#1", sk="META"), Record(pk="P#2", sk="META")],
                put_condition="attribute_not_exists(PK)",
            )
        )

    assert not isinstance(exc_info.value, UniqueConflictError)
    assert client.get("P#2", "META") is None


def tenant_is_active():
    return ConditionCheckInput(
        "P#tenant",
        "META",
        "#st = :active",
        {"#st": "Status"},
        {":active": {"S": "ACTIVE"}},
    )


@pytest.mark.integration
def test_transaction_set_condition_check_guards_writes(client, table_keys):
    client.set(Record(pk="P#tenant", sk="META", attributes={"Status": "ACTIVE"}))

    accepted = client.transaction_set(
        TransactionWrites(
            puts=[Record(pk="P#order", sk="META")],
            condition_checks=[tenant_is_active()],
        )
    )

    assert accepted is True
    assert table_keys() == [("P#order", "META"), ("P#tenant", "META")]


@pytest.mark.integration
def test_transaction_set_failed_condition_check_is_a_conflict(client, table_keys):
    client.set(Record(pk="P#tenant", sk="META", attributes={"Status": "CLOSED"}))
    before = table_keys()

    with pytest.raises(ConflictError) as exc_info:
        client.transaction_set(
            TransactionWrites(
                puts=[user(1)], condition_checks=[tenant_is_active()]
            )
        )

    assert not isinstance(exc_info.value, UniqueConflictError)
    assert table_keys() == before


@pytest.mark.integration
def test_transaction_set_update_requires_existing_record(client):
    with pytest.raises(ConflictError):
        client.transaction_set(
            TransactionWrites(
                updates=[
                    UpdateItemInput(
                        "P#1",
                        "META",
                        UpdateExpression().set("Name", "x"),
                        condition_expression="attribute_exists(PK)",
                    )
                ]
            )
        )


@pytest.mark.integration
def test_transaction_set_limit_checked_before_any_call(client, write_client, mocker):
    transact = mocker.patch.object(write_client, "transact_write_items")
    get_item = mocker.patch.object(client._connection.read_client, "get_item")

    with pytest.raises(TransactionLimitError, match="26 items"):
        client.transaction_set(
            TransactionWrites(
                puts=[Record(pk=f"P#{index}", sk="META") for index in range(26)]
            )
        )

    transact.assert_not_called()
    get_item.assert_not_called()


@pytest.mark.integration
def test_transaction_set_counts_unique_index_records(client, write_client, mocker):
    transact = mocker.patch.object(write_client, "transact_write_items")

    with pytest.raises(TransactionLimitError, match="26 items"):
        client.transaction_set(
            TransactionWrites(
                puts=[user(index) for index in range(13)],
                put_condition="attribute_not_exists(PK)",
            )
        )

    transact.assert_not_called()


@pytest.mark.integration
def test_transaction_set_spans_groups(client, table_keys):
    client.transaction_set(
        TransactionWrites(puts=[Record(pk="P#1", sk="META")]),
        TransactionWrites(puts=[Record(pk="P#2", sk="META")]),
    )
    assert table_keys() == [("P#1", "META"), ("P#2", "META")]


@pytest.mark.integration
@pytest.mark.parametrize(
    "writes,match",
    [
        ((), "cannot be empty"),
        ((TransactionWrites(),), "cannot be empty"),
        (({"puts": []},), "TransactionWrites"),
        ((TransactionWrites(updates=["nope"]),), "UpdateItemInput"),
        ((TransactionWrites(deletes=[("P", "S")]),), "ItemKey"),
        (
            (TransactionWrites(condition_checks=[("P", "S")]),),
            "ConditionCheckInput",
        ),
        (
            (
                TransactionWrites(
                    puts=[Record(pk="P#1", sk="META")],
                    deletes=[ItemKey("P#1", "META")],
                ),
            ),
            "more than once",
        ),
    ],
)
def test_transaction_set_validation(client, writes, match):
    with pytest.raises(EntityValidationError, match=match):
        client.transaction_set(*writes)


# -------------------------------------------------------------------
#                          transaction_get
# -------------------------------------------------------------------


@pytest.mark.integration
def test_transaction_get_keeps_request_order(client):
    client.set(Record(pk="P#1", sk="META", attributes={"Name": "one"}))
    client.set(Record(pk="P#3", sk="META", attributes={"Name": "three"}))

    result = client.transaction_get(
        TransactionReads(
            keys=[
                ItemKey("P#3", "META"),
                ItemKey("P#2", "META"),
                ItemKey("P#1", "META"),
            ]
        )
    )

    assert result.success_count == 2
    assert [item and item["Name"]["S"] for item in result.items] == [
        "three",
        None,
        "one",
    ]


@pytest.mark.integration
def test_transaction_get_limits(client, mocker):
    transact_get = mocker.patch.object(
        client._connection.write_client, "transact_get_items"
    )

    with pytest.raises(TransactionLimitError, match="26 keys"):
        client.transaction_get(
            TransactionReads(
                keys=[ItemKey(f"P#{index}", "META") for index in range(26)]
            )
        )
    with pytest.raises(EntityValidationError, match="cannot be empty"):
        client.transaction_get(TransactionReads())
    with pytest.raises(EntityValidationError, match="ItemKey"):
        client.transaction_get(TransactionReads(keys=[("P#1", "META")]))

    transact_get.assert_not_called()
