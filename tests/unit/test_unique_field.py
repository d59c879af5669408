import pytest

from dynamo_crud.data.shared_exceptions import EntityValidationError
from dynamo_crud.entities import (
    Record,
    UniqueField,
    UniqueFieldDescriptor,
    UniqueIndexRecord,
    build_field_index_value,
    describe_unique,
    manifest_from_attribute_value,
    manifest_to_attribute_value,
    reconcile,
    retire,
)


@pytest.fixture
def profile():
    return Record(
        pk="APP#SVC#TENANT#42",
        sk="PROFILE",
        attributes={"Email": "a@b.com", "Handle": "neo", "Age": 30},
        unique=[
            UniqueField("Email", pk_prefix_segments=2),
            UniqueField("Handle", pk_prefix_segments=3, field_name="username"),
        ],
    )


@pytest.fixture
def manifest(profile):
    return describe_unique(profile)


@pytest.mark.unit
def test_describe_unique_builds_index_values(manifest):
    assert manifest["Email"] == UniqueFieldDescriptor(
        attribute_name="Email",
        field_name="Email",
        field_index_value="APP#SVC#UniqueKey#EMAIL#A@B.COM",
    )
    assert (
        manifest["Handle"].field_index_value
        == "APP#SVC#TENANT#UniqueKey#USERNAME#NEO"
    )
    assert manifest["Email"].pk_prefix == "APP#SVC"


@pytest.mark.unit
def test_describe_unique_without_declarations():
    assert describe_unique(Record(pk="A#B", sk="C", attributes={"Email": "x"})) == {}

    class Plain:
        def to_item(self):
            return {"PK": {"S": "A"}, "SK": {"S": "B"}}

    assert describe_unique(Plain()) == {}


@pytest.mark.unit
def test_describe_unique_skips_absent_values():
    record = Record(
        pk="APP#SVC#1",
        sk="PROFILE",
        attributes={"Email": ""},
        unique=[UniqueField("Email", 2), UniqueField("Phone", 2)],
    )
    assert describe_unique(record) == {}


@pytest.mark.unit
def test_describe_unique_rejects_short_partition_key():
    record = Record(
        pk="APP",
        sk="PROFILE",
        attributes={"Email": "a@b.com"},
        unique=[UniqueField("Email", 2)],
    )
    with pytest.raises(EntityValidationError, match="fewer than the 2"):
        describe_unique(record)


@pytest.mark.unit
@pytest.mark.parametrize("segments", [0, -1, True, "2"])
def test_describe_unique_rejects_bad_segment_count(segments):
    record = Record(
        pk="APP#SVC",
        sk="PROFILE",
        attributes={"Email": "a@b.com"},
        unique=[UniqueField("Email", segments)],
    )
    with pytest.raises(EntityValidationError, match="pk_prefix_segments"):
        describe_unique(record)


@pytest.mark.unit
def test_describe_unique_rejects_non_list_manifest_slot():
    record = Record(
        pk="APP#SVC",
        sk="PROFILE",
        attributes={"Email": "a@b.com", "UniqueFields": "oops"},
        unique=[UniqueField("Email", 1)],
    )
    with pytest.raises(EntityValidationError, match="must be a list"):
        describe_unique(record)


@pytest.mark.unit
@pytest.mark.parametrize(
    "value,expected",
    [
        ({"S": "Mixed"}, "APP#UniqueKey#CODE#MIXED"),
        ({"N": "42"}, "APP#UniqueKey#CODE#42"),
        ({"BOOL": True}, "APP#UniqueKey#CODE#TRUE"),
        ({"B": b"\x01\x02"}, "APP#UniqueKey#CODE#AQI="),
    ],
)
def test_reconcile_value_encodings(value, expected):
    old = {
        "Code": UniqueFieldDescriptor(
            "Code", "Code", build_field_index_value("APP", "Code", "before")
        )
    }
    changed, full = reconcile(old, {"Code": value})

    assert changed["Code"].field_index_value == expected
    assert changed["Code"].prior_field_index_value == "APP#UniqueKey#CODE#BEFORE"
    assert changed["Code"].changed
    assert full == changed


@pytest.mark.unit
def test_reconcile_carries_unchanged_values_forward(manifest):
    changed, full = reconcile(
        manifest, {"Email": {"S": "A@B.COM"}, "Age": {"N": "31"}}
    )

    assert changed == {}
    assert full == manifest


@pytest.mark.unit
def test_reconcile_marks_only_changed_attributes(manifest):
    changed, full = reconcile(manifest, {"Email": {"S": "c@d.com"}})

    assert list(changed) == ["Email"]
    assert full["Email"].field_index_value == "APP#SVC#UniqueKey#EMAIL#C@D.COM"
    assert full["Handle"] == manifest["Handle"]


@pytest.mark.unit
def test_reconcile_rejects_empty_values(manifest):
    with pytest.raises(EntityValidationError, match="Email"):
        reconcile(manifest, {"Email": {"S": " "}})


@pytest.mark.unit
def test_retire_splits_manifest(manifest):
    retired, remaining = retire(manifest, ["Handle", "Age"])
    assert list(retired) == ["Handle"]
    assert list(remaining) == ["Email"]

    retired, remaining = retire(manifest, ["UniqueFields"])
    assert retired == manifest
    assert remaining == {}


@pytest.mark.unit
def test_manifest_serialization(manifest):
    value = manifest_to_attribute_value(manifest)
    assert value == {
        "L": [
            {"S": "Email;;;Email;;;APP#SVC#UniqueKey#EMAIL#A@B.COM"},
            {"S": "Handle;;;username;;;APP#SVC#TENANT#UniqueKey#USERNAME#NEO"},
        ]
    }
    assert manifest_from_attribute_value(value) == manifest


@pytest.mark.unit
def test_manifest_parsing_skips_corrupt_entries():
    value = {"L": [{"S": "broken"}, {"S": "A;;;A;;;X#UniqueKey#A#1"}]}
    assert list(manifest_from_attribute_value(value)) == ["A"]
    assert manifest_from_attribute_value(None) == {}


@pytest.mark.unit
def test_unique_index_record_item():
    record = UniqueIndexRecord("APP#SVC#UniqueKey#EMAIL#A@B.COM")
    assert record.to_item() == {
        "PK": {"S": "APP#SVC#UniqueKey#EMAIL#A@B.COM"},
        "SK": {"S": "UniqueKey"},
    }

    with pytest.raises(ValueError):
        UniqueIndexRecord("")
