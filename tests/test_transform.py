from datetime import datetime, timezone

from bulk_records.schema import CONTACT_SCHEMA, DEAL_SCHEMA
from bulk_records.transform import coerce_number, parse_date, row_to_map, transform_row


def test_row_to_map_pads_and_truncates():
    assert row_to_map(["a", "b", "c"], ["1"]) == {"a": "1", "b": "", "c": ""}
    assert row_to_map(["a"], ["1", "2"]) == {"a": "1"}


def test_group_only_built_when_populated():
    headers = ["firstName", "lastName", "email", "city", "country"]
    empty = transform_row(
        {"firstName": "A", "lastName": "B", "email": "a@x.com", "city": "", "country": " "},
        headers,
        CONTACT_SCHEMA,
    )
    assert "address" not in empty

    filled = transform_row(
        {"firstName": "A", "lastName": "B", "email": "a@x.com", "city": "Paris", "country": ""},
        headers,
        CONTACT_SCHEMA,
    )
    assert filled["address"] == {"city": "Paris", "country": ""}


def test_tags_keep_order_and_duplicates():
    entity = transform_row(
        {"firstName": "A", "lastName": "B", "email": "a@x.com", "tags": "vip, lead ,vip,"},
        ["firstName", "lastName", "email", "tags"],
        CONTACT_SCHEMA,
    )
    assert entity["tags"] == ["vip", "lead", "vip"]


def test_ignores_columns_outside_valid_headers():
    entity = transform_row(
        {"firstName": "A", "lastName": "B", "email": "a@x.com", "extra": "x"},
        ["firstName", "lastName", "email"],
        CONTACT_SCHEMA,
    )
    assert entity == {"firstName": "A", "lastName": "B", "email": "a@x.com"}


def test_deal_numbers_and_dates_are_converted():
    entity = transform_row(
        {"title": "Deal", "value": "1500.5", "expectedCloseDate": "2027-01-31", "probability": ""},
        ["title", "value", "expectedCloseDate", "probability"],
        DEAL_SCHEMA,
    )
    assert entity["value"] == 1500.5
    assert entity["expectedCloseDate"] == datetime(2027, 1, 31, tzinfo=timezone.utc)
    assert "probability" not in entity


def test_unparseable_values_stay_as_text():
    entity = transform_row(
        {"title": "Deal", "value": "lots", "expectedCloseDate": "soon"},
        ["title", "value", "expectedCloseDate"],
        DEAL_SCHEMA,
    )
    assert entity["value"] == "lots"
    assert entity["expectedCloseDate"] == "soon"


def test_coerce_number():
    assert coerce_number("42") == 42
    assert coerce_number(" 3.25 ") == 3.25
    assert coerce_number("nan") == "nan"
    assert coerce_number("abc") == "abc"


def test_parse_date_formats():
    assert parse_date("03/15/2027") == datetime(2027, 3, 15, tzinfo=timezone.utc)
    assert parse_date("2027-03-15T10:30:00+00:00") == datetime(2027, 3, 15, 10, 30, tzinfo=timezone.utc)
    assert parse_date("") is None
    assert parse_date("not a date") is None
