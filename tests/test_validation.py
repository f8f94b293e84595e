from datetime import datetime, timezone

import pytest

from bulk_records.schema import CONTACT_SCHEMA, DEAL_SCHEMA
from bulk_records.validation import is_valid_email, is_valid_url, validate

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


def contact(**overrides):
    entity = {"firstName": "John", "lastName": "Doe", "email": "john@example.com"}
    entity.update(overrides)
    return entity


def deal(**overrides):
    entity = {
        "title": "Renewal",
        "value": 1000,
        "expectedCloseDate": datetime(2027, 1, 1, tzinfo=timezone.utc),
        "owner": "u1",
        "contact": "c1",
    }
    entity.update(overrides)
    return entity


def test_minimal_contact_is_valid_for_import():
    assert validate(contact(), CONTACT_SCHEMA, mode="import").is_valid


def test_create_requires_owner():
    result = validate(contact(), CONTACT_SCHEMA, mode="create", now=NOW)
    assert result.errors == ["Contact owner is required"]


def test_update_requires_nothing():
    assert validate({"company": "Acme"}, CONTACT_SCHEMA, mode="update").is_valid


def test_required_field_messages():
    result = validate({"email": "a@x.com"}, CONTACT_SCHEMA, mode="import")
    assert "First name is required" in result.errors
    assert "Last name is required" in result.errors


def test_email_length_limit():
    long_email = "a" * 60 + "@" + "b" * 55 + ".com"
    result = validate(contact(email=long_email), CONTACT_SCHEMA, mode="import")
    assert "Email cannot exceed 100 characters" in result.errors


def test_name_pattern():
    result = validate(contact(firstName="J0hn"), CONTACT_SCHEMA, mode="import")
    assert result.errors == [
        "First name can only contain letters, spaces, hyphens, apostrophes, and periods"
    ]


def test_enum_message():
    result = validate(contact(status="vip"), CONTACT_SCHEMA, mode="import")
    assert result.errors == ["Invalid status. Must be one of: active, inactive, prospect, customer, lead"]


def test_currency_is_case_insensitive():
    assert validate(deal(currency="usd"), DEAL_SCHEMA, mode="import").is_valid


def test_social_urls_check_host():
    good = contact(socialMedia={"twitter": "https://www.x.com/someone"})
    bad = contact(socialMedia={"twitter": "https://example.com/someone"})
    assert validate(good, CONTACT_SCHEMA, mode="import").is_valid
    assert validate(bad, CONTACT_SCHEMA, mode="import").errors == ["Invalid Twitter URL format"]


def test_postal_code_by_country():
    ok = contact(address={"zipCode": "94105", "country": "US"})
    bad = contact(address={"zipCode": "ABCDE", "country": "US"})
    fallback = contact(address={"zipCode": "12", "country": "Narnia"})
    assert validate(ok, CONTACT_SCHEMA, mode="import").is_valid
    assert validate(bad, CONTACT_SCHEMA, mode="import").errors == [
        "Invalid postal code format for the specified country"
    ]
    assert not validate(fallback, CONTACT_SCHEMA, mode="import").is_valid


def test_duplicate_tags_rejected_outside_import():
    entity = contact(tags=["vip", "vip"], owner="u1")
    assert validate(entity, CONTACT_SCHEMA, mode="import").is_valid
    assert "Duplicate tags are not allowed" in validate(entity, CONTACT_SCHEMA, mode="create", now=NOW).errors


def test_deal_value_range():
    assert validate(deal(value=-1), DEAL_SCHEMA, mode="import").errors == ["Deal value cannot be negative"]
    assert validate(deal(value=10**9), DEAL_SCHEMA, mode="import").errors == [
        "Deal value cannot exceed 999,999,999"
    ]
    assert validate(deal(value="lots"), DEAL_SCHEMA, mode="import").errors == [
        "Deal value must be a valid number"
    ]


def test_expected_close_date_window_only_on_create():
    past = deal(expectedCloseDate=datetime(2026, 1, 1, tzinfo=timezone.utc))
    assert validate(past, DEAL_SCHEMA, mode="import", now=NOW).is_valid
    assert validate(past, DEAL_SCHEMA, mode="create", now=NOW).errors == [
        "Expected close date cannot be in the past"
    ]


def test_closed_deals_need_reasons():
    lost = deal(stage="closed_lost")
    errors = validate(lost, DEAL_SCHEMA, mode="create", now=NOW).errors
    assert "Close reason is required for closed deals" in errors
    assert "Lost reason is required for lost deals" in errors
    assert validate(lost, DEAL_SCHEMA, mode="import").is_valid


def test_line_item_totals():
    items = [{"name": "Seat", "quantity": 2, "unitPrice": 10.0, "totalPrice": 25.0}]
    result = validate(deal(products=items), DEAL_SCHEMA, mode="update")
    assert result.errors == ["Product 1: Total price should equal quantity × unit price"]


def test_unknown_mode():
    with pytest.raises(ValueError):
        validate(contact(), CONTACT_SCHEMA, mode="upsert")


def test_email_and_url_helpers():
    assert is_valid_email("jane.doe+tag@example.co.uk")
    assert not is_valid_email("jane@localhost")
    assert is_valid_url("example.com/path")
    assert not is_valid_url("ftp://example.com")
    assert is_valid_url("https://www.linkedin.com/in/jane", ("linkedin.com",))


def test_non_web_schemes_are_rejected():
    assert not is_valid_url("mailto:a@b.com")
    assert not is_valid_url("javascript:alert(1)")
    assert is_valid_url("example.com:8080/path")
    result = validate(contact(website="mailto:a@b.com"), CONTACT_SCHEMA, mode="import")
    assert result.errors == ["Please provide a valid website URL"]
