from bulk_records.bulk import DuplicateKeyRegistry, has_any_data, validate_bulk
from bulk_records.schema import CONTACT_SCHEMA


def row(first, last, email, **extra):
    entity = {"firstName": first, "lastName": last, "email": email}
    entity.update(extra)
    return entity


def test_row_accounting():
    entities = [
        row("John", "Doe", "john@x.com"),
        row("Jane", "Doe", "not-an-email"),
        {},
        row("Jim", "Doe", "jim@x.com"),
    ]
    result = validate_bulk(entities, CONTACT_SCHEMA)
    assert result.summary.total == 4
    assert result.summary.valid + result.summary.invalid == result.summary.total
    assert [r.row_number for r in result.valid_entities] == [1, 4]
    assert [r.row_number for r in result.invalid_entities] == [2, 3]
    assert result.invalid_entities[1].errors == ["Row 3: Empty row detected"]


def test_long_email_is_invalid():
    email = "x" * 60 + "@" + "y" * 55 + ".com"
    result = validate_bulk([row("John", "Doe", email)], CONTACT_SCHEMA)
    assert result.summary.valid == 0
    assert "Email cannot exceed 100 characters" in result.invalid_entities[0].errors


def test_duplicate_key_within_batch():
    entities = [
        row("John", "Doe", "john@x.com"),
        row("Johnny", "Doe", " JOHN@x.com "),
    ]
    result = validate_bulk(entities, CONTACT_SCHEMA)
    assert [r.row_number for r in result.valid_entities] == [1]
    assert result.invalid_entities[0].errors == [
        "Row 2: Duplicate email 'john@x.com' within import (first seen at row 1)"
    ]
    assert result.duplicate_keys == ["john@x.com"]
    assert result.summary.duplicates == 1


def test_valid_rows_carry_sanitized_data_and_invalid_rows_raw_data():
    entities = [row("John", "Doe", "John@X.com", tags=["a", "a"]), row("", "Doe", "bad")]
    result = validate_bulk(entities, CONTACT_SCHEMA)
    valid = result.valid_entities[0]
    assert valid.sanitized_data["email"] == "john@x.com"
    assert valid.sanitized_data["tags"] == ["a"]
    assert valid.raw_data is None
    invalid = result.invalid_entities[0]
    assert invalid.raw_data == entities[1]
    assert invalid.sanitized_data is None


def test_validation_is_repeatable():
    entities = [row("John", "Doe", "john@x.com"), row("John", "Doe", "john@x.com")]
    first = validate_bulk(entities, CONTACT_SCHEMA)
    second = validate_bulk(entities, CONTACT_SCHEMA)
    assert first == second


def test_registry_reports_first_row():
    registry = DuplicateKeyRegistry()
    assert registry.claim("a", 1) is None
    assert registry.claim("a", 5) == 1
    assert registry.claim("a", 7) == 1
    assert registry.conflicts == ["a"]


def test_has_any_data():
    assert not has_any_data({"firstName": "", "address": {"city": ""}, "tags": []})
    assert has_any_data({"address": {"city": "Oslo"}})
