import pytest

from bulk_records.bulk import validate_bulk
from bulk_records.headers import validate_headers
from bulk_records.schema import CONTACT_SCHEMA, DEAL_SCHEMA
from bulk_records.templates import generate_template, template_filename
from bulk_records.tokenizer import parse_content
from bulk_records.transform import row_to_map, transform_row


def test_header_only_template():
    text = generate_template(CONTACT_SCHEMA, include_examples=False)
    assert text.count("\n") == 1
    assert text.startswith("firstName,lastName,email,phone,")
    assert "timezone" not in text
    assert "createdAt" not in text


@pytest.mark.parametrize("schema", [CONTACT_SCHEMA, DEAL_SCHEMA])
def test_template_examples_pass_import_validation(schema):
    parsed = parse_content(generate_template(schema))
    report = validate_headers(parsed.headers, schema)
    assert report.is_valid
    assert report.warnings == []

    entities = [transform_row(row_to_map(parsed.headers, cells), report.valid_headers, schema) for cells in parsed.rows]
    result = validate_bulk(entities, schema)
    assert result.summary.invalid == 0
    assert result.summary.valid == len(schema.examples)


def test_template_filename():
    assert template_filename(DEAL_SCHEMA) == "deals_import_template.csv"
