from datetime import datetime, timezone

import pytest

from bulk_records.errors import ExportOptionsError
from bulk_records.exporter import Exporter, format_date, to_strftime
from bulk_records.models import ExportFilters, ExportOptions
from bulk_records.schema import CONTACT_SCHEMA, DEAL_SCHEMA
from bulk_records.store import InMemoryRecordStore
from bulk_records.tokenizer import parse_content


def seed(store, **record):
    base = {"firstName": "Ann", "lastName": "Lee", "owner": "u1"}
    base.update(record)
    return store.insert(base)


@pytest.fixture
def store(clock):
    return InMemoryRecordStore(clock)


@pytest.fixture
def exporter(store, clock):
    return Exporter(CONTACT_SCHEMA, store, clock)


def test_note_with_quotes_and_newline_round_trips(store, exporter):
    note = 'Hello, "world"\nsecond line'
    seed(store, email="ann@x.com", notes=note)
    result = exporter.export("u1", ExportOptions(fields=["email", "notes"]))

    assert '"Hello, ""world""\nsecond line"' in result.content
    parsed = parse_content(result.content)
    assert parsed.headers == ["Email", "Notes"]
    assert parsed.rows == [["ann@x.com", note]]


def test_display_and_canonical_headers(store, exporter):
    seed(store, email="ann@x.com")
    display = exporter.export("u1", ExportOptions(fields=["firstName", "zipCode"]))
    canonical = exporter.export("u1", ExportOptions(fields=["firstName", "zipCode"], header_style="canonical"))
    assert display.content.splitlines()[0] == "First Name,Zip Code"
    assert canonical.content.splitlines()[0] == "firstName,zipCode"


def test_values_are_formatted(store, exporter):
    seed(
        store,
        email="ann@x.com",
        tags=["vip", "lead"],
        address={"city": "Oslo"},
        preferences={"doNotContact": True},
        createdAt=datetime(2026, 10, 1, 9, 30, tzinfo=timezone.utc),
    )
    result = exporter.export(
        "u1",
        ExportOptions(
            fields=["tags", "city", "doNotContact", "emailOptOut", "createdAt"],
            include_headers=False,
            date_format="MM/DD/YYYY",
        ),
    )
    assert result.content == "vip; lead,Oslo,Yes,No,10/01/2026\n"


def test_excludes_duplicates_and_other_owners(store, exporter):
    seed(store, email="ann@x.com")
    seed(store, email="ann@x.com", isDuplicate=True)
    seed(store, email="bob@x.com", owner="u2")
    result = exporter.export("u1")
    assert result.count == 1


def test_newest_first_and_filename(store, exporter):
    seed(store, email="old@x.com", createdAt=datetime(2026, 1, 1, tzinfo=timezone.utc))
    seed(store, email="new@x.com", createdAt=datetime(2026, 9, 1, tzinfo=timezone.utc))
    result = exporter.export("u1", ExportOptions(fields=["email"], include_headers=False))
    assert result.content == "new@x.com\nold@x.com\n"
    assert result.filename == "contacts_export_2026-10-17.csv"


def test_filters(store, exporter):
    seed(store, email="a@x.com", status="lead", company="Acme Corp", tags=["vip"])
    seed(store, email="b@x.com", status="customer", company="Globex", tags=["cold"])

    def emails(filters):
        options = ExportOptions(filters=filters, fields=["email"], include_headers=False)
        return exporter.export("u1", options).content.splitlines()

    assert emails(ExportFilters(status="lead")) == ["a@x.com"]
    assert emails(ExportFilters(company="globex")) == ["b@x.com"]
    assert emails(ExportFilters(tags=["cold", "other"])) == ["b@x.com"]
    assert emails(ExportFilters(search="ACME")) == ["a@x.com"]


def test_nothing_to_export(exporter):
    result = exporter.export("u1")
    assert not result.found
    assert result.error == "No contacts found for export"


def test_invalid_fields_rejected(store, exporter):
    seed(store, email="a@x.com")
    with pytest.raises(ExportOptionsError) as excinfo:
        exporter.export("u1", ExportOptions(fields=["email", "password"]))
    assert excinfo.value.message == "Invalid fields: password"


def test_deal_values_and_custom_delimiter(store, clock):
    store.insert({"title": "Deal; one", "value": 1500.0, "currency": "USD", "owner": "u1"})
    result = Exporter(DEAL_SCHEMA, store, clock).export(
        "u1", ExportOptions(fields=["title", "value", "currency"], delimiter=";", include_headers=False)
    )
    assert result.content == '"Deal; one";1500;USD\n'


def test_date_format_tokens():
    assert to_strftime("YYYY-MM-DD HH:mm") == "%Y-%m-%d %H:%M"
    assert to_strftime("iso") is None
    stamp = datetime(2026, 3, 4, 5, 6, tzinfo=timezone.utc)
    assert format_date(stamp, "DD.MM.YYYY") == "04.03.2026"
    assert format_date(stamp, "ISO") == "2026-03-04T05:06:00+00:00"


def test_single_column_blank_values_survive_reparse(store, exporter):
    seed(store, email="a@x.com", phone="555-1234", createdAt=datetime(2026, 9, 1, tzinfo=timezone.utc))
    seed(store, email="b@x.com", createdAt=datetime(2026, 1, 1, tzinfo=timezone.utc))
    result = exporter.export("u1", ExportOptions(fields=["phone"]))

    assert result.count == 2
    assert result.content == 'Phone\n555-1234\n""\n'
    assert parse_content(result.content).rows == [["555-1234"], [""]]


def test_windows_line_breaks_in_notes_round_trip(store, exporter):
    note = "line one\r\nline two"
    seed(store, email="a@x.com", notes=note)
    result = exporter.export("u1", ExportOptions(fields=["notes"]))
    assert parse_content(result.content).rows == [[note]]
