import pytest

from bulk_records.errors import InsufficientRowsError
from bulk_records.tokenizer import format_field, format_row, parse_content, parse_row


def test_parse_row_trims_unquoted_whitespace():
    assert parse_row(" John , Doe ,john@x.com") == ["John", "Doe", "john@x.com"]


def test_parse_row_keeps_quoted_delimiters_and_spaces():
    assert parse_row('"Smith, John","  padded  ",x') == ["Smith, John", "  padded  ", "x"]


def test_parse_row_doubled_quote_is_literal():
    assert parse_row('"say ""hi""",b') == ['say "hi"', "b"]


def test_parse_row_unterminated_quote_runs_to_end_of_line():
    assert parse_row('a,"b,c') == ["a", "b,c"]


def test_parse_row_custom_delimiter():
    assert parse_row("a;b;c", ";") == ["a", "b", "c"]


def test_parse_content_splits_header_and_rows():
    parsed = parse_content("firstName,lastName\r\nJohn,Doe\r\nJane,Roe\r\n")
    assert parsed.headers == ["firstName", "lastName"]
    assert parsed.rows == [["John", "Doe"], ["Jane", "Roe"]]


def test_parse_content_quoted_newline_stays_in_field():
    parsed = parse_content('title,notes\nDeal,"line one\nline two"\n')
    assert parsed.rows == [["Deal", "line one\nline two"]]


def test_parse_content_blank_rows():
    text = "a,b\n1,2\n\n3,4\n"
    assert parse_content(text).rows == [["1", "2"], ["3", "4"]]
    assert parse_content(text, skip_empty_rows=False).rows == [["1", "2"], ["", ""], ["3", "4"]]


def test_parse_content_needs_header_and_data():
    with pytest.raises(InsufficientRowsError):
        parse_content("firstName,lastName\n\n")


def test_format_field_quotes_only_when_needed():
    assert format_field("plain") == "plain"
    assert format_field("a,b") == '"a,b"'
    assert format_field('Hello, "world"\n') == '"Hello, ""world""\n"'
    assert format_field(" edge") == '" edge"'
    assert format_field(None) == ""


@pytest.mark.parametrize(
    "value",
    [
        "",
        "plain",
        "a,b",
        'He said "no"',
        "multi\nline",
        "line one\r\nline two",
        "old\rmac",
        "  spaced  ",
        '",\n"',
    ],
)
def test_format_then_parse_is_identity(value):
    line = format_row([value, "tail"])
    parsed = parse_content("h1,h2\n" + line + "\n")
    assert parsed.rows == [[value, "tail"]]


def test_lone_empty_field_is_quoted():
    assert format_row([""]) == '""'
    assert format_row(["", ""]) == ","
    parsed = parse_content("phone\n555-1234\n" + format_row([""]) + "\n")
    assert parsed.rows == [["555-1234"], [""]]


def test_carriage_returns_end_records_outside_quotes():
    assert parse_content("a,b\r1,2\r3,4\r").rows == [["1", "2"], ["3", "4"]]
    parsed = parse_content('title,notes\r\nDeal,"one\r\ntwo"\r\n')
    assert parsed.rows == [["Deal", "one\r\ntwo"]]
