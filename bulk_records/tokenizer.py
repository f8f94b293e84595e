"""
Delimited text tokenizer and its inverse.

Quoting grammar (shared by parsing and formatting):
- a field may be wrapped in double quotes;
- inside quotes the delimiter and newlines are literal;
- a doubled quote ("") inside quotes is one literal quote;
- whitespace outside quotes is trimmed;
- an unterminated quote runs to the end of the line (never raises).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List

from .errors import InsufficientRowsError
from .rules import DEFAULT_DELIMITER

QUOTE = '"'
LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass
class ParsedContent:
    headers: List[str]
    rows: List[List[str]] = field(default_factory=list)


def _finish_field(chars: List[str], quoted: List[bool]) -> str:
    start, end = 0, len(chars)
    while start < end and not quoted[start] and chars[start].isspace():
        start += 1
    while end > start and not quoted[end - 1] and chars[end - 1].isspace():
        end -= 1
    return "".join(chars[start:end])


def parse_row(line: str, delimiter: str = DEFAULT_DELIMITER) -> List[str]:
    values: List[str] = []
    chars: List[str] = []
    quoted: List[bool] = []
    in_quotes = False

    i = 0
    while i < len(line):
        char = line[i]
        if char == QUOTE:
            if in_quotes and i + 1 < len(line) and line[i + 1] == QUOTE:
                chars.append(QUOTE)
                quoted.append(True)
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            values.append(_finish_field(chars, quoted))
            chars, quoted = [], []
        else:
            chars.append(char)
            quoted.append(in_quotes)
        i += 1

    values.append(_finish_field(chars, quoted))
    return values


def split_records(text: str) -> List[str]:
    """Split text into logical records on LF, CRLF or CR outside quotes."""
    records: List[str] = []
    current: List[str] = []
    in_quotes = False

    i = 0
    while i < len(text):
        char = text[i]
        if char == QUOTE:
            in_quotes = not in_quotes
            current.append(char)
        elif char in "\r\n" and not in_quotes:
            records.append("".join(current))
            current = []
            if char == "\r" and text[i + 1:i + 2] == "\n":
                i += 1
        else:
            current.append(char)
        i += 1

    tail = "".join(current)
    if in_quotes and LINE_BREAK.search(tail):
        # unterminated quote: fall back to plain lines for the remainder
        records.extend(LINE_BREAK.split(tail))
    else:
        records.append(tail)
    return records


def parse_content(
    text: str,
    delimiter: str = DEFAULT_DELIMITER,
    skip_empty_rows: bool = True,
) -> ParsedContent:
    records = split_records(text)

    non_blank = [record for record in records if record.strip()]
    if len(non_blank) < 2:
        raise InsufficientRowsError(
            "CSV must contain at least a header row and one data row",
            {"non_blank_lines": len(non_blank)},
        )

    header_index = next(i for i, record in enumerate(records) if record.strip())
    headers = parse_row(records[header_index], delimiter)

    rows: List[List[str]] = []
    data_records = records[header_index + 1:]
    # a trailing newline is a terminator, not an empty data line
    if data_records and data_records[-1] == "":
        data_records = data_records[:-1]
    for record in data_records:
        if not record.strip():
            if skip_empty_rows:
                continue
            rows.append([""] * len(headers))
            continue
        rows.append(parse_row(record, delimiter))

    return ParsedContent(headers=headers, rows=rows)


def format_field(value: str, delimiter: str = DEFAULT_DELIMITER) -> str:
    text = "" if value is None else str(value)
    needs_quotes = (
        delimiter in text
        or QUOTE in text
        or "\n" in text
        or "\r" in text
        or text != text.strip()
    )
    if needs_quotes:
        return QUOTE + text.replace(QUOTE, QUOTE * 2) + QUOTE
    return text


def format_row(fields: Iterable[str], delimiter: str = DEFAULT_DELIMITER) -> str:
    values = [format_field(value, delimiter) for value in fields]
    if values == [""]:
        # a lone empty field would read back as a blank line
        return QUOTE * 2
    return delimiter.join(values)
