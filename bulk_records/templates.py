from __future__ import annotations

from .rules import DEFAULT_DELIMITER
from .schema import Schema
from .tokenizer import format_row


def template_filename(schema: Schema) -> str:
    return f"{schema.plural}_import_template.csv"


def generate_template(
    schema: Schema,
    include_examples: bool = True,
    delimiter: str = DEFAULT_DELIMITER,
) -> str:
    """
    Build an import template.

    The header row uses canonical field names so the file can be filled in
    and imported as-is. Example rows are quoted with the exporter's rules.
    """
    fields = schema.importable_fields
    lines = [format_row(fields, delimiter)]
    if include_examples:
        for example in schema.examples:
            lines.append(format_row([example.get(name, "") for name in fields], delimiter))
    return "".join(line + "\n" for line in lines)
