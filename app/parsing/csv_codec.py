"""
app/parsing/csv_codec.py

Permissive CSV reader and minimal-quoting writer for survey files.

Parsing is line oriented: the input is split on LF or CRLF first, so a
quoted field cannot span lines. Rows may be ragged; a short row simply has
fewer fields than the header and a long row keeps its extra fields.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from collections.abc import Iterable, Sequence
from typing import Any

from app.logging_utils import log_event

logger = logging.getLogger(__name__)

Row = list[str]

LIST_DELIMITER = "|"

_LINE_BREAK = re.compile(r"\r\n|\n")


class EmptyInputError(ValueError):
    """
    Raised when the text holds no non-blank lines.
    """

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "The CSV file is empty or could not be parsed. Please check the file content."
        )


def parse_line(line: str) -> Row:
    """
    Split one physical line into trimmed fields.

    A double quote toggles quoted mode, except that a doubled quote inside
    quoted mode emits one literal quote. Commas only separate fields
    outside quoted mode.
    """

    fields: Row = []
    current: list[str] = []
    in_quotes = False
    index = 0
    length = len(line)
    while index < length:
        char = line[index]
        if char == '"':
            if in_quotes and index + 1 < length and line[index + 1] == '"':
                current.append('"')
                index += 1
            else:
                in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        index += 1
    fields.append("".join(current).strip())
    return fields


def find_ragged_rows(rows: Sequence[Row]) -> list[int]:
    """
    Return the indexes of rows whose field count differs from the header's.
    """

    if not rows:
        return []
    expected = len(rows[0])
    return [index for index, row in enumerate(rows) if len(row) != expected]


def parse_csv(text: str) -> list[Row]:
    """
    Parse raw CSV text into rows; row 0 is the header.

    Raises:
        EmptyInputError: when no non-blank lines remain.
    """

    lines = [line for line in _LINE_BREAK.split(text or "") if line.strip()]
    if not lines:
        raise EmptyInputError()

    rows = [parse_line(line) for line in lines]

    ragged = find_ragged_rows(rows)
    if ragged:
        log_event(
            logger,
            logging.WARNING,
            "csv_ragged_rows",
            expected_fields=len(rows[0]),
            ragged_row_count=len(ragged),
            first_ragged_line=ragged[0] + 1,
        )
    return rows


def cell_text(value: Any) -> str:
    """
    Render one value as cell text before quoting.

    ``None`` becomes an empty string, lists/tuples are joined with ``|``
    and booleans are written as ``true``/``false``.
    """

    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return LIST_DELIMITER.join("" if item is None else str(item) for item in value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def serialize_csv(rows: Iterable[Sequence[Any]], *, line_terminator: str = "\n") -> str:
    """
    Join rows into CSV text, quoting only fields that contain a comma,
    a double quote or a line break.
    """

    buffer = io.StringIO()
    # CRLF as the writer's terminator makes both \r and \n force quoting.
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    lines: list[str] = []
    for row in rows:
        writer.writerow([cell_text(value) for value in row])
        lines.append(buffer.getvalue()[:-2])
        buffer.seek(0)
        buffer.truncate()
    return line_terminator.join(lines)
