"""
app/services/ingestion_service.py

Turns uploaded CSV content into a typed survey dataset and validates the
column mapping chosen for analysis.

Ingestion failures are fatal to the upload: no partial dataset is kept.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from app.domain.survey import SurveyDataset, SurveyRecord
from app.parsing.csv_codec import Row, find_ragged_rows, parse_csv

logger = logging.getLogger(__name__)

FIRST_DATA_ROW_ID = 2


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class CSVDecodeError(ValueError):
    """
    Raised when uploaded bytes are not valid UTF-8 text.
    """


class ColumnMappingError(ValueError):
    """
    Raised when a column mapping names columns the dataset does not have.
    """


# ---------------------------------------------------------------------------
# Column mapping
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ColumnMapping:
    """
    Which columns hold the response text, the optional date and the filter dimensions.
    """

    text_column: str
    date_column: str | None = None
    dimension_columns: tuple[str, ...] = ()


def available_dimensions(headers: Sequence[str], mapping: ColumnMapping | None = None) -> list[str]:
    """
    Headers usable as equality filters: everything except the text and date columns.
    """

    if mapping is None:
        return list(headers)
    excluded = {mapping.text_column, mapping.date_column}
    return [header for header in headers if header not in excluded]


def validate_mapping(
    headers: Sequence[str],
    *,
    text_column: str | None,
    date_column: str | None = None,
    dimension_columns: Sequence[str] = (),
) -> ColumnMapping:
    """
    Validate a mapping once against the header set.
    """

    header_set = set(headers)
    text_column = (text_column or "").strip()
    if not text_column:
        raise ColumnMappingError("Please select the column for response text.")
    if text_column not in header_set:
        raise ColumnMappingError(f"Text column '{text_column}' is not in the CSV header.")

    resolved_date = (date_column or "").strip() or None
    if resolved_date is not None and resolved_date not in header_set:
        raise ColumnMappingError(f"Date column '{resolved_date}' is not in the CSV header.")

    dimensions: list[str] = []
    for column in dimension_columns:
        if column not in header_set:
            raise ColumnMappingError(f"Dimension column '{column}' is not in the CSV header.")
        if column in (text_column, resolved_date):
            raise ColumnMappingError(
                f"Column '{column}' is mapped as text or date and cannot be a dimension."
            )
        if column not in dimensions:
            dimensions.append(column)

    return ColumnMapping(
        text_column=text_column,
        date_column=resolved_date,
        dimension_columns=tuple(dimensions),
    )


# ---------------------------------------------------------------------------
# Dataset construction
# ---------------------------------------------------------------------------


def decode_upload(raw: bytes) -> str:
    """
    Decode uploaded bytes as UTF-8, dropping a leading byte-order mark.
    """

    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise CSVDecodeError("CSV must be UTF-8 encoded.") from exc


def build_dataset(rows: Sequence[Row]) -> SurveyDataset:
    """
    Reinterpret parsed rows as records keyed by the header in row 0.

    Short rows leave their trailing fields absent; fields beyond the
    header are dropped.
    """

    headers = tuple(rows[0])
    records: list[SurveyRecord] = []
    for index, row in enumerate(rows[1:]):
        fields = {header: row[position] for position, header in enumerate(headers) if position < len(row)}
        records.append(SurveyRecord(row_id=index + FIRST_DATA_ROW_ID, fields=fields))

    ragged = tuple(index - 1 + FIRST_DATA_ROW_ID for index in find_ragged_rows(rows) if index > 0)
    return SurveyDataset(headers=headers, records=tuple(records), ragged_row_ids=ragged)


def ingest_csv_text(text: str) -> SurveyDataset:
    """
    Parse CSV text into a dataset.

    Raises:
        EmptyInputError: when the text has no non-blank lines.
    """

    dataset = build_dataset(parse_csv(text))
    logger.info(
        "Ingested CSV with %d column(s) and %d data row(s)",
        len(dataset.headers),
        len(dataset.records),
    )
    return dataset
