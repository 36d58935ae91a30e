"""
app/services/export_service.py

Flat CSV export of classified survey results.

Column order is fixed::

    rowId, <original headers...>, sentiment, sentiment_score, intent,
    emotions, topics, explanation, confidence, redacted_excerpt

Rows follow the order of the records passed in. Missing survey fields and
missing classification values are written as empty strings; list values
(``emotions``, ``topics``) are pipe-joined before quoting.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from app.domain.survey import ClassifiedRecord
from app.parsing.csv_codec import serialize_csv
from classification.schema import CLASSIFICATION_FIELDS

ROW_ID_COLUMN = "rowId"


# ---------------------------------------------------------------------------
# Export result container
# ---------------------------------------------------------------------------


@dataclass
class ExportResult:
    """
    Flat tabular data ready for CSV serialisation.

    Attributes
    ----------
    fields: Ordered column names.
    rows:   One value list per record, aligned with ``fields``.
    """

    fields: list[str] = field(default_factory=list)
    rows: list[list[Any]] = field(default_factory=list)

    def to_csv(self) -> str:
        return serialize_csv([self.fields, *self.rows])


def export_columns(headers: Sequence[str]) -> list[str]:
    return [ROW_ID_COLUMN, *headers, *CLASSIFICATION_FIELDS]


def _flatten_record(record: ClassifiedRecord, headers: Sequence[str]) -> list[Any]:
    row: list[Any] = [record.row_id]
    row.extend(record.get(header) for header in headers)
    classification = record.classification
    row.extend(
        getattr(classification, name) if classification is not None else None
        for name in CLASSIFICATION_FIELDS
    )
    return row


def build_export(records: Sequence[ClassifiedRecord], headers: Sequence[str]) -> ExportResult:
    return ExportResult(
        fields=export_columns(headers),
        rows=[_flatten_record(record, headers) for record in records],
    )


def export_csv(records: Sequence[ClassifiedRecord], headers: Sequence[str]) -> str:
    """
    Serialize *records* with their original columns and classification fields.
    """

    return build_export(records, headers).to_csv()
