"""
app/domain/survey.py

Domain models for ingested survey rows, classified results and the
filter inputs applied to them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from types import MappingProxyType
from typing import Mapping

from classification.schema import Classification

NO_FILTER = "all"
"""Filter value meaning "do not constrain this dimension"."""


@dataclass(frozen=True)
class SurveyRecord:
    """
    One data row keyed by header name.

    ``row_id`` is the 1-based line number in the source file counting the
    header, so the first data row is ``2``. Fields missing from a short
    row are simply absent from ``fields``.
    """

    row_id: int
    fields: Mapping[str, str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def get(self, name: str) -> str | None:
        return self.fields.get(name)


@dataclass(frozen=True)
class SurveyDataset:
    """
    Schema discovered at ingestion: ordered header names plus the records.
    """

    headers: tuple[str, ...]
    records: tuple[SurveyRecord, ...]
    ragged_row_ids: tuple[int, ...] = ()

    @property
    def has_ragged_rows(self) -> bool:
        return bool(self.ragged_row_ids)


@dataclass(frozen=True)
class ClassifiedRecord:
    """
    A survey record after its classification attempt.

    At most one of ``classification`` and ``error`` is set. ``ambiguous_date``
    marks a numeric date read month-first that could also be day-first.
    """

    record: SurveyRecord
    date: datetime | None = None
    classification: Classification | None = None
    error: str | None = None
    ambiguous_date: bool = False

    def __post_init__(self) -> None:
        if self.classification is not None and self.error is not None:
            raise ValueError("A classified record cannot carry both a classification and an error.")

    @property
    def row_id(self) -> int:
        return self.record.row_id

    def get(self, name: str) -> str | None:
        return self.record.get(name)

    @property
    def topics(self) -> list[str]:
        if self.classification is None:
            return []
        return list(self.classification.topics)


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive, optional date bounds.
    """

    start: datetime | None = None
    end: datetime | None = None

    @classmethod
    def from_dates(cls, start: date | None = None, end: date | None = None) -> "DateRange":
        """
        Expand calendar days to whole-day bounds: ``start 00:00:00`` .. ``end 23:59:59``.
        """

        return cls(
            start=datetime.combine(start, time.min) if start is not None else None,
            end=datetime.combine(end, time(23, 59, 59)) if end is not None else None,
        )

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None


@dataclass(frozen=True)
class FilterSet:
    """
    Dimension name -> accepted value; ``""`` or ``"all"`` means no constraint.
    """

    values: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def active(self) -> dict[str, str]:
        return {
            dimension: value
            for dimension, value in self.values.items()
            if value and value != NO_FILTER
        }
