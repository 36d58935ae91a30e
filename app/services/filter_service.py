"""
app/services/filter_service.py

Dimension-equality and date-range filtering over classified results, plus
the filter options derived from a result set.

All functions are pure and never raise on well-formed records.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime

from app.domain.survey import ClassifiedRecord, DateRange, FilterSet

ENTIRE_DATASET = "the entire dataset"


def _as_filter_set(filters: FilterSet | Mapping[str, str] | None) -> FilterSet:
    if filters is None:
        return FilterSet()
    if isinstance(filters, FilterSet):
        return filters
    return FilterSet(values=filters)


def _in_range(record: ClassifiedRecord, date_range: DateRange) -> bool:
    if date_range.start is not None and (record.date is None or record.date < date_range.start):
        return False
    if date_range.end is not None and (record.date is None or record.date > date_range.end):
        return False
    return True


def apply_filters(
    records: Sequence[ClassifiedRecord],
    filters: FilterSet | Mapping[str, str] | None = None,
    date_range: DateRange | None = None,
) -> Sequence[ClassifiedRecord]:
    """
    Keep records matching every active dimension filter and the date range.

    With no active filters and an open range the input object itself is
    returned, so callers can use identity for caching. Order is preserved.
    """

    active = _as_filter_set(filters).active()
    date_range = date_range or DateRange()
    if not active and date_range.is_open:
        return records

    return [
        record
        for record in records
        if all(record.get(dimension) == value for dimension, value in active.items())
        and _in_range(record, date_range)
    ]


def available_filters(
    records: Sequence[ClassifiedRecord],
    dimensions: Sequence[str],
) -> dict[str, list[str]]:
    """
    Sorted distinct non-empty values per dimension.
    """

    options: dict[str, list[str]] = {}
    for dimension in dimensions:
        values = {record.get(dimension) for record in records}
        options[dimension] = sorted(value for value in values if value)
    return options


def date_bounds(records: Sequence[ClassifiedRecord]) -> tuple[datetime | None, datetime | None]:
    """
    Earliest and latest record date, or ``(None, None)`` when no record has one.
    """

    dates = [record.date for record in records if record.date is not None]
    if not dates:
        return None, None
    return min(dates), max(dates)


def describe_filters(filters: FilterSet | Mapping[str, str] | None) -> str:
    """
    Human-readable summary of active filters, e.g. ``"region: EU, plan: pro"``.
    """

    active = _as_filter_set(filters).active()
    if not active:
        return ENTIRE_DATASET
    return ", ".join(f"{dimension}: {value}" for dimension, value in active.items())
