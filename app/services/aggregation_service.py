"""
app/services/aggregation_service.py

Aggregations over classified survey results for chart rendering.

Three shapes are produced from a (usually filtered) result set:

counts
    ``(value, count)`` pairs for one classification field, most frequent
    first. Multi-valued fields (``topics``, ``emotions``) count every list
    element independently.

topic tree
    The main topic / sub-topic hierarchy. Nodes live in a flat arena and
    refer to their children by index; a node is keyed by its parent and
    its name, so the same sub-topic under two main topics gives two nodes.

time series
    Counts per calendar bucket (day, Sunday-start week, month) for every
    value of the grouping field. The set of values is fixed across all
    buckets so a value missing from a bucket shows up as an explicit zero.

Records without a classification contribute to nothing. Nothing here
raises on well-formed records; unknown field or period names are caller
errors and raise ``ValueError``.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Final, Literal

import pandas as pd

from app.domain.survey import ClassifiedRecord
from classification.schema import Classification

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Field constants
# ---------------------------------------------------------------------------

SINGLE_VALUED_FIELDS: Final[frozenset[str]] = frozenset({"sentiment", "intent"})
MULTI_VALUED_FIELDS: Final[frozenset[str]] = frozenset({"topics", "emotions"})
COUNTABLE_FIELDS: Final[frozenset[str]] = SINGLE_VALUED_FIELDS | MULTI_VALUED_FIELDS

TREND_GROUP_FIELDS: Final[frozenset[str]] = frozenset({"sentiment", "intent", "topics"})

TOPIC_CHART_LIMIT: Final[int] = 10
"""Bars shown in the topic chart."""

TrendPeriod = Literal["day", "week", "month"]

# Weeks end on Saturday, so each bucket starts on a Sunday.
_PERIOD_FREQ: Final[dict[str, str]] = {
    "day": "D",
    "week": "W-SAT",
    "month": "M",
}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _require_field(name: str, allowed: frozenset[str]) -> None:
    if name not in allowed:
        raise ValueError(f"Unsupported field '{name}'. Allowed values: {sorted(allowed)}.")


def _field_values(classification: Classification | None, name: str) -> list[str]:
    """
    Non-empty values a classification contributes for *name*.
    """

    if classification is None:
        return []
    raw = getattr(classification, name, None)
    if isinstance(raw, (list, tuple)):
        return [str(item) for item in raw if item]
    if raw:
        return [str(raw)]
    return []


def _ranked(counter: Counter, top_n: int | None) -> list[tuple[str, int]]:
    """
    Most frequent first (ties keep first-seen order); with *top_n*, keep the
    top entries and flip them to ascending for bottom-up bar charts.
    """

    ranked = counter.most_common()
    if top_n:
        return list(reversed(ranked[:top_n]))
    return ranked


# ---------------------------------------------------------------------------
# Counts
# ---------------------------------------------------------------------------


def count_by(
    records: Iterable[ClassifiedRecord],
    field_name: str,
    top_n: int | None = None,
) -> list[tuple[str, int]]:
    """
    Count classification values for *field_name*.
    """

    _require_field(field_name, COUNTABLE_FIELDS)
    counter: Counter = Counter()
    for record in records:
        counter.update(_field_values(record.classification, field_name))
    return _ranked(counter, top_n)


def total_count(counts: Sequence[tuple[str, int]]) -> int:
    return sum(count for _, count in counts)


def topic_chart_data(
    records: Iterable[ClassifiedRecord],
    selected_topic: str | None = None,
    top_n: int = TOPIC_CHART_LIMIT,
) -> list[tuple[str, int]]:
    """
    Main-topic counts, or the sub-topic counts of *selected_topic*.

    Only the first topic counts at the top level; with a selection, only
    records whose main topic matches and which carry a sub-topic count.
    """

    counter: Counter = Counter()
    for record in records:
        topics = record.topics
        if not topics:
            continue
        if selected_topic is None:
            counter[topics[0]] += 1
        elif topics[0] == selected_topic and len(topics) > 1:
            counter[topics[1]] += 1
    return _ranked(counter, top_n)


def group_records(
    records: Iterable[ClassifiedRecord],
    field_name: str,
) -> dict[str, list[ClassifiedRecord]]:
    """
    Records grouped by a single-valued classification field, first-seen order.
    """

    _require_field(field_name, SINGLE_VALUED_FIELDS)
    groups: dict[str, list[ClassifiedRecord]] = {}
    for record in records:
        for value in _field_values(record.classification, field_name):
            groups.setdefault(value, []).append(record)
    return groups


# ---------------------------------------------------------------------------
# Topic tree
# ---------------------------------------------------------------------------


@dataclass
class TopicNode:
    """
    One topic at one position in the hierarchy.

    ``count`` is the number of records whose topic path passes through this
    node; ``responses`` holds those records in input order. ``children``
    are arena indexes in first-seen order. ``expanded`` is display state.
    """

    name: str
    depth: int
    parent: int | None = None
    count: int = 0
    responses: list[ClassifiedRecord] = field(default_factory=list)
    children: list[int] = field(default_factory=list)
    expanded: bool = False


class TopicTree:
    """
    Arena of topic nodes; roots are ordered by descending count.
    """

    def __init__(self, nodes: list[TopicNode], root_indexes: list[int]) -> None:
        self._nodes = nodes
        self._roots = root_indexes

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def nodes(self) -> tuple[TopicNode, ...]:
        return tuple(self._nodes)

    def roots(self) -> list[TopicNode]:
        return [self._nodes[index] for index in self._roots]

    def children(self, node: TopicNode) -> list[TopicNode]:
        return [self._nodes[index] for index in node.children]

    def path(self, node: TopicNode) -> tuple[str, ...]:
        names = [node.name]
        parent = node.parent
        while parent is not None:
            names.append(self._nodes[parent].name)
            parent = self._nodes[parent].parent
        return tuple(reversed(names))

    def find(self, path: Sequence[str]) -> TopicNode | None:
        candidates = self.roots()
        found: TopicNode | None = None
        for name in path:
            found = next((node for node in candidates if node.name == name), None)
            if found is None:
                return None
            candidates = self.children(found)
        return found

    def expanded_paths(self) -> frozenset[tuple[str, ...]]:
        return frozenset(self.path(node) for node in self._nodes if node.expanded)

    def to_dicts(self) -> list[dict]:
        def _render(node: TopicNode) -> dict:
            return {
                "name": node.name,
                "count": node.count,
                "row_ids": [record.row_id for record in node.responses],
                "expanded": node.expanded,
                "sub_topics": [_render(child) for child in self.children(node)],
            }

        return [_render(root) for root in self.roots()]


def build_topic_tree(
    records: Iterable[ClassifiedRecord],
    expanded_paths: Iterable[Sequence[str]] = (),
) -> TopicTree:
    """
    Walk each record's topic list as a path from the root.

    A node is created the first time its (parent, name) pair is seen and
    registered with its parent once. Every node along the path counts the
    record. Nodes whose path is in *expanded_paths* start expanded.
    """

    nodes: list[TopicNode] = []
    index_by_key: dict[tuple[int | None, str], int] = {}
    root_indexes: list[int] = []

    for record in records:
        parent: int | None = None
        for depth, name in enumerate(record.topics):
            key = (parent, name)
            index = index_by_key.get(key)
            if index is None:
                index = len(nodes)
                nodes.append(TopicNode(name=name, depth=depth, parent=parent))
                index_by_key[key] = index
                if parent is None:
                    root_indexes.append(index)
                else:
                    nodes[parent].children.append(index)
            node = nodes[index]
            node.count += 1
            node.responses.append(record)
            parent = index

    root_indexes.sort(key=lambda index: -nodes[index].count)
    tree = TopicTree(nodes, root_indexes)

    for path in expanded_paths:
        node = tree.find(path)
        if node is not None:
            node.expanded = True
    return tree


# ---------------------------------------------------------------------------
# Time series
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrendPoint:
    date: datetime
    value: int


@dataclass(frozen=True)
class TrendSeries:
    """
    Counts of one group value across every bucket.
    """

    name: str
    values: tuple[TrendPoint, ...]


@dataclass(frozen=True)
class StackedBucket:
    """
    Counts of every group value within one bucket.
    """

    date: datetime
    counts: dict[str, int]

    @property
    def total(self) -> int:
        return sum(self.counts.values())


@dataclass(frozen=True)
class TrendData:
    """
    Time-bucketed counts in two agreeing views: per-value series for line
    and area charts, per-bucket counts for stacked charts.
    """

    period: str
    group_by: str
    dates: tuple[datetime, ...] = ()
    keys: tuple[str, ...] = ()
    series: tuple[TrendSeries, ...] = ()
    stacked: tuple[StackedBucket, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.dates


def bucket_start(moment: datetime, period: str) -> datetime:
    """
    Truncate *moment* to the start of its calendar day, Sunday-start week or month.
    """

    _require_field(period, frozenset(_PERIOD_FREQ))
    stamp = pd.Timestamp(moment)
    if stamp.tzinfo is not None:
        stamp = stamp.tz_convert("UTC").tz_localize(None)
    return stamp.to_period(_PERIOD_FREQ[period]).start_time.to_pydatetime()


def time_series(
    records: Iterable[ClassifiedRecord],
    period: str = "day",
    group_by: str = "sentiment",
) -> TrendData:
    """
    Bucket dated, classified records by *period* and count *group_by* values.

    Records missing a date or a classification are left out.
    """

    _require_field(period, frozenset(_PERIOD_FREQ))
    _require_field(group_by, TREND_GROUP_FIELDS)

    included = [
        record
        for record in records
        if record.date is not None and record.classification is not None
    ]
    if not included:
        return TrendData(period=period, group_by=group_by)

    buckets = [bucket_start(record.date, period) for record in included]
    dates = tuple(sorted(set(buckets)))
    position_of = {date: position for position, date in enumerate(dates)}
    occurrences = pd.DataFrame(
        [
            (position_of[bucket], value)
            for bucket, record in zip(buckets, included)
            for value in _field_values(record.classification, group_by)
        ],
        columns=["bucket", "value"],
    )
    keys = sorted(set(occurrences["value"]))
    positions = range(len(dates))

    if occurrences.empty:
        table = pd.DataFrame(0, index=positions, columns=keys)
    else:
        table = (
            occurrences.groupby(["bucket", "value"])
            .size()
            .unstack(fill_value=0)
            .reindex(index=positions, columns=keys, fill_value=0)
        )

    stacked = tuple(
        StackedBucket(
            date=date,
            counts={key: int(table.at[position, key]) for key in keys},
        )
        for position, date in enumerate(dates)
    )
    series = tuple(
        TrendSeries(
            name=key,
            values=tuple(
                TrendPoint(date=bucket.date, value=bucket.counts[key]) for bucket in stacked
            ),
        )
        for key in keys
    )
    logger.debug(
        "Built %s trend by %s: %d bucket(s), %d series",
        period,
        group_by,
        len(dates),
        len(series),
    )
    return TrendData(
        period=period,
        group_by=group_by,
        dates=dates,
        keys=tuple(keys),
        series=series,
        stacked=stacked,
    )
