"""
app/domain package marker.
"""

from app.domain.survey import (
    NO_FILTER,
    ClassifiedRecord,
    DateRange,
    FilterSet,
    SurveyDataset,
    SurveyRecord,
)

__all__ = [
    "NO_FILTER",
    "ClassifiedRecord",
    "DateRange",
    "FilterSet",
    "SurveyDataset",
    "SurveyRecord",
]
