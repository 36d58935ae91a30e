"""
Survey text parsing: CSV codec and date normalization.
"""

from app.parsing.csv_codec import EmptyInputError, parse_csv, serialize_csv
from app.parsing.temporal import normalize_date

__all__ = [
    "EmptyInputError",
    "normalize_date",
    "parse_csv",
    "serialize_csv",
]
