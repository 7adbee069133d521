"""
Time-range helpers shared by conflict detection and availability search.

Intervals are half-open: ``[start, end)``. Two intervals that only touch
(one ends exactly when the other starts) do not overlap.
"""
from datetime import datetime, timezone

from sqlalchemy import and_


def overlaps(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """
    Return True when ``[a_start, a_end)`` and ``[b_start, b_end)`` intersect.

    Examples
    --------
    >>> from datetime import datetime
    >>> nine, ten, eleven = (datetime(2030, 1, 1, h) for h in (9, 10, 11))
    >>> overlaps(nine, ten, ten, eleven)
    False
    """
    return a_start < b_end and a_end > b_start


def overlap_clause(start_column, end_column, start: datetime, end: datetime):
    """
    Build the SQL form of :func:`overlaps` for a row interval.

    Parameters
    ----------
    start_column, end_column
        Mapped columns holding the row's interval.
    start : datetime
        Start of the candidate interval.
    end : datetime
        End of the candidate interval.

    Returns
    -------
    ColumnElement
        Boolean clause that is true when the row overlaps the candidate.
    """
    return and_(start_column < end, end_column > start)


def utcnow() -> datetime:
    """Current time as naive UTC, the format stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """
    Normalize a datetime to naive UTC.

    Aware values are converted to UTC first; naive values are assumed to be
    UTC already.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
