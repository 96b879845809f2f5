"""Calendar-quarter arithmetic shared by the assembler and the analyzers."""

from datetime import date, timedelta


def quarter_index(d: date) -> int:
    """Return a monotonically increasing integer index for the quarter of ``d``."""
    return d.year * 4 + (d.month - 1) // 3


def quarter_end(d: date) -> date:
    """Normalize a date to the last day of its calendar quarter."""
    return index_to_quarter_end(quarter_index(d))


def index_to_quarter_end(index: int) -> date:
    """Inverse of ``quarter_index``: the quarter-end date for an index."""
    year, quarter = divmod(index, 4)
    end_month = quarter * 3 + 3
    if end_month == 12:
        return date(year, 12, 31)
    return date(year, end_month + 1, 1) - timedelta(days=1)
