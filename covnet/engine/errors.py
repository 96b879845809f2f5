"""
Error taxonomy for the covenant correlation engine.

InsufficientDataError and DegenerateSeriesError are raised at the point of
detection and converted into diagnostics by the pipeline, so they only ever
skip the affected covenant or pair. InvalidScopeError aborts the single
requested operation and is reported to the caller.
"""

from typing import Iterable


class CovnetError(Exception):
    """Base exception for engine failures tied to specific covenants."""

    def __init__(self, message: str, covenant_ids: Iterable[str] = ()):
        super().__init__(message)
        self.message = message
        self.covenant_ids = sorted(covenant_ids)


class InsufficientDataError(CovnetError):
    """A covenant or pair lacks the minimum number of samples."""


class DegenerateSeriesError(CovnetError):
    """A series has zero variance over the periods being compared."""


class InvalidScopeError(CovnetError):
    """The caller referenced a covenant, facility or borrower not in the data."""


class ConvergenceWarning(UserWarning):
    """Centrality power iteration hit the iteration cap without converging."""
