"""
Enumeration types for the covenant correlation engine.

All enums inherit from str so they serialize to plain JSON values and form
closed sets that the engine can match exhaustively.
"""

from enum import Enum


class CovenantStatus(str, Enum):
    """
    Current compliance status of a covenant.

    Ordered by severity for risk scoring: breached > at_risk > waived > active.
    """

    ACTIVE = "active"
    WAIVED = "waived"
    AT_RISK = "at_risk"
    BREACHED = "breached"


class CorrelationStrength(str, Enum):
    """Strength bucket for |r| using fixed breakpoints."""

    VERY_STRONG = "very_strong"
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"
    VERY_WEAK = "very_weak"


class CorrelationDirection(str, Enum):
    """Sign of a correlation coefficient."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class LeadLagType(str, Enum):
    """Temporal relationship of a source covenant to a target covenant."""

    LEADING = "leading"
    LAGGING = "lagging"
    SYNCHRONOUS = "synchronous"


class RiskTier(str, Enum):
    """Qualitative risk tier for a covenant affected by contagion."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ScopeKind(str, Enum):
    """Granularity of the covenant set requested by the caller."""

    PORTFOLIO = "portfolio"
    BORROWER = "borrower"
    FACILITY = "facility"
    COVENANTS = "covenants"


class DiagnosticCode(str, Enum):
    """Non-fatal conditions reported alongside engine results."""

    INSUFFICIENT_DATA = "insufficient_data"
    DEGENERATE_SERIES = "degenerate_series"
    CONVERGENCE_WARNING = "convergence_warning"
    DUPLICATE_PERIOD = "duplicate_period"


class DiagnosticSeverity(str, Enum):
    """How much a diagnostic affects the interpretation of results."""

    INFO = "info"
    WARNING = "warning"
