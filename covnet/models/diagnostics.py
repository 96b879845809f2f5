"""
Diagnostic records for non-fatal engine conditions.

Partial, explainable results are preferred over total failure: skipped
covenants, degenerate pairs and approximate centrality are all reported as
diagnostics next to the primary result instead of being raised.
"""

from pydantic import BaseModel, ConfigDict, Field

from .enums import DiagnosticCode, DiagnosticSeverity


class Diagnostic(BaseModel):
    """
    A single non-fatal condition observed during an engine run.

    Attributes:
        code: Machine-readable condition code
        severity: Info for expected skips, warning for degraded results
        covenant_ids: Covenants the condition applies to (sorted)
        message: Human-readable explanation
    """

    model_config = ConfigDict(frozen=True)

    code: DiagnosticCode = Field(description="Machine-readable condition code")
    severity: DiagnosticSeverity = Field(
        default=DiagnosticSeverity.WARNING, description="Impact on result interpretation"
    )
    covenant_ids: list[str] = Field(
        default_factory=list, description="Covenants the condition applies to"
    )
    message: str = Field(description="Human-readable explanation")
