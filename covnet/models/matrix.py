"""
Dense correlation matrix for visualization consumers.

All matrices are square with the same dimension and labels. The diagonal is
fixed at 1.0 (coefficient), 0.0 (p-value) and 0 (lag).
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .diagnostics import Diagnostic


class MatrixLabel(BaseModel):
    """Display metadata for one matrix row/column."""

    model_config = ConfigDict(frozen=True)

    covenant_id: str
    covenant_name: str = ""
    covenant_type: str = ""
    facility_name: str = ""
    borrower_name: str = ""


class CorrelationMatrix(BaseModel):
    """
    Pairwise coefficient, p-value and lead-lag matrices.

    ``lead_lag_matrix[i][j]`` is the lag of row covenant i relative to column
    covenant j (positive = row leads), so the lag matrix is antisymmetric.
    """

    model_config = ConfigDict(frozen=True)

    labels: list[str]
    metadata: list[MatrixLabel]
    values: list[list[float]]
    p_values: list[list[float]]
    lead_lag_matrix: list[list[int]]
    as_of_date: date
    generated_at: datetime
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_square(self) -> "CorrelationMatrix":
        """All matrices must be n x n for n labels."""
        n = len(self.labels)
        if len(self.metadata) != n:
            raise ValueError("Metadata must have one entry per label")
        for name in ("values", "p_values", "lead_lag_matrix"):
            matrix = getattr(self, name)
            if len(matrix) != n or any(len(row) != n for row in matrix):
                raise ValueError(f"{name} must be a {n}x{n} matrix")
        return self
