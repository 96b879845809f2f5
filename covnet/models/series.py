"""
Covenant test-history models.

This module defines the raw test records read from the authoritative store,
the covenant display metadata, the caller-supplied scope, and the assembled
per-covenant quarterly time series consumed by every later engine stage.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .enums import CovenantStatus, ScopeKind


class TestRecord(BaseModel):
    """
    One covenant test result as recorded in the test-history store.

    Records arrive unordered and may contain several results for the same
    quarter (restatements); the assembler keeps the most recently recorded.

    Attributes:
        covenant_id: Covenant being tested
        facility_id: Facility owning the covenant
        borrower_id: Borrower owning the facility
        covenant_type: Covenant type (e.g. leverage_ratio)
        period_end: Test period end date
        value: Measured ratio value
        passed: Whether the test passed
        recorded_at: When the result was recorded
    """

    __test__ = False

    model_config = ConfigDict(frozen=True)

    covenant_id: str = Field(min_length=1, description="Covenant being tested")
    facility_id: str = Field(min_length=1, description="Facility owning the covenant")
    borrower_id: str = Field(min_length=1, description="Borrower owning the facility")
    covenant_type: str = Field(min_length=1, description="Covenant type")
    period_end: date = Field(description="Test period end date")
    value: float = Field(allow_inf_nan=False, description="Measured ratio value")
    passed: bool = Field(description="Whether the test passed")
    recorded_at: datetime = Field(description="When the result was recorded")


class CovenantMetadata(BaseModel):
    """
    Display and status metadata for a covenant.

    Attributes:
        covenant_id: Covenant identifier
        covenant_name: Display name
        covenant_type: Covenant type
        facility_id: Owning facility
        facility_name: Facility display name
        borrower_id: Owning borrower
        borrower_name: Borrower display name
        status: Current compliance status
        current_headroom_pct: Current headroom to the breach threshold in percent
            (negative when in breach), None when unknown
    """

    model_config = ConfigDict(frozen=True)

    covenant_id: str = Field(min_length=1)
    covenant_name: str = Field(default="")
    covenant_type: str = Field(default="")
    facility_id: str = Field(default="")
    facility_name: str = Field(default="")
    borrower_id: str = Field(default="")
    borrower_name: str = Field(default="")
    status: CovenantStatus = Field(default=CovenantStatus.ACTIVE)
    current_headroom_pct: Optional[float] = Field(default=None, allow_inf_nan=False)

    @property
    def display_name(self) -> str:
        """Borrower-qualified covenant name for narratives."""
        name = self.covenant_name or self.covenant_type or self.covenant_id
        if self.borrower_name:
            return f"{self.borrower_name} - {name}"
        return name


class Scope(BaseModel):
    """
    The set of covenants a caller wants analyzed.

    Attributes:
        kind: Portfolio, borrower, facility, or explicit covenant list
        ids: Borrower, facility, or covenant ids (empty for portfolio)
    """

    model_config = ConfigDict(frozen=True)

    kind: ScopeKind = Field(default=ScopeKind.PORTFOLIO)
    ids: list[str] = Field(default_factory=list)

    @field_validator("ids")
    @classmethod
    def normalize_ids(cls, v: list[str]) -> list[str]:
        """Deduplicate and sort ids so equal scopes compare equal."""
        return sorted(set(v))

    @model_validator(mode="after")
    def validate_ids_present(self) -> "Scope":
        """Non-portfolio scopes must name at least one id."""
        if self.kind != ScopeKind.PORTFOLIO and not self.ids:
            raise ValueError(f"Scope of kind '{self.kind.value}' requires at least one id")
        return self

    @classmethod
    def portfolio(cls) -> "Scope":
        return cls(kind=ScopeKind.PORTFOLIO)

    @classmethod
    def for_borrower(cls, borrower_id: str) -> "Scope":
        return cls(kind=ScopeKind.BORROWER, ids=[borrower_id])

    @classmethod
    def for_covenants(cls, covenant_ids: list[str]) -> "Scope":
        return cls(kind=ScopeKind.COVENANTS, ids=covenant_ids)


class SeriesSample(BaseModel):
    """A single quarterly observation of a covenant."""

    model_config = ConfigDict(frozen=True)

    period_end: date = Field(description="Quarter-end date")
    period_index: int = Field(description="Integer quarter index")
    value: float = Field(allow_inf_nan=False, description="Measured ratio value")
    passed: bool = Field(description="Whether the test passed")


class CovenantSeries(BaseModel):
    """
    Assembled quarterly history for one covenant.

    Samples are strictly ordered by period with no duplicates. Gaps are left
    unfilled. Immutable for the lifetime of an engine run.
    """

    model_config = ConfigDict(frozen=True)

    covenant_id: str = Field(min_length=1)
    facility_id: str
    borrower_id: str
    covenant_type: str
    samples: list[SeriesSample]

    @field_validator("samples")
    @classmethod
    def validate_strict_order(cls, v: list[SeriesSample]) -> list[SeriesSample]:
        """Ensure samples are strictly increasing by period."""
        for prev, curr in zip(v, v[1:]):
            if curr.period_index <= prev.period_index:
                raise ValueError("Samples must be strictly ordered by period with no duplicates")
        return v

    @property
    def sample_count(self) -> int:
        return len(self.samples)

    def values_by_period(self) -> dict[int, float]:
        return {s.period_index: s.value for s in self.samples}

    def breach_periods(self) -> list[int]:
        return [s.period_index for s in self.samples if not s.passed]
