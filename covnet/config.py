"""
Configuration management using pydantic-settings.
All settings loaded from environment variables (12-factor app).

Engine options live in two places: ``Settings`` carries the deployment-wide
defaults, and ``EngineConfig`` is the frozen, validated snapshot handed to a
single engine invocation (callers may override any field per request).
"""

from functools import lru_cache
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

WEIGHT_TOLERANCE = 0.01


class EngineConfig(BaseModel):
    """
    Recognized options for one engine run.

    The blending weights are configuration, not derived constants: they are
    expected to be tuned against historical back-testing.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Assembly / correlation
    min_sample_size: int = Field(default=4, ge=3, description="Minimum samples per series and per pair")
    history_quarters: int = Field(default=16, ge=4, le=80, description="Quarters of history used")
    significance_threshold: float = Field(
        default=0.05, gt=0.0, le=1.0, description="Maximum p-value for a significant correlation"
    )
    min_edge_correlation: float = Field(
        default=0.3, ge=0.0, le=1.0, description="Minimum |r| for a propagation edge"
    )

    # Lead-lag
    max_lead_lag: int = Field(default=4, ge=0, le=12, description="Lead-lag search window (quarters)")
    min_lag_overlap: int = Field(default=3, ge=3, description="Minimum aligned points at a lag")

    # Propagation
    co_breach_window: int = Field(default=2, ge=0, le=8, description="Trailing co-breach window (quarters)")
    propagation_floor: float = Field(
        default=10.0, ge=0.0, le=100.0, description="Probability when no co-breach was observed"
    )
    full_confidence_samples: int = Field(
        default=16, ge=4, description="Sample size at which no confidence discount applies"
    )
    w_correlation: float = Field(default=0.5, ge=0.0, le=1.0)
    w_co_breach: float = Field(default=0.35, ge=0.0, le=1.0)
    w_lead_lag: float = Field(default=0.15, ge=0.0, le=1.0)

    # Network
    centrality_tolerance: float = Field(default=1e-6, gt=0.0, description="Power iteration tolerance")
    centrality_max_iterations: int = Field(default=100, ge=1, description="Power iteration cap")
    w_status: float = Field(default=0.5, ge=0.0, le=1.0)
    w_headroom: float = Field(default=0.3, ge=0.0, le=1.0)
    w_centrality: float = Field(default=0.2, ge=0.0, le=1.0)
    headroom_cap: float = Field(default=100.0, gt=0.0, description="Headroom treated as fully safe")
    cluster_top_k: int = Field(default=3, ge=1, description="Cluster size when graph is fully connected")

    # Contagion
    max_contagion_depth: int = Field(default=3, ge=1, le=10, description="Max traversal hops")
    headroom_shock_pct: float = Field(
        default=15.0, ge=0.0, description="Headroom lost by a certain propagation"
    )
    material_probability: float = Field(
        default=30.0, ge=0.0, le=100.0, description="Probability at which a covenant counts as at risk"
    )
    default_propagation_periods: float = Field(
        default=1.0, ge=0.0, description="Hop horizon when no co-breach timing exists"
    )

    # Execution
    max_workers: int = Field(default=1, ge=1, le=64, description="Threads for the pairwise stage")

    @model_validator(mode="after")
    def validate_weight_groups(self) -> "EngineConfig":
        """Ensure each blending weight group sums to 1.0."""
        propagation_total = self.w_correlation + self.w_co_breach + self.w_lead_lag
        if abs(propagation_total - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError(
                f"Propagation weights must sum to 1.0 (got {propagation_total:.4f})"
            )
        risk_total = self.w_status + self.w_headroom + self.w_centrality
        if abs(risk_total - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError(f"Risk weights must sum to 1.0 (got {risk_total:.4f})")
        return self

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        """Return a validated copy with the given fields replaced."""
        if not overrides:
            return self
        return EngineConfig(**{**self.model_dump(), **overrides})


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    db_path: str = Field(default="./data/covnet.duckdb", description="DuckDB file path")

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="CORS allowed origins (comma-separated)",
    )

    # Logging
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="json", description="Log format (json|console)")

    # Engine defaults (same bounds as EngineConfig)
    min_sample_size: int = Field(default=4, ge=3)
    history_quarters: int = Field(default=16, ge=4, le=80)
    significance_threshold: float = Field(default=0.05, gt=0.0, le=1.0)
    min_edge_correlation: float = Field(default=0.3, ge=0.0, le=1.0)
    max_lead_lag: int = Field(default=4, ge=0, le=12)
    min_lag_overlap: int = Field(default=3, ge=3)
    co_breach_window: int = Field(default=2, ge=0, le=8)
    propagation_floor: float = Field(default=10.0, ge=0.0, le=100.0)
    full_confidence_samples: int = Field(default=16, ge=4)
    w_correlation: float = Field(default=0.5, ge=0.0, le=1.0)
    w_co_breach: float = Field(default=0.35, ge=0.0, le=1.0)
    w_lead_lag: float = Field(default=0.15, ge=0.0, le=1.0)
    centrality_tolerance: float = Field(default=1e-6, gt=0.0)
    centrality_max_iterations: int = Field(default=100, ge=1)
    w_status: float = Field(default=0.5, ge=0.0, le=1.0)
    w_headroom: float = Field(default=0.3, ge=0.0, le=1.0)
    w_centrality: float = Field(default=0.2, ge=0.0, le=1.0)
    headroom_cap: float = Field(default=100.0, gt=0.0)
    cluster_top_k: int = Field(default=3, ge=1)
    max_contagion_depth: int = Field(default=3, ge=1, le=10)
    headroom_shock_pct: float = Field(default=15.0, ge=0.0)
    material_probability: float = Field(default=30.0, ge=0.0, le=100.0)
    default_propagation_periods: float = Field(default=1.0, ge=0.0)
    engine_max_workers: int = Field(default=1, ge=1, le=64, description="Threads for the pairwise stage")

    # Development
    dev_mode: bool = Field(default=True, description="Development mode")

    @field_validator("cors_origins")
    @classmethod
    def parse_cors_origins(cls, v: str) -> List[str]:
        """Parse comma-separated CORS origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @model_validator(mode="after")
    def validate_engine_defaults(self) -> "Settings":
        """Reject engine defaults that would not form a valid EngineConfig."""
        try:
            self.engine_config()
        except ValidationError as e:
            raise ValueError(f"Invalid engine defaults: {e}") from e
        return self

    def engine_config(self) -> EngineConfig:
        """Build the default per-run engine configuration from settings."""
        return EngineConfig(
            max_workers=self.engine_max_workers,
            **{name: getattr(self, name) for name in ENGINE_SETTING_FIELDS},
        )


# Settings fields that map one-to-one onto EngineConfig
ENGINE_SETTING_FIELDS = tuple(name for name in EngineConfig.model_fields if name != "max_workers")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure singleton behavior.
    """
    return Settings()
