"""Request bodies accepted by the API routers."""

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field

from .series import Scope


class NetworkRequest(BaseModel):
    """
    Body for network and matrix computation.

    Attributes:
        scope: Covenants to analyze (defaults to the whole portfolio)
        as_of_date: Upper bound of the historical window
        config: Per-call engine option overrides
    """

    scope: Scope = Field(default_factory=Scope.portfolio)
    as_of_date: date
    config: Optional[dict[str, Any]] = Field(default=None, description="Engine option overrides")


class ContagionRequest(NetworkRequest):
    """Body for an on-demand contagion assessment."""

    source_covenant_id: str = Field(min_length=1, description="Covenant assumed to breach")
