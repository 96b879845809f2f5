"""
Covenant network router.

Wired to:
- CovenantNetworkEngine for network, matrix and contagion computation
- TestHistoryStore (read-only) for covenant test history
- Settings for default engine configuration

Nothing computed here is persisted: every call recomputes from the store.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from covnet.config import EngineConfig, get_settings
from covnet.engine.errors import InvalidScopeError
from covnet.engine.pipeline import CovenantNetworkEngine
from covnet.models.requests import ContagionRequest, NetworkRequest
from covnet.storage import StorageError, get_storage
from covnet.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


def get_engine() -> CovenantNetworkEngine:
    """Engine bound to the configured store and default configuration."""
    return CovenantNetworkEngine(store=get_storage(), config=get_settings().engine_config())


def _resolve_config(engine: CovenantNetworkEngine, overrides: Optional[dict[str, Any]]) -> EngineConfig:
    try:
        return engine.config.with_overrides(**(overrides or {}))
    except ValidationError as e:
        logger.warning("engine_config_rejected", errors=e.error_count())
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False, include_input=False),
        ) from e


def _translate(e: Exception) -> HTTPException:
    if isinstance(e, InvalidScopeError):
        return HTTPException(status_code=404, detail=e.message)
    return HTTPException(status_code=503, detail=str(e))


@router.post("")
def compute_network(
    request: NetworkRequest,
    engine: CovenantNetworkEngine = Depends(get_engine),
):
    """
    Compute the covenant correlation network for a scope.
    Returns nodes, edges, statistics and diagnostics.
    """
    logger.info(
        "network_requested",
        scope_kind=request.scope.kind.value,
        as_of_date=request.as_of_date.isoformat(),
    )
    config = _resolve_config(engine, request.config)

    try:
        network = engine.compute_network(request.scope, request.as_of_date, config)
    except (InvalidScopeError, StorageError) as e:
        logger.warning("network_request_failed", error=str(e))
        raise _translate(e) from e

    return {"success": True, "data": network.model_dump(mode="json")}


@router.post("/matrix")
def compute_matrix(
    request: NetworkRequest,
    engine: CovenantNetworkEngine = Depends(get_engine),
):
    """
    Compute dense coefficient, p-value and lead-lag matrices for a scope.
    """
    logger.info(
        "matrix_requested",
        scope_kind=request.scope.kind.value,
        as_of_date=request.as_of_date.isoformat(),
    )
    config = _resolve_config(engine, request.config)

    try:
        matrix = engine.compute_matrix(request.scope, request.as_of_date, config)
    except (InvalidScopeError, StorageError) as e:
        logger.warning("matrix_request_failed", error=str(e))
        raise _translate(e) from e

    return {"success": True, "data": matrix.model_dump(mode="json")}


@router.post("/contagion")
def assess_contagion(
    request: ContagionRequest,
    engine: CovenantNetworkEngine = Depends(get_engine),
):
    """
    Assess contagion from a (real or hypothetical) breach at one covenant.
    The network for the scope is recomputed; nothing is persisted.
    """
    logger.info(
        "contagion_requested",
        source_covenant_id=request.source_covenant_id,
        scope_kind=request.scope.kind.value,
        as_of_date=request.as_of_date.isoformat(),
    )
    config = _resolve_config(engine, request.config)

    try:
        network = engine.compute_network(request.scope, request.as_of_date, config)
        assessment = engine.assess_contagion(request.source_covenant_id, network)
    except (InvalidScopeError, StorageError) as e:
        logger.warning("contagion_request_failed", error=str(e))
        raise _translate(e) from e

    return {"success": True, "data": assessment.model_dump(mode="json")}
