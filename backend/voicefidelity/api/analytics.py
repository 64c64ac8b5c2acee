"""Voice analytics endpoints (read-only)."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..models.analytics import SimulationRequest
from ..models.evaluation import EditorialMode
from ..services import analytics
from ..services.auth import JWTBearer
from ..services.evaluations import EvaluationService
from ..services.runs import RunService

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/evaluations")
async def list_evaluations(
    mode: Optional[EditorialMode] = None,
    model: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    current_user: dict = Depends(JWTBearer()),
):
    """Most recent evaluations for the caller."""
    evaluations = await EvaluationService().list_evaluations(current_user["id"], mode, model, limit)
    return [e.model_dump(mode="json") for e in evaluations]


@router.get("/distributions")
async def get_distributions(
    mode: Optional[EditorialMode] = None,
    limit: int = Query(default=500, ge=1, le=2000),
    current_user: dict = Depends(JWTBearer()),
):
    evaluations = await EvaluationService().list_evaluations(current_user["id"], mode, limit=limit)
    return analytics.score_distributions(evaluations).model_dump(mode="json")


@router.get("/failures")
async def get_failures(
    mode: Optional[EditorialMode] = None,
    limit: int = Query(default=500, ge=1, le=2000),
    current_user: dict = Depends(JWTBearer()),
):
    evaluations = await EvaluationService().list_evaluations(current_user["id"], mode, limit=limit)
    return analytics.failure_breakdown(evaluations).model_dump(mode="json")


@router.get("/models")
async def get_model_comparison(
    limit: int = Query(default=1000, ge=1, le=5000),
    current_user: dict = Depends(JWTBearer()),
):
    """Mean scores per model and prompt version, regressions flagged."""
    evaluations = await EvaluationService().list_evaluations(current_user["id"], limit=limit)
    return [s.model_dump(mode="json") for s in analytics.compare_models(evaluations)]


@router.get("/enforcement")
async def get_enforcement_stats(
    limit: int = Query(default=500, ge=1, le=2000),
    current_user: dict = Depends(JWTBearer()),
):
    runs = await RunService().list_runs(current_user["id"], limit)
    return analytics.enforcement_stats(runs).model_dump(mode="json")


@router.get("/corrections")
async def get_correction_metrics(
    limit: int = Query(default=500, ge=1, le=2000),
    current_user: dict = Depends(JWTBearer()),
):
    evaluations = await EvaluationService().list_evaluations(current_user["id"], limit=limit)
    return analytics.correction_metrics(evaluations).model_dump(mode="json")


@router.get("/candidates")
async def get_multi_candidate_stats(
    limit: int = Query(default=200, ge=1, le=1000),
    current_user: dict = Depends(JWTBearer()),
):
    run_service = RunService()
    runs = await run_service.list_runs(current_user["id"], limit)
    candidates = await run_service.list_candidates([r.id for r in runs])
    return analytics.multi_candidate_stats(runs, candidates).model_dump(mode="json")


@router.post("/simulate")
async def simulate(
    request: SimulationRequest,
    current_user: dict = Depends(JWTBearer()),
):
    """What-if: re-check stored evaluations against proposed thresholds."""
    evaluations = await EvaluationService().list_evaluations(current_user["id"], limit=request.limit)
    return analytics.simulate_thresholds(evaluations, request.thresholds).model_dump(mode="json")
