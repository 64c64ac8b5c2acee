"""Regression gate endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query

from ..models.regression import RegressionRunRequest
from ..services.auth import JWTBearer
from ..services.regression import RegressionGate

router = APIRouter(prefix="/api/regression", tags=["regression"])


def get_gate() -> RegressionGate:
    return RegressionGate()


@router.get("/baseline")
async def get_baseline(
    current_user: dict = Depends(JWTBearer()),
    gate: RegressionGate = Depends(get_gate),
):
    baseline = await gate.store.get_baseline()
    if baseline is None:
        raise HTTPException(status_code=404, detail="No regression baseline stored")
    return baseline.model_dump(mode="json")


@router.get("/runs")
async def list_runs(
    limit: int = Query(default=10, ge=1, le=100),
    current_user: dict = Depends(JWTBearer()),
    gate: RegressionGate = Depends(get_gate),
):
    runs = await gate.store.list_runs(limit)
    return [r.model_dump(mode="json") for r in runs]


@router.post("/run")
async def run_gate(
    request: RegressionRunRequest,
    current_user: dict = Depends(JWTBearer()),
    gate: RegressionGate = Depends(get_gate),
):
    """Score the calibration corpus and gate it against the baseline."""
    run = await gate.run(skip_embeddings=request.skip_embeddings, live=request.live)
    return run.model_dump(mode="json")


@router.post("/runs/{run_id}/promote")
async def promote_run(
    run_id: str,
    current_user: dict = Depends(JWTBearer()),
    gate: RegressionGate = Depends(get_gate),
):
    """Make a passing run the new baseline."""
    baseline = await gate.promote(run_id, created_by=current_user["id"])
    return baseline.model_dump(mode="json")
