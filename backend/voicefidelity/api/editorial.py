"""Editorial rewrite endpoints."""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends

from ..models.editorial import EditorialRequest
from ..services.auth import JWTBearer, get_org_id
from ..services.editorial import EditorialEngine
from ..services.runs import RunService

router = APIRouter(prefix="/api/editorial", tags=["editorial"])


def get_engine() -> EditorialEngine:
    return EditorialEngine()


@router.post("/refine")
async def refine(
    request: EditorialRequest,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(JWTBearer()),
    org_id: Optional[str] = Depends(get_org_id),
    engine: EditorialEngine = Depends(get_engine),
):
    """Generate candidates, enforce voice fidelity and return the chosen text."""
    result, metric = await engine.refine(current_user["id"], request, org_id)
    if metric is not None:
        background_tasks.add_task(engine.drift.update_in_background, metric)
    return result.model_dump(mode="json")


@router.get("/runs/{run_id}")
async def get_run(
    run_id: str,
    current_user: dict = Depends(JWTBearer()),
):
    """Get a run together with every candidate it produced."""
    run_service = RunService()
    run = await run_service.get_run(run_id, current_user["id"])
    candidates = await run_service.get_candidates(run_id)
    return {
        **run.model_dump(mode="json"),
        "candidates": [c.model_dump(mode="json") for c in candidates],
    }


@router.get("/runs/{run_id}/alternate")
async def get_alternate(
    run_id: str,
    current_user: dict = Depends(JWTBearer()),
    engine: EditorialEngine = Depends(get_engine),
):
    """Serve the next best unshown candidate ("try again")."""
    alternate = await engine.alternate(run_id, current_user["id"])
    return alternate.model_dump(mode="json")


@router.post("/runs/{run_id}/supersede")
async def supersede_run(
    run_id: str,
    current_user: dict = Depends(JWTBearer()),
):
    """Mark a run superseded. History is kept."""
    run = await RunService().supersede(run_id, current_user["id"])
    return run.model_dump(mode="json")
