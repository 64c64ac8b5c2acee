"""Editorial run and candidate records."""

from typing import List, Optional

from fastapi import HTTPException

from ..models.editorial import EditorialCandidate, EditorialRun, RunStatus
from ..models.evaluation import EditorialMode
from .supabase import CANDIDATES_TABLE, RUNS_TABLE, supabase_client


class RunService:
    """Handles editorial runs and their candidates."""

    def __init__(self):
        self.client = supabase_client

    async def create_run(self, run: EditorialRun) -> EditorialRun:
        row = run.model_dump(mode="json", exclude={"id", "created_at"})
        try:
            response = self.client.table(RUNS_TABLE).insert(row).execute()
            return EditorialRun(**response.data[0])
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to store editorial run: {str(e)}")

    async def add_candidates(self, candidates: List[EditorialCandidate]) -> List[EditorialCandidate]:
        if not candidates:
            return []
        rows = [c.model_dump(mode="json", exclude={"id", "created_at"}) for c in candidates]
        try:
            response = self.client.table(CANDIDATES_TABLE).insert(rows).execute()
            return [EditorialCandidate(**row) for row in response.data]
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to store editorial candidates: {str(e)}")

    async def get_run(self, run_id: str, user_id: Optional[str] = None) -> EditorialRun:
        """Retrieve a run by ID, optionally checking ownership."""
        try:
            response = self.client.table(RUNS_TABLE).select("*").eq("id", run_id).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to retrieve editorial run: {str(e)}")
        if not response.data:
            raise HTTPException(status_code=404, detail="Run not found")
        data = response.data[0]
        if user_id and data["user_id"] != user_id:
            raise HTTPException(status_code=403, detail="Not authorized to access this run")
        return EditorialRun(**data)

    async def get_candidates(self, run_id: str) -> List[EditorialCandidate]:
        try:
            response = self.client.table(CANDIDATES_TABLE).select("*").eq("run_id", run_id).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to retrieve candidates: {str(e)}")
        return sorted((EditorialCandidate(**row) for row in response.data), key=lambda c: c.candidate_index)

    async def mark_shown(self, candidate_id: str) -> None:
        try:
            self.client.table(CANDIDATES_TABLE).update({"shown": True}).eq("id", candidate_id).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to update candidate: {str(e)}")

    async def supersede(self, run_id: str, user_id: str) -> EditorialRun:
        """Mark a run superseded. Only ``status`` changes; history is kept."""
        run = await self.get_run(run_id, user_id)
        if run.status == RunStatus.SUPERSEDED:
            return run
        try:
            self.client.table(RUNS_TABLE).update({"status": RunStatus.SUPERSEDED.value}).eq("id", run_id).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to supersede run: {str(e)}")
        return run.model_copy(update={"status": RunStatus.SUPERSEDED})

    async def supersede_active(self, user_id: str, post_id: str, mode: EditorialMode) -> int:
        """Supersede every active run for the same post and mode. Returns how many."""
        try:
            response = (
                self.client.table(RUNS_TABLE)
                .update({"status": RunStatus.SUPERSEDED.value})
                .eq("user_id", user_id)
                .eq("post_id", post_id)
                .eq("editorial_mode", mode.value)
                .eq("status", RunStatus.ACTIVE.value)
                .execute()
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to supersede runs: {str(e)}")
        return len(response.data or [])

    async def list_runs(self, user_id: Optional[str] = None, limit: int = 200) -> List[EditorialRun]:
        try:
            query = self.client.table(RUNS_TABLE).select("*")
            if user_id:
                query = query.eq("user_id", user_id)
            response = query.order("created_at", desc=True).limit(limit).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to list editorial runs: {str(e)}")
        return [EditorialRun(**row) for row in response.data]

    async def list_candidates(self, run_ids: List[str]) -> List[EditorialCandidate]:
        if not run_ids:
            return []
        try:
            response = self.client.table(CANDIDATES_TABLE).select("*").in_("run_id", run_ids).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to list candidates: {str(e)}")
        return [EditorialCandidate(**row) for row in response.data]
