"""Voice evaluation records: append-only, with correction fields patched once."""

from typing import List, Optional

from fastapi import HTTPException

from ..models.evaluation import CorrectionType, EditorialMode, VoiceEvaluation
from .supabase import EVALUATIONS_TABLE, supabase_client

PREVIEW_CHARS = 500


class EvaluationService:
    """Persists and queries voice evaluations."""

    def __init__(self):
        self.client = supabase_client

    async def create_evaluation(self, evaluation: VoiceEvaluation) -> VoiceEvaluation:
        row = evaluation.model_dump(mode="json", exclude={"id", "created_at"})
        row["original_preview"] = row["original_preview"][:PREVIEW_CHARS]
        row["suggestion_preview"] = row["suggestion_preview"][:PREVIEW_CHARS]
        try:
            response = self.client.table(EVALUATIONS_TABLE).insert(row).execute()
            return VoiceEvaluation(**response.data[0])
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to store voice evaluation: {str(e)}")

    async def record_correction(
        self,
        evaluation_id: str,
        correction_type: CorrectionType,
        improved: bool,
        final_combined_score: Optional[float],
    ) -> None:
        """Patch the correction fields; the scores themselves are never rewritten."""
        try:
            self.client.table(EVALUATIONS_TABLE).update({
                "correction_attempted": True,
                "correction_type": correction_type.value,
                "correction_improved_score": improved,
                "final_combined_score": final_combined_score,
            }).eq("id", evaluation_id).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to record correction: {str(e)}")

    async def get_evaluation(self, evaluation_id: str) -> VoiceEvaluation:
        try:
            response = self.client.table(EVALUATIONS_TABLE).select("*").eq("id", evaluation_id).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to load voice evaluation: {str(e)}")
        if not response.data:
            raise HTTPException(status_code=404, detail="Evaluation not found")
        return VoiceEvaluation(**response.data[0])

    async def list_evaluations(
        self,
        user_id: Optional[str] = None,
        mode: Optional[EditorialMode] = None,
        model: Optional[str] = None,
        limit: int = 200,
    ) -> List[VoiceEvaluation]:
        """Most recent evaluations first, optionally filtered."""
        try:
            query = self.client.table(EVALUATIONS_TABLE).select("*")
            if user_id:
                query = query.eq("user_id", user_id)
            if mode:
                query = query.eq("editorial_mode", mode.value)
            if model:
                query = query.eq("model", model)
            response = query.order("created_at", desc=True).limit(limit).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to list voice evaluations: {str(e)}")
        return [VoiceEvaluation(**row) for row in response.data]
