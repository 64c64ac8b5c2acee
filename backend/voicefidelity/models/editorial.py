"""Editorial run, candidate and request/response models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from .evaluation import CandidateScore, CorrectionType, Dimension, EditorialMode, VoiceScores


class EnforcementClass(str, Enum):
    PASS = "pass"
    SOFT_WARNING = "soft_warning"
    FAILURE = "failure"
    DRIFT = "drift"


class EnforcementOutcome(str, Enum):
    PASS = "pass"
    SOFT_WARNING_RESOLVED = "soft_warning_resolved"
    FAILURE_RESOLVED = "failure_resolved"
    DRIFT_RESOLVED = "drift_resolved"
    PASSTHROUGH = "passthrough"
    ORIGINAL_RETURNED = "original_returned"


class GenerationPhase(str, Enum):
    INITIAL = "initial"
    CORRECTIVE_RETRY = "corrective_retry"


class RunStatus(str, Enum):
    ACTIVE = "active"
    SUPERSEDED = "superseded"


class NudgeDirection(str, Enum):
    MORE_MINIMAL = "more_minimal"
    MORE_RAW = "more_raw"
    SHARPER = "sharper"
    SOFTER = "softer"
    MORE_EMOTIONAL = "more_emotional"
    MORE_DRY = "more_dry"


class EditorialRun(BaseModel):
    """One invocation of the engine for one (post, mode, optional nudge)."""

    id: str
    user_id: str
    org_id: Optional[str] = None
    post_id: Optional[str] = None
    editorial_mode: EditorialMode
    original_text: str
    variation_seed: int = 0
    candidate_count: int
    selected_candidate_index: Optional[int] = None
    best_passing_index: Optional[int] = None
    all_candidates_passed: bool
    fallback_used: bool
    enforced: bool = True
    enforcement_class: EnforcementClass
    enforcement_outcome: EnforcementOutcome
    retry_attempted: bool
    correction_types: List[CorrectionType] = []
    returned_original: bool
    initial_best_combined_score: Optional[float] = None
    initial_best_semantic_score: Optional[float] = None
    final_best_combined_score: Optional[float] = None
    final_best_semantic_score: Optional[float] = None
    status: RunStatus = RunStatus.ACTIVE
    provider: str
    model: str
    prompt_version: str
    nudge_direction: Optional[NudgeDirection] = None
    created_at: Optional[datetime] = None


class EditorialCandidate(BaseModel):
    """One scored rewrite attempt belonging to a run."""

    id: str
    run_id: str
    candidate_index: int
    variation_key: str
    suggested_text: str
    semantic_score: float
    stylistic_score: float
    scope_score: float
    combined_score: float
    selection_score: float
    passed: bool
    failed_dimensions: List[Dimension] = []
    selected: bool = False
    shown: bool = False
    is_fallback: bool = False
    generation_phase: GenerationPhase = GenerationPhase.INITIAL
    correction_type: Optional[CorrectionType] = None
    evaluation_id: Optional[str] = None
    created_at: Optional[datetime] = None

    def scores(self) -> VoiceScores:
        return VoiceScores(
            semantic=self.semantic_score,
            stylistic=self.stylistic_score,
            scope=self.scope_score,
            combined=self.combined_score,
        )


class EditorialRequest(BaseModel):
    """Caller request for one editorial rewrite."""

    text: str
    mode: EditorialMode
    post_id: Optional[str] = None
    nudge_direction: Optional[NudgeDirection] = None
    variation_seed: int = 0


class EvaluationDebug(BaseModel):
    scores: VoiceScores
    selection_score: float
    passed: bool
    enforced: bool
    profile_status: str


class EditorialResult(BaseModel):
    """Caller-facing result for one editorial request."""

    mode: EditorialMode
    original_text: str
    suggested_text: str
    provider: str
    model: str
    prompt_version: str
    run_id: str
    has_alternate: bool
    nudge_direction: Optional[NudgeDirection] = None
    enforcement_class: EnforcementClass
    enforcement_outcome: EnforcementOutcome
    returned_original: bool
    voice_evaluation: Optional[EvaluationDebug] = None


class AlternateResult(BaseModel):
    run_id: str
    candidate_index: int
    suggested_text: str
    has_alternate: bool


class ScoredCandidate(BaseModel):
    """A generated candidate together with its score, before persistence."""

    index: int
    variation_key: str
    text: str
    score: CandidateScore
    is_fallback: bool = False
    generation_phase: GenerationPhase = GenerationPhase.INITIAL
    correction_type: Optional[CorrectionType] = None


class Selection(BaseModel):
    candidates: List[ScoredCandidate] = []
    selected_index: Optional[int] = None
    best_passing_index: Optional[int] = None
    all_candidates_passed: bool = False
    fallback_used: bool = False

    @property
    def selected(self) -> Optional[ScoredCandidate]:
        if self.selected_index is None:
            return None
        return next(c for c in self.candidates if c.index == self.selected_index)

    @property
    def next_index(self) -> int:
        """First index free for corrective attempts."""
        return max((c.index for c in self.candidates), default=-1) + 1
