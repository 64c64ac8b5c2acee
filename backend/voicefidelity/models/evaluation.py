"""Scoring and evaluation models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from .fingerprint import Fingerprint
from .voice_profile import ConfidenceBand, ProfileStatus


class EditorialMode(str, Enum):
    """Closed set of editorial lenses. Every mode-keyed table covers all members."""

    DEVELOPMENTAL = "developmental"
    LINE = "line"
    COPY = "copy"


class Dimension(str, Enum):
    SEMANTIC = "semantic"
    STYLISTIC = "stylistic"
    SCOPE = "scope"
    COMBINED = "combined"


class CorrectionType(str, Enum):
    CONSTRAINT_BOOST = "constraint_boost"
    MINIMAL_EDIT = "minimal_edit"
    PASSTHROUGH = "passthrough"


class SemanticMethod(str, Enum):
    EMBEDDING = "embedding"
    LEXICAL = "lexical"


class ScoringWeights(BaseModel):
    semantic: float
    stylistic: float
    scope: float


class VoiceThresholds(BaseModel):
    semantic: float
    stylistic: float
    scope: float
    combined: float


class ResolvedThresholds(VoiceThresholds):
    """Thresholds and weights after confidence modulation."""

    weights: ScoringWeights
    feature_sensitivity: float = 1.0

    def bare(self) -> VoiceThresholds:
        return VoiceThresholds(
            semantic=self.semantic,
            stylistic=self.stylistic,
            scope=self.scope,
            combined=self.combined,
        )


class VoiceScores(BaseModel):
    semantic: float
    stylistic: float
    scope: float
    combined: float

    def get(self, dimension: Dimension) -> float:
        return getattr(self, dimension.value)


class CandidateScore(BaseModel):
    """Everything the scorer knows about one candidate."""

    scores: VoiceScores
    thresholds: ResolvedThresholds
    passed: bool
    failed_dimensions: List[Dimension]
    selection_score: float
    significant_features: List[str] = []
    semantic_method: SemanticMethod = SemanticMethod.LEXICAL
    original_fingerprint: Fingerprint
    candidate_fingerprint: Fingerprint
    comparison_fingerprint: Fingerprint


class VoiceEvaluation(BaseModel):
    """Durable, queryable scoring record for one candidate."""

    id: str
    user_id: str
    org_id: Optional[str] = None
    post_id: Optional[str] = None
    run_id: Optional[str] = None
    editorial_mode: EditorialMode
    original_fingerprint: Fingerprint
    suggestion_fingerprint: Fingerprint
    profile_fingerprint: Optional[Fingerprint] = None
    semantic_score: float
    stylistic_score: float
    scope_score: float
    combined_score: float
    thresholds: VoiceThresholds
    passed: bool
    failed_dimensions: List[Dimension] = []
    enforced: bool
    semantic_method: SemanticMethod = SemanticMethod.LEXICAL
    correction_attempted: bool = False
    correction_type: Optional[CorrectionType] = None
    correction_improved_score: Optional[bool] = None
    final_combined_score: Optional[float] = None
    profile_status: ProfileStatus = ProfileStatus.NONE
    profile_confidence: Optional[float] = None
    profile_confidence_band: Optional[ConfidenceBand] = None
    provider: str
    model: str
    prompt_version: str
    original_preview: str = ""
    suggestion_preview: str = ""
    created_at: Optional[datetime] = None

    def scores(self) -> VoiceScores:
        return VoiceScores(
            semantic=self.semantic_score,
            stylistic=self.stylistic_score,
            scope=self.scope_score,
            combined=self.combined_score,
        )
