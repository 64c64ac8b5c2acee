"""Analytics read-model shapes."""

from typing import Dict, List, Optional

from pydantic import BaseModel

from .evaluation import Dimension, VoiceScores, VoiceThresholds


class Histogram(BaseModel):
    bins: List[float]
    counts: List[int]
    mean: float
    minimum: float
    maximum: float


class ScoreDistributions(BaseModel):
    total: int
    pass_rate: float
    dimensions: Dict[str, Histogram]


class FailureBreakdown(BaseModel):
    total_failed: int
    by_dimension: Dict[str, int]
    by_mode: Dict[str, Dict[str, int]]
    combinations: Dict[str, int]


class SimulationFlip(BaseModel):
    evaluation_id: str
    direction: str
    mode: str
    scores: VoiceScores
    failed_dimensions: List[Dimension]
    original_preview: str = ""


class SimulationResult(BaseModel):
    total_enforced: int
    current_passed: int
    current_failed: int
    simulated_passed: int
    simulated_failed: int
    net_change: int
    flips: List[SimulationFlip]


class SimulationRequest(BaseModel):
    """Proposed thresholds; omitted means each evaluation's own stored thresholds."""

    thresholds: Optional[VoiceThresholds] = None
    limit: int = 500


class ModelVersionStats(BaseModel):
    model: str
    prompt_version: str
    count: int
    mean_semantic: float
    mean_stylistic: float
    mean_combined: float
    pass_rate: float
    delta_combined: float
    regression: bool


class ScoreImprovement(BaseModel):
    count: int
    avg: float
    minimum: float
    maximum: float
    positive_count: int


class ModeEnforcement(BaseModel):
    total: int
    pass_count: int
    soft_warning_count: int
    failure_count: int
    drift_count: int
    retry_count: int
    original_return_count: int
    pass_rate: float
    retry_success_rate: float


class EnforcementStats(BaseModel):
    total: int
    by_class: Dict[str, int] = {}
    by_outcome: Dict[str, int] = {}
    retry_rate: float = 0.0
    original_return_rate: float = 0.0
    retry_success_rate: float = 0.0
    score_improvement: Optional[ScoreImprovement] = None
    by_mode: Dict[str, ModeEnforcement] = {}


class CorrectionTypeStats(BaseModel):
    count: int
    improved: int
    improvement_rate: float
    avg_delta: float


class CorrectionMetrics(BaseModel):
    attempted: int
    improved: int
    by_type: Dict[str, CorrectionTypeStats]


class VariationStats(BaseModel):
    count: int
    wins: int
    avg_selection: float


class MultiCandidateStats(BaseModel):
    total_runs: int
    fallback_rate: float
    all_passed_rate: float
    superseded_count: int
    selected_distribution: Dict[str, int]
    avg_selection_delta: float
    avg_combined_delta: float
    by_variation: Dict[str, VariationStats]
