"""Regression gate models."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from .editorial import EnforcementClass, EnforcementOutcome
from .evaluation import EditorialMode, VoiceScores


class CalibrationExample(BaseModel):
    """One (original, good edit, bad edit) triple from the calibration corpus."""

    id: str
    mode: EditorialMode
    original: str
    good_edit: str
    bad_edit: str
    note: str = ""


class ModeStats(BaseModel):
    total: int = 0
    good_wins: int = 0
    good_win_rate: float = 1.0
    false_negatives: int = 0
    mean_combined_good: float = 0.0
    mean_combined_bad: float = 0.0


class StaticMetrics(BaseModel):
    good_win_rate: float
    false_negatives: int
    total: int
    mean_semantic_good: float
    mean_stylistic_good: float
    mean_scope_good: float
    mean_combined_good: float
    mean_semantic_bad: float
    mean_stylistic_bad: float
    mean_scope_bad: float
    mean_combined_bad: float
    good_pass_rate: float
    bad_reject_rate: float
    good_classes: Dict[str, int] = {}
    bad_classes: Dict[str, int] = {}
    by_mode: Dict[str, ModeStats] = {}


class LiveMetrics(BaseModel):
    """Aggregates from driving every calibration original through the full pipeline."""

    mean_voice_similarity: float
    mean_semantic_similarity: float
    pass_rate: float
    drift_rate: float
    enforcement_failure_rate: float
    example_count: int
    outcomes: Dict[str, int] = {}


class GatingRule(BaseModel):
    """A metric limit relative to the baseline and/or in absolute terms."""

    id: str
    description: str
    metric: str
    min_drop: Optional[float] = None
    max_rise: Optional[float] = None
    floor: Optional[float] = None
    ceiling: Optional[float] = None


class GatingFailure(BaseModel):
    rule: str
    description: str = ""
    baseline: Optional[float] = None
    current: float
    threshold: str


class RegressionBaseline(BaseModel):
    id: Optional[str] = None
    config_hash: str
    metrics: StaticMetrics
    live: Optional[LiveMetrics] = None
    source_run_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class RegressionRun(BaseModel):
    id: Optional[str] = None
    passed: bool
    config_hash: str
    static_only: bool = True
    skip_embeddings: bool = False
    metrics: StaticMetrics
    live: Optional[LiveMetrics] = None
    failures: List[GatingFailure] = []
    baseline_id: Optional[str] = None
    created_at: Optional[datetime] = None


class RegressionRunRequest(BaseModel):
    skip_embeddings: bool = True
    live: bool = False


class CalibrationResult(BaseModel):
    """Scores of one calibration example's good and bad edits."""

    example_id: str
    mode: EditorialMode
    good: VoiceScores
    bad: VoiceScores
    good_passed: bool
    bad_passed: bool
    good_class: EnforcementClass = EnforcementClass.PASS
    bad_class: EnforcementClass = EnforcementClass.PASS

    @property
    def good_wins(self) -> bool:
        return self.good.combined > self.bad.combined


class LiveResult(BaseModel):
    """One calibration original after selection, classification and correction."""

    example_id: str
    mode: EditorialMode
    generated: bool
    selected: Optional[VoiceScores] = None
    selected_passed: bool = False
    enforcement_class: EnforcementClass
    enforcement_outcome: EnforcementOutcome
