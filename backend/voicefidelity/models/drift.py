"""Drift monitoring models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from .editorial import EnforcementClass


class DriftAlertType(str, Enum):
    SIMILARITY_DROP = "similarity_drop"
    VARIANCE_SPIKE = "variance_spike"


class DriftSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RunMetric(BaseModel):
    """Scores of the candidate a run settled on, kept for rolling statistics."""

    id: Optional[str] = None
    run_id: str
    user_id: str
    model: str
    prompt_version: str
    semantic_score: float
    stylistic_score: float
    combined_score: float
    profile_confidence: Optional[float] = None
    enforcement_class: EnforcementClass
    created_at: Optional[datetime] = None


class DriftAlert(BaseModel):
    id: Optional[str] = None
    user_id: str
    model: str
    prompt_version: str
    alert_type: DriftAlertType
    severity: DriftSeverity
    metric: str
    mean_before: float
    mean_after: float
    variance_before: float
    variance_after: float
    run_count: int
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class DimensionStats(BaseModel):
    mean: float = 0.0
    variance: float = 0.0


class RollingStats(BaseModel):
    """Read-only rolling statistics for one (user, model, prompt version)."""

    user_id: str
    model: str
    prompt_version: str
    run_count: int
    semantic: DimensionStats
    stylistic: DimensionStats
    combined: DimensionStats
