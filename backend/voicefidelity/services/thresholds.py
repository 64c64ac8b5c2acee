"""Mode threshold tables and confidence-modulated threshold resolution."""

from typing import Dict, Optional

from ..models.evaluation import EditorialMode, ResolvedThresholds, ScoringWeights, VoiceThresholds
from ..models.voice_profile import ConfidenceBand
from .confidence import band_position, lerp

BASE_THRESHOLDS: Dict[EditorialMode, VoiceThresholds] = {
    EditorialMode.COPY: VoiceThresholds(semantic=0.80, stylistic=0.65, scope=0.70, combined=0.72),
    EditorialMode.LINE: VoiceThresholds(semantic=0.75, stylistic=0.60, scope=0.60, combined=0.68),
    EditorialMode.DEVELOPMENTAL: VoiceThresholds(semantic=0.70, stylistic=0.55, scope=0.50, combined=0.62),
}

MODE_WEIGHTS: Dict[EditorialMode, ScoringWeights] = {
    EditorialMode.COPY: ScoringWeights(semantic=0.30, stylistic=0.40, scope=0.30),
    EditorialMode.LINE: ScoringWeights(semantic=0.20, stylistic=0.65, scope=0.15),
    EditorialMode.DEVELOPMENTAL: ScoringWeights(semantic=0.20, stylistic=0.65, scope=0.15),
}

# Multipliers at the low end of the confidence scale; 1.0 at the high end
LOW_STYLISTIC_THRESHOLD = 0.75
LOW_SEMANTIC_THRESHOLD = 1.08
SEMANTIC_THRESHOLD_CAP = 0.98
LOW_SEMANTIC_WEIGHT = 1.25
LOW_STYLISTIC_WEIGHT = 0.70
LOW_SCOPE_WEIGHT = 1.05
LOW_FEATURE_SENSITIVITY = 0.60


def resolve_thresholds(
    mode: EditorialMode,
    band: Optional[ConfidenceBand] = None,
    confidence: Optional[float] = None,
) -> ResolvedThresholds:
    """
    Resolve thresholds, weights and feature sensitivity for one evaluation.

    With no profile (``band`` is None) the mode's base values apply exactly.
    """
    base = BASE_THRESHOLDS[mode]
    weights = MODE_WEIGHTS[mode]
    t = band_position(band, confidence)

    semantic_weight = weights.semantic * lerp(LOW_SEMANTIC_WEIGHT, 1.0, t)
    stylistic_weight = weights.stylistic * lerp(LOW_STYLISTIC_WEIGHT, 1.0, t)
    scope_weight = weights.scope * lerp(LOW_SCOPE_WEIGHT, 1.0, t)
    total = semantic_weight + stylistic_weight + scope_weight

    return ResolvedThresholds(
        semantic=min(SEMANTIC_THRESHOLD_CAP, base.semantic * lerp(LOW_SEMANTIC_THRESHOLD, 1.0, t)),
        stylistic=base.stylistic * lerp(LOW_STYLISTIC_THRESHOLD, 1.0, t),
        scope=base.scope,
        combined=base.combined,
        weights=ScoringWeights(
            semantic=semantic_weight / total,
            stylistic=stylistic_weight / total,
            scope=scope_weight / total,
        ),
        feature_sensitivity=lerp(LOW_FEATURE_SENSITIVITY, 1.0, t),
    )
