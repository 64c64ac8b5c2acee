"""
Profile confidence.

Confidence answers how reliably a profile represents the author's voice. It
is built from four independent components (corpus size, number of samples,
source diversity, temporal spread) and mapped to a band. The band plus the
raw value give a continuous position in [0, 1] that drives every
confidence-dependent adjustment elsewhere in the engine.
"""

import math
from datetime import datetime
from typing import Optional

from ..models.voice_profile import (
    ConfidenceBand,
    ConfidenceComponents,
    ProfileConfidence,
    SourceTypeCounts,
)

WORD_HALF_LIFE = 2000
SAMPLE_HALF_LIFE = 5

TEMPORAL_MINIMUM_SECONDS = 60 * 60
TEMPORAL_FULL_CREDIT_SECONDS = 14 * 24 * 60 * 60

LOW_CEILING = 0.40
HIGH_FLOOR = 0.70

# Weights of the combined confidence sum
WORD_WEIGHT = 0.35
SAMPLE_WEIGHT = 0.35
DIVERSITY_WEIGHT = 0.15
TEMPORAL_WEIGHT = 0.15


def lerp(low: float, high: float, t: float) -> float:
    return low * (1 - t) + high * t


def classify_band(confidence: float) -> ConfidenceBand:
    if confidence < LOW_CEILING:
        return ConfidenceBand.LOW
    if confidence >= HIGH_FLOOR:
        return ConfidenceBand.HIGH
    return ConfidenceBand.MEDIUM


def band_position(band: Optional[ConfidenceBand], confidence: Optional[float]) -> float:
    """
    Continuous position in [0, 1]: 0 for low, 1 for high or no profile.

    Medium interpolates linearly between the band edges, so the position is
    continuous at both 0.40 and 0.70.
    """
    if band is None or confidence is None:
        return 1.0
    if band == ConfidenceBand.LOW:
        return 0.0
    if band == ConfidenceBand.HIGH:
        return 1.0
    t = (confidence - LOW_CEILING) / (HIGH_FLOOR - LOW_CEILING)
    return max(0.0, min(1.0, t))


def diversity_score(source_type_counts: SourceTypeCounts, unique_post_ids: int, sample_count: int) -> float:
    if sample_count <= 1:
        return 0.0

    present = [c for c in source_type_counts.values() if c > 0]
    type_variety = min(1.0, len(present) / 4)
    post_variety = min(1.0, unique_post_ids / 5)

    evenness = 0.0
    if len(present) > 1:
        total = sum(present)
        entropy = -sum((c / total) * math.log2(c / total) for c in present)
        evenness = entropy / math.log2(len(present))

    return type_variety * 0.3 + post_variety * 0.4 + evenness * 0.3


def temporal_spread(oldest: Optional[datetime], newest: Optional[datetime]) -> float:
    if oldest is None or newest is None:
        return 0.0
    span = (newest - oldest).total_seconds()
    if span < TEMPORAL_MINIMUM_SECONDS:
        return 0.0
    return min(1.0, span / TEMPORAL_FULL_CREDIT_SECONDS)


def compute_confidence(
    total_word_count: int,
    sample_count: int,
    source_type_counts: SourceTypeCounts,
    unique_post_ids: int,
    oldest_sample_at: Optional[datetime],
    newest_sample_at: Optional[datetime],
) -> ProfileConfidence:
    word_confidence = 1 - math.exp(-total_word_count / WORD_HALF_LIFE) if total_word_count > 0 else 0.0
    sample_confidence = 1 - math.exp(-sample_count / SAMPLE_HALF_LIFE) if sample_count > 0 else 0.0
    diversity = diversity_score(source_type_counts, unique_post_ids, sample_count)
    spread = temporal_spread(oldest_sample_at, newest_sample_at)

    overall = (
        WORD_WEIGHT * word_confidence
        + SAMPLE_WEIGHT * sample_confidence
        + DIVERSITY_WEIGHT * diversity
        + TEMPORAL_WEIGHT * spread
    )
    overall = max(0.0, min(1.0, overall))

    return ProfileConfidence(
        overall=overall,
        components=ConfidenceComponents(
            word_confidence=word_confidence,
            sample_confidence=sample_confidence,
            diversity_score=diversity,
            temporal_spread=spread,
        ),
        band=classify_band(overall),
    )
