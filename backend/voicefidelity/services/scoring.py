"""
Candidate scoring.

Four dimensions, each in [0, 1] where 1 means perfect preservation:

- semantic: meaning preserved (similarity times a length-ratio penalty)
- stylistic: fingerprint similarity to the author's voice baseline
- scope: structural change kept within the editorial mode's bounds
- combined: weighted sum of the three with the resolved weights
"""

from typing import Dict, List, Optional, Tuple

from ..models.evaluation import (
    CandidateScore,
    Dimension,
    EditorialMode,
    ResolvedThresholds,
    SemanticMethod,
    VoiceScores,
    VoiceThresholds,
)
from ..models.fingerprint import Fingerprint, LexicalEntry
from .fingerprint import extract_fingerprint
from .semantic import cosine_similarity, length_penalty

DIMENSION_ORDER = (Dimension.SEMANTIC, Dimension.STYLISTIC, Dimension.SCOPE, Dimension.COMBINED)

STYLISTIC_WEIGHTS: Dict[str, float] = {
    "avg_sentence_length": 0.12,
    "sentence_length_std_dev": 0.08,
    "avg_paragraph_length": 0.05,
    "punctuation": 0.14,
    "adjective_adverb_density": 0.06,
    "hedging_frequency": 0.08,
    "stopword_density": 0.04,
    "contraction_frequency": 0.10,
    "question_ratio": 0.05,
    "exclamation_ratio": 0.04,
    "vocabulary_richness": 0.06,
    "avg_word_length": 0.04,
    "readability_score": 0.06,
    "complexity_score": 0.04,
    "lexical_signature": 0.12,
}

# Difference at which a scalar feature's similarity reaches zero
FEATURE_RANGES: Dict[str, float] = {
    "avg_sentence_length": 20,
    "sentence_length_std_dev": 15,
    "avg_paragraph_length": 8,
    "adjective_adverb_density": 0.15,
    "hedging_frequency": 0.5,
    "stopword_density": 0.2,
    "contraction_frequency": 0.08,
    "question_ratio": 0.3,
    "exclamation_ratio": 0.2,
    "vocabulary_richness": 0.3,
    "avg_word_length": 2.0,
    "readability_score": 10,
    "complexity_score": 1.0,
}

SIGNIFICANT_DRIFT_SIMILARITY = 0.5

# (min, max) ratios of paragraph, sentence and word counts per mode
SCOPE_EXPECTATIONS: Dict[EditorialMode, Dict[str, Tuple[float, float]]] = {
    EditorialMode.COPY: {
        "paragraph_count": (0.95, 1.05),
        "sentence_count": (0.9, 1.1),
        "word_count": (0.9, 1.1),
    },
    EditorialMode.LINE: {
        "paragraph_count": (0.85, 1.15),
        "sentence_count": (0.75, 1.25),
        "word_count": (0.7, 1.15),
    },
    EditorialMode.DEVELOPMENTAL: {
        "paragraph_count": (0.6, 1.6),
        "sentence_count": (0.6, 1.6),
        "word_count": (0.6, 1.4),
    },
}

# Selection ranks candidates; it never decides pass/fail
SELECTION_WEIGHTS = {"stylistic": 0.45, "semantic": 0.35, "scope": 0.20}
SELECTION_HEADROOM_WEIGHT = 0.5


def scalar_similarity(a: float, b: float, feature_range: float) -> float:
    return max(0.0, 1 - abs(a - b) / feature_range)


def lexical_signature_similarity(a: List[LexicalEntry], b: List[LexicalEntry]) -> float:
    freq_a = {e.word: e.frequency for e in a}
    freq_b = {e.word: e.frequency for e in b}
    words = set(freq_a) | set(freq_b)
    if not words:
        return 1.0

    total_sim = 0.0
    total_weight = 0.0
    for word in words:
        fa = freq_a.get(word, 0.0)
        fb = freq_b.get(word, 0.0)
        peak = max(fa, fb)
        if peak == 0:
            continue
        total_sim += (1 - abs(fa - fb) / peak) * peak
        total_weight += peak
    return total_sim / total_weight if total_weight > 0 else 1.0


def dampen(raw: float, sensitivity: float) -> float:
    """Push a similarity toward 1.0 by ``1 - sensitivity``."""
    return raw + (1.0 - raw) * (1 - sensitivity)


def feature_similarities(candidate: Fingerprint, baseline: Fingerprint, sensitivity: float = 1.0) -> Dict[str, float]:
    raw = {
        name: scalar_similarity(getattr(candidate, name), getattr(baseline, name), rng)
        for name, rng in FEATURE_RANGES.items()
    }
    raw["punctuation"] = cosine_similarity(
        candidate.punctuation_frequencies.as_vector(),
        baseline.punctuation_frequencies.as_vector(),
    )
    raw["lexical_signature"] = lexical_signature_similarity(candidate.lexical_signature, baseline.lexical_signature)
    return {name: dampen(value, sensitivity) for name, value in raw.items()}


def stylistic_score(candidate: Fingerprint, baseline: Fingerprint, sensitivity: float = 1.0) -> Tuple[float, List[str]]:
    """Weighted feature similarity plus the features that drifted significantly."""
    similarities = feature_similarities(candidate, baseline, sensitivity)
    total_weight = sum(STYLISTIC_WEIGHTS.values())
    score = sum(similarities[name] * weight for name, weight in STYLISTIC_WEIGHTS.items()) / total_weight
    drifted = [name for name in STYLISTIC_WEIGHTS if similarities[name] < SIGNIFICANT_DRIFT_SIMILARITY]
    return score, drifted


def _safe_ratio(a: float, b: float) -> float:
    if b == 0:
        return 1.0 if a == 0 else 0.0
    return a / b


def _range_score(value: float, low: float, high: float) -> float:
    if low <= value <= high:
        return 1.0
    width = high - low
    if value < low:
        return max(0.0, 1 - (low - value) / width)
    return max(0.0, 1 - (value - high) / width)


def scope_score(original: Fingerprint, candidate: Fingerprint, mode: EditorialMode) -> float:
    expectations = SCOPE_EXPECTATIONS[mode]
    scores = [
        _range_score(_safe_ratio(getattr(candidate, field), getattr(original, field)), low, high)
        for field, (low, high) in expectations.items()
    ]
    return sum(scores) / len(scores)


def failed_dimensions(scores: VoiceScores, thresholds: VoiceThresholds) -> List[Dimension]:
    """Dimensions whose score is strictly below threshold, in canonical order."""
    return [d for d in DIMENSION_ORDER if scores.get(d) < getattr(thresholds, d.value)]


def selection_score(scores: VoiceScores, thresholds: VoiceThresholds) -> float:
    headroom = min(scores.get(d) - getattr(thresholds, d.value) for d in DIMENSION_ORDER)
    return (
        SELECTION_WEIGHTS["stylistic"] * scores.stylistic
        + SELECTION_WEIGHTS["semantic"] * scores.semantic
        + SELECTION_WEIGHTS["scope"] * scores.scope
        + SELECTION_HEADROOM_WEIGHT * headroom
    )


def score_candidate(
    original_text: str,
    candidate_text: str,
    mode: EditorialMode,
    thresholds: ResolvedThresholds,
    semantic_similarity: float,
    profile_fingerprint: Optional[Fingerprint] = None,
    semantic_method: SemanticMethod = SemanticMethod.LEXICAL,
    original_fingerprint: Optional[Fingerprint] = None,
) -> CandidateScore:
    """
    Score one candidate against the original and the author's baseline.

    The stylistic baseline is the active profile fingerprint when given,
    otherwise the original text's own fingerprint.
    """
    original_fp = original_fingerprint or extract_fingerprint(original_text)
    candidate_fp = extract_fingerprint(candidate_text)
    baseline = profile_fingerprint or original_fp

    semantic = max(0.0, min(1.0, semantic_similarity)) * length_penalty(original_text, candidate_text)
    stylistic, drifted = stylistic_score(candidate_fp, baseline, thresholds.feature_sensitivity)
    scope = scope_score(original_fp, candidate_fp, mode)
    weights = thresholds.weights
    combined = weights.semantic * semantic + weights.stylistic * stylistic + weights.scope * scope

    scores = VoiceScores(semantic=semantic, stylistic=stylistic, scope=scope, combined=combined)
    failed = failed_dimensions(scores, thresholds)

    return CandidateScore(
        scores=scores,
        thresholds=thresholds,
        passed=not failed,
        failed_dimensions=failed,
        selection_score=selection_score(scores, thresholds),
        significant_features=drifted,
        semantic_method=semantic_method,
        original_fingerprint=original_fp,
        candidate_fingerprint=candidate_fp,
        comparison_fingerprint=baseline,
    )
