"""
Tests for fingerprint extraction, profile confidence and profile blending.

Acceptance criteria:
- Extraction is deterministic and never fails on empty input
- Short texts get low fingerprint confidence
- Blend alpha always stays within [0.05, 0.25]
- Profile confidence bands switch at 0.40 and 0.70
"""

from datetime import datetime, timedelta, timezone

import pytest

from backend.voicefidelity.models.voice_profile import ConfidenceBand, SourceTypeCounts
from backend.voicefidelity.services.confidence import (
    band_position,
    classify_band,
    compute_confidence,
    diversity_score,
    temporal_spread,
)
from backend.voicefidelity.services.fingerprint import (
    ALPHA_MAX,
    ALPHA_MIN,
    blend_alpha,
    blend_fingerprints,
    extract_fingerprint,
    split_sentences,
)


def test_extraction_is_deterministic(sample_text):
    assert extract_fingerprint(sample_text) == extract_fingerprint(sample_text)


def test_empty_text_yields_zero_fingerprint():
    fp = extract_fingerprint("")
    assert fp.word_count == 0
    assert fp.sentence_count == 0
    assert fp.avg_sentence_length == 0.0
    assert fp.confidence == 0.0


def test_counts_and_features(sample_text):
    fp = extract_fingerprint(sample_text)
    assert fp.paragraph_count == 2
    assert fp.word_count > 50
    assert fp.contraction_frequency > 0
    assert fp.lexical_signature
    assert all(e.frequency > 0 for e in fp.lexical_signature)


def test_short_text_has_low_confidence():
    short = extract_fingerprint("Just a few words here.")
    assert short.confidence < 0.5


def test_question_and_exclamation_ratios():
    fp = extract_fingerprint("Is this real? It is! Fine.")
    assert fp.sentence_count == 3
    assert fp.question_ratio == pytest.approx(1 / 3)
    assert fp.exclamation_ratio == pytest.approx(1 / 3)


def test_split_sentences_keeps_terminal_punctuation():
    assert split_sentences("One. Two? Three!") == ["One.", "Two?", "Three!"]


@pytest.mark.parametrize("sample_count", [0, 1, 2, 5, 20, 200])
@pytest.mark.parametrize("sample_words", [1, 50, 500, 50000])
@pytest.mark.parametrize("idle_days", [0, 10, 45, 400])
def test_blend_alpha_is_bounded(sample_count, sample_words, idle_days):
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    alpha = blend_alpha(sample_count, sample_words, 400.0, now - timedelta(days=idle_days), now)
    assert ALPHA_MIN <= alpha <= ALPHA_MAX


def test_larger_samples_get_more_weight():
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    small = blend_alpha(10, 200, 400.0, now, now)
    large = blend_alpha(10, 1600, 400.0, now, now)
    assert large > small


def test_stale_profile_gets_boost():
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    fresh = blend_alpha(10, 400, 400.0, now - timedelta(days=1), now)
    stale = blend_alpha(10, 400, 400.0, now - timedelta(days=120), now)
    assert stale > fresh


def test_blend_moves_toward_incoming(sample_text):
    existing = extract_fingerprint(sample_text)
    incoming = extract_fingerprint("Short. Very short. Tiny lines. Like this. All day.")
    blended = blend_fingerprints(existing, incoming, 0.2)
    assert incoming.avg_sentence_length < blended.avg_sentence_length < existing.avg_sentence_length
    assert blended.word_count == existing.word_count + incoming.word_count


def test_band_boundaries():
    assert classify_band(0.39) == ConfidenceBand.LOW
    assert classify_band(0.40) == ConfidenceBand.MEDIUM
    assert classify_band(0.69) == ConfidenceBand.MEDIUM
    assert classify_band(0.70) == ConfidenceBand.HIGH


def test_band_position_is_continuous_at_edges():
    assert band_position(ConfidenceBand.MEDIUM, 0.40) == pytest.approx(band_position(ConfidenceBand.LOW, 0.39))
    assert band_position(ConfidenceBand.MEDIUM, 0.70) == pytest.approx(band_position(ConfidenceBand.HIGH, 0.70))
    assert band_position(None, None) == 1.0


def test_diversity_needs_more_than_one_sample():
    counts = SourceTypeCounts(published_post=1)
    assert diversity_score(counts, 1, 1) == 0.0
    varied = SourceTypeCounts(published_post=2, manual_revision=2, initial_draft=1)
    assert diversity_score(varied, 4, 5) > 0.5


def test_temporal_spread_requires_an_hour():
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    assert temporal_spread(now - timedelta(minutes=30), now) == 0.0
    assert temporal_spread(now - timedelta(days=14), now) == pytest.approx(1.0)


def test_confidence_grows_with_evidence():
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    thin = compute_confidence(150, 1, SourceTypeCounts(published_post=1), 1, now, now)
    rich = compute_confidence(
        12000,
        20,
        SourceTypeCounts(published_post=10, manual_revision=5, initial_draft=3, baseline_sample=2),
        8,
        now - timedelta(days=60),
        now,
    )
    assert thin.band == ConfidenceBand.LOW
    assert rich.band == ConfidenceBand.HIGH
    assert 0.0 <= thin.overall < rich.overall <= 1.0
