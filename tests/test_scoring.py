"""
Tests for candidate scoring, enforcement classification and selection.

Acceptance criteria:
- passed iff every dimension meets its threshold; failed dimensions are exactly the misses
- Style-only failure is classified as failure, not drift
- Semantic failure or an open drift alert is classified as drift
- Selection is deterministic, ties broken by lowest index
"""

import httpx
import pytest

from backend.voicefidelity.models.editorial import EnforcementClass, ScoredCandidate
from backend.voicefidelity.models.evaluation import (
    Dimension,
    EditorialMode,
    SemanticMethod,
    VoiceScores,
    VoiceThresholds,
)
from backend.voicefidelity.services.enforcement import classify, enforcement_applies
from backend.voicefidelity.services.fingerprint import extract_fingerprint
from backend.voicefidelity.services.scoring import (
    failed_dimensions,
    scope_score,
    score_candidate,
    stylistic_score,
)
from backend.voicefidelity.services.selection import pick_winner
from backend.voicefidelity.services.semantic import (
    EmbeddingClient,
    EmbeddingError,
    SemanticScorer,
    length_penalty,
    lexical_similarity,
)
from backend.voicefidelity.services.thresholds import resolve_thresholds


THRESHOLDS = VoiceThresholds(semantic=0.75, stylistic=0.60, scope=0.60, combined=0.68)


def test_style_only_failure_scenario(make_score):
    score = make_score(0.9, 0.4, 0.8, 0.75)
    assert score.failed_dimensions == [Dimension.STYLISTIC]
    assert not score.passed
    assert classify(score) == EnforcementClass.FAILURE


def test_small_deficits_are_soft_warnings(make_score):
    score = make_score(0.9, 0.57, 0.8, 0.70)
    assert score.failed_dimensions == [Dimension.STYLISTIC]
    assert classify(score) == EnforcementClass.SOFT_WARNING


def test_semantic_failure_is_drift(make_score):
    score = make_score(0.5, 0.9, 0.9, 0.8)
    assert classify(score) == EnforcementClass.DRIFT


def test_open_drift_alert_turns_failure_into_drift(make_score):
    score = make_score(0.9, 0.4, 0.8, 0.75)
    assert classify(score, active_drift_alert=True) == EnforcementClass.DRIFT


def test_pass_beats_open_drift_alert(make_score):
    score = make_score(0.9, 0.9, 0.9, 0.9)
    assert classify(score, active_drift_alert=True) == EnforcementClass.PASS


@pytest.mark.parametrize(
    "values",
    [
        (0.75, 0.60, 0.60, 0.68),
        (0.74, 0.60, 0.60, 0.68),
        (0.75, 0.59, 0.61, 0.67),
        (0.1, 0.1, 0.1, 0.1),
        (1.0, 1.0, 1.0, 1.0),
    ],
)
def test_pass_iff_all_dimensions_meet_threshold(values):
    scores = VoiceScores(semantic=values[0], stylistic=values[1], scope=values[2], combined=values[3])
    failed = failed_dimensions(scores, THRESHOLDS)
    expected = [d for d in Dimension if scores.get(d) < getattr(THRESHOLDS, d.value)]
    assert failed == expected


def test_identical_text_scores_perfectly(sample_text):
    thresholds = resolve_thresholds(EditorialMode.LINE)
    score = score_candidate(sample_text, sample_text, EditorialMode.LINE, thresholds, lexical_similarity(sample_text, sample_text))
    assert score.passed
    assert score.scores.semantic == pytest.approx(1.0)
    assert score.scores.stylistic == pytest.approx(1.0)
    assert score.scores.scope == pytest.approx(1.0)
    assert score.scores.combined == pytest.approx(1.0)


def test_unrelated_rewrite_fails_semantic(sample_text):
    rewrite = (
        "BUY NOW!!! The greatest blender ever made!!! Limited time offer, while supplies last!!! "
        "Call today and receive a second blender absolutely free!!!"
    )
    thresholds = resolve_thresholds(EditorialMode.LINE)
    score = score_candidate(sample_text, rewrite, EditorialMode.LINE, thresholds, lexical_similarity(sample_text, rewrite))
    assert not score.passed
    assert Dimension.SEMANTIC in score.failed_dimensions
    assert classify(score) == EnforcementClass.DRIFT


def test_profile_fingerprint_is_stylistic_baseline(sample_text):
    terse = "Short lines. No fluff. We ship. We learn. Then we ship again. That's it. Every week."
    profile_fp = extract_fingerprint(" ".join([terse] * 5))
    thresholds = resolve_thresholds(EditorialMode.LINE)
    with_profile = score_candidate(
        sample_text, sample_text, EditorialMode.LINE, thresholds, 1.0, profile_fingerprint=profile_fp
    )
    without_profile = score_candidate(sample_text, sample_text, EditorialMode.LINE, thresholds, 1.0)
    assert with_profile.scores.stylistic < without_profile.scores.stylistic


def test_low_sensitivity_dampens_style_drift(sample_text):
    other = extract_fingerprint("Short. Blunt. Done. Next. Go now! Why wait? Fine.")
    base = extract_fingerprint(sample_text)
    strict, _ = stylistic_score(other, base, 1.0)
    lenient, _ = stylistic_score(other, base, 0.6)
    assert lenient > strict


def test_copy_scope_penalizes_cuts(sample_text):
    original = extract_fingerprint(sample_text)
    cut = extract_fingerprint("I said yes to everything. It was a mistake.")
    assert scope_score(original, cut, EditorialMode.COPY) < 0.5
    assert scope_score(original, original, EditorialMode.COPY) == 1.0


def test_length_penalty_bands():
    ten = " ".join(["word"] * 10)
    assert length_penalty(ten, ten) == 1.0
    assert length_penalty(ten, " ".join(["word"] * 14)) == 0.85
    assert length_penalty(ten, " ".join(["word"] * 20)) == 0.7


def test_enforcement_needs_fifty_words(sample_text):
    assert enforcement_applies(sample_text)
    assert not enforcement_applies("Too short to judge fairly.")


def _candidate(index, make_score, values):
    return ScoredCandidate(index=index, variation_key=f"v{index}", text=f"text {index}", score=make_score(*values))


def test_selection_prefers_passing_candidate(make_score):
    candidates = [
        _candidate(0, make_score, (0.9, 0.4, 0.9, 0.9)),
        _candidate(1, make_score, (0.8, 0.7, 0.7, 0.7)),
    ]
    assert pick_winner(candidates) == (1, 1)


def test_selection_ties_go_to_lowest_index(make_score):
    candidates = [
        _candidate(0, make_score, (0.9, 0.8, 0.8, 0.8)),
        _candidate(1, make_score, (0.9, 0.8, 0.8, 0.8)),
    ]
    assert pick_winner(candidates) == (0, 0)
    assert pick_winner(list(reversed(candidates))) == (0, 0)


def test_selection_without_passing_uses_combined(make_score):
    candidates = [
        _candidate(0, make_score, (0.5, 0.4, 0.9, 0.5)),
        _candidate(1, make_score, (0.6, 0.4, 0.9, 0.6)),
    ]
    assert pick_winner(candidates) == (1, None)
    assert pick_winner([]) == (None, None)


def _embeddings_reply(monkeypatch, body):
    async def post(self, url, **kwargs):
        return httpx.Response(200, json=body, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx.AsyncClient, "post", post)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"error": {"message": "rate limited"}},
        {"data": [{"index": 0}]},
        {"data": [{"index": 0, "embedding": [1.0, 0.0]}]},
    ],
    ids=["error-body", "missing-embedding", "short-batch"],
)
async def test_bad_embedding_responses_raise_embedding_error(monkeypatch, body):
    _embeddings_reply(monkeypatch, body)
    client = EmbeddingClient(api_key="key", api_url="https://embeddings.test/v1/embeddings")
    with pytest.raises(EmbeddingError):
        await client.embed(["a b c", "a b d"])


@pytest.mark.asyncio
async def test_malformed_embeddings_fall_back_to_lexical(monkeypatch):
    _embeddings_reply(monkeypatch, {"error": {"message": "rate limited"}})
    scorer = SemanticScorer(EmbeddingClient(api_key="key", api_url="https://embeddings.test/v1/embeddings"))

    results = await scorer.similarities("a b c", ["a b d"])
    assert results == [(lexical_similarity("a b c", "a b d"), SemanticMethod.LEXICAL)]


@pytest.mark.asyncio
async def test_embeddings_scored_in_order(monkeypatch):
    _embeddings_reply(
        monkeypatch,
        {"data": [{"index": 1, "embedding": [0.0, 1.0]}, {"index": 0, "embedding": [1.0, 0.0]}]},
    )
    scorer = SemanticScorer(EmbeddingClient(api_key="key", api_url="https://embeddings.test/v1/embeddings"))

    [(similarity, method)] = await scorer.similarities("original", ["candidate"])
    assert method == SemanticMethod.EMBEDDING
    assert similarity == 0.0
