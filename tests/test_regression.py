"""
Tests for the regression gate and its CLI.

Acceptance criteria:
- Gating rules apply only when a baseline exists
- A good_win_rate drop from 0.92 to 0.80 fails, citing the rule and both values
- Only passing runs can be promoted to the baseline
- The CLI exits non-zero when the gate fails
- Live mode drives each original through selection, classification and correction
"""

import json

import pytest
from fastapi import HTTPException

from backend.voicefidelity.cli import main
from backend.voicefidelity.models.editorial import EnforcementClass
from backend.voicefidelity.models.evaluation import EditorialMode, VoiceScores
from backend.voicefidelity.models.regression import CalibrationExample, CalibrationResult, StaticMetrics
from backend.voicefidelity.services.calibration_data import CALIBRATION_DATASET
from backend.voicefidelity.services.regression import (
    LIVE_GATING_RULES,
    STATIC_GATING_RULES,
    JsonFileRegressionStore,
    RegressionGate,
    compute_live_metrics,
    compute_metrics,
    config_hash,
    evaluate_gates,
    format_report,
)
from backend.voicefidelity.services.generator import GenerationError
from backend.voicefidelity.services.semantic import SemanticScorer

UNRELATED = (
    "BUY NOW!!! The greatest blender ever made!!! Limited time offer, while supplies last!!! "
    "Call today and receive a second blender absolutely free!!!"
)


def metrics(**overrides):
    values = dict(
        good_win_rate=0.92,
        false_negatives=1,
        total=12,
        mean_semantic_good=0.90,
        mean_stylistic_good=0.85,
        mean_scope_good=0.90,
        mean_combined_good=0.88,
        mean_semantic_bad=0.60,
        mean_stylistic_bad=0.55,
        mean_scope_bad=0.70,
        mean_combined_bad=0.60,
        good_pass_rate=0.9,
        bad_reject_rate=0.8,
    )
    values.update(overrides)
    return StaticMetrics(**values)


def result(example_id, mode, good_combined, bad_combined, good_passed=True, bad_passed=False):
    return CalibrationResult(
        example_id=example_id,
        mode=mode,
        good=VoiceScores(semantic=0.9, stylistic=0.8, scope=0.9, combined=good_combined),
        bad=VoiceScores(semantic=0.5, stylistic=0.5, scope=0.6, combined=bad_combined),
        good_passed=good_passed,
        bad_passed=bad_passed,
    )


def controlled_dataset(sample_text):
    """Examples whose good edit is the original itself."""
    return [
        CalibrationExample(
            id=f"identity-{mode.value}",
            mode=mode,
            original=sample_text,
            good_edit=sample_text,
            bad_edit=UNRELATED,
        )
        for mode in EditorialMode
    ]


def test_win_rate_drop_fails_gate():
    failures = evaluate_gates(STATIC_GATING_RULES, metrics(), metrics(good_win_rate=0.80))
    win_rate = [f for f in failures if f.rule == "good_win_rate"]
    assert len(win_rate) == 2
    drop = win_rate[0]
    assert drop.baseline == pytest.approx(0.92)
    assert drop.current == pytest.approx(0.80)
    assert "baseline (0.9200) - 0.05" in drop.threshold
    assert "floor 0.85" in win_rate[1].threshold


def test_small_drop_within_tolerance_passes():
    assert evaluate_gates(STATIC_GATING_RULES, metrics(), metrics(good_win_rate=0.88)) == []


def test_false_negative_rise():
    failures = evaluate_gates(STATIC_GATING_RULES, metrics(), metrics(false_negatives=5))
    assert [f.rule for f in failures] == ["false_negatives"]


def test_no_baseline_applies_no_rules():
    terrible = metrics(good_win_rate=0.1, mean_semantic_good=0.1, mean_combined_good=0.1, false_negatives=50)
    assert evaluate_gates(STATIC_GATING_RULES, None, terrible) == []


def test_compute_metrics():
    results = [
        result("a", EditorialMode.LINE, 0.9, 0.6),
        result("b", EditorialMode.LINE, 0.5, 0.7, good_passed=False),
        result("c", EditorialMode.COPY, 0.95, 0.4, bad_passed=True),
        result("d", EditorialMode.COPY, 0.8, 0.8),
    ]
    m = compute_metrics(results)
    assert m.total == 4
    # Ties count against the good edit
    assert m.good_win_rate == pytest.approx(0.5)
    assert m.false_negatives == 2
    assert m.good_pass_rate == pytest.approx(0.75)
    assert m.bad_reject_rate == pytest.approx(0.75)
    assert m.by_mode["line"].good_wins == 1
    assert m.by_mode["copy"].false_negatives == 1
    assert "developmental" not in m.by_mode


def test_config_hash_is_stable():
    assert config_hash() == config_hash()
    assert len(config_hash()) == 64
    assert config_hash(model="other-model") != config_hash()


def test_calibration_dataset_covers_every_mode():
    modes = {example.mode for example in CALIBRATION_DATASET}
    assert modes == set(EditorialMode)
    assert len({example.id for example in CALIBRATION_DATASET}) == len(CALIBRATION_DATASET)


def make_gate(tmp_path, sample_text, **kwargs):
    store = JsonFileRegressionStore(str(tmp_path / "baseline.json"))
    return RegressionGate(
        store=store,
        semantic=SemanticScorer(skip_embeddings=True),
        dataset=controlled_dataset(sample_text),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_gate_without_baseline_passes_and_records(tmp_path, sample_text):
    gate = make_gate(tmp_path, sample_text)
    run = await gate.run()

    assert run.passed
    assert run.baseline_id is None
    assert run.metrics.good_win_rate == 1.0
    assert run.config_hash == config_hash()
    assert [r.id for r in await gate.store.list_runs()] == [run.id]


@pytest.mark.asyncio
async def test_gate_against_matching_baseline(tmp_path, sample_text):
    gate = make_gate(tmp_path, sample_text)
    metrics_now = compute_metrics(await gate.score_corpus())
    baseline = await gate.save_baseline(metrics_now, created_by="ci")

    run = await gate.run()
    assert run.passed
    assert run.baseline_id == baseline.id


@pytest.mark.asyncio
async def test_gate_fails_against_inflated_baseline(tmp_path, sample_text):
    gate = make_gate(tmp_path, sample_text)
    current = compute_metrics(await gate.score_corpus())
    await gate.save_baseline(current.model_copy(update={"false_negatives": -10}))

    run = await gate.run()
    assert not run.passed
    assert [f.rule for f in run.failures] == ["false_negatives"]
    report = format_report(run, await gate.store.get_baseline())
    assert "Result: FAIL" in report
    assert "false_negatives" in report


@pytest.mark.asyncio
async def test_promote_requires_passing_run(tmp_path, sample_text):
    gate = make_gate(tmp_path, sample_text)
    current = compute_metrics(await gate.score_corpus())
    await gate.save_baseline(current.model_copy(update={"false_negatives": -10}))
    failed = await gate.run()

    with pytest.raises(HTTPException) as exc_info:
        await gate.promote(failed.id)
    assert exc_info.value.status_code == 409

    with pytest.raises(HTTPException) as exc_info:
        await gate.promote("no-such-run")
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_promote_passing_run(tmp_path, sample_text):
    gate = make_gate(tmp_path, sample_text)
    run = await gate.run()
    baseline = await gate.promote(run.id, created_by="user-1")

    assert baseline.source_run_id == run.id
    assert baseline.metrics == run.metrics
    assert (await gate.store.get_baseline()).id == baseline.id


@pytest.mark.asyncio
async def test_file_store_lists_newest_first(tmp_path, sample_text):
    gate = make_gate(tmp_path, sample_text)
    first = await gate.run()
    second = await gate.run()
    assert [r.id for r in await gate.store.list_runs()] == [second.id, first.id]
    assert [r.id for r in await gate.store.list_runs(limit=1)] == [second.id]


def test_cli_saves_baseline(tmp_path, capsys):
    path = tmp_path / "baseline.json"
    assert main(["--save-baseline", "--skip-embeddings", "--baseline-file", str(path)]) == 0

    stored = json.loads(path.read_text())
    assert stored["baseline"]["metrics"]["total"] == len(CALIBRATION_DATASET)
    assert "Baseline saved" in capsys.readouterr().out


def test_cli_fails_gate_with_banner(tmp_path, capsys):
    path = tmp_path / "baseline.json"
    main(["--save-baseline", "--skip-embeddings", "--baseline-file", str(path)])

    stored = json.loads(path.read_text())
    stored["baseline"]["metrics"]["false_negatives"] = -10
    path.write_text(json.dumps(stored))

    assert main(["--skip-embeddings", "--baseline-file", str(path)]) == 1
    captured = capsys.readouterr()
    assert "DO NOT DEPLOY" in captured.err
    assert "Result: FAIL" in captured.out


@pytest.mark.asyncio
async def test_corpus_edits_are_classified(tmp_path, sample_text):
    gate = make_gate(tmp_path, sample_text)
    results = await gate.score_corpus()

    assert all(r.good_class == EnforcementClass.PASS for r in results)
    # Unrelated text loses the meaning, which is drift
    assert all(r.bad_class == EnforcementClass.DRIFT for r in results)
    m = compute_metrics(results)
    assert m.good_classes == {"pass": len(results)}
    assert m.bad_classes == {"drift": len(results)}


@pytest.mark.asyncio
async def test_pipeline_replay_with_faithful_generator(tmp_path, sample_text, fake_generator):
    gate = make_gate(tmp_path, sample_text, generator=fake_generator)
    live = compute_live_metrics(await gate.replay_pipeline())

    assert live.example_count == len(EditorialMode)
    assert live.pass_rate == 1.0
    assert live.drift_rate == 0.0
    assert live.enforcement_failure_rate == 0.0
    assert live.mean_semantic_similarity == pytest.approx(1.0)
    assert live.outcomes == {"pass": len(EditorialMode)}
    # Two varied candidates per original, nothing else
    assert len(fake_generator.calls) == 2 * len(EditorialMode)


@pytest.mark.asyncio
async def test_pipeline_replay_runs_corrections_on_drift(tmp_path, sample_text, fake_generator):
    fake_generator.responder = lambda text, mode, constraints: UNRELATED
    gate = make_gate(tmp_path, sample_text, generator=fake_generator)
    results = await gate.replay_pipeline()

    assert all(r.enforcement_class == EnforcementClass.DRIFT for r in results)
    live = compute_live_metrics(results)
    assert live.pass_rate == 0.0
    assert live.drift_rate == 1.0
    assert live.enforcement_failure_rate == 1.0
    assert live.outcomes == {"original_returned": len(EditorialMode)}
    # Two candidates, the fallback and two corrections per original
    assert len(fake_generator.calls) == 5 * len(EditorialMode)


@pytest.mark.asyncio
async def test_pipeline_replay_without_any_generation(tmp_path, sample_text, fake_generator):
    def responder(text, mode, constraints):
        raise GenerationError("down")

    fake_generator.responder = responder
    gate = make_gate(tmp_path, sample_text, generator=fake_generator)
    live = compute_live_metrics(await gate.replay_pipeline())

    assert live.pass_rate == 0.0
    assert live.enforcement_failure_rate == 1.0
    assert live.mean_voice_similarity == 0.0


@pytest.mark.asyncio
async def test_live_gate_fails_when_pipeline_degrades(tmp_path, sample_text, fake_generator):
    gate = make_gate(tmp_path, sample_text, generator=fake_generator)
    first = await gate.run(live=True)
    assert first.passed
    assert not first.static_only
    await gate.promote(first.id)
    assert (await gate.store.get_baseline()).live == first.live

    fake_generator.responder = lambda text, mode, constraints: UNRELATED
    degraded = await gate.run(live=True)

    assert not degraded.passed
    rules = {f.rule for f in degraded.failures}
    assert {"live_semantic_similarity", "live_pass_rate", "live_drift_rate", "live_enforcement_failure"} <= rules
    # The static corpus does not depend on the generator
    assert not rules & {r.id for r in STATIC_GATING_RULES}
    assert "## Live Pipeline Metrics" in format_report(degraded, await gate.store.get_baseline())


@pytest.mark.asyncio
async def test_live_rules_skipped_without_live_baseline(tmp_path, sample_text, fake_generator):
    fake_generator.responder = lambda text, mode, constraints: UNRELATED
    gate = make_gate(tmp_path, sample_text, generator=fake_generator)
    await gate.save_baseline(compute_metrics(await gate.score_corpus()))

    run = await gate.run(live=True)
    assert run.passed
    assert run.live.drift_rate == 1.0


def test_live_rule_table():
    assert [r.metric for r in LIVE_GATING_RULES] == [
        "mean_voice_similarity",
        "mean_semantic_similarity",
        "pass_rate",
        "drift_rate",
        "enforcement_failure_rate",
    ]


def test_cli_live_flag_uses_generator(tmp_path, capsys, monkeypatch, fake_generator):
    import backend.voicefidelity.cli as cli

    monkeypatch.setattr(cli, "get_generator", lambda: fake_generator)
    path = tmp_path / "baseline.json"
    assert main(["--save-baseline", "--live", "--skip-embeddings", "--baseline-file", str(path)]) == 0

    stored = json.loads(path.read_text())
    assert stored["baseline"]["live"]["example_count"] == len(CALIBRATION_DATASET)
    assert fake_generator.calls

    assert main(["--live", "--skip-embeddings", "--baseline-file", str(path)]) == 0
    assert "## Live Pipeline Metrics" in capsys.readouterr().out
