"""
Regression gate.

Replays the calibration corpus through the production scorer and classifier,
optionally drives every original through the full generation pipeline
(selection, classification, correction), compares the aggregate metrics with
the stored baseline and records a verdict. A failed
gate is a normal result, not an exception; callers decide how loudly to
report it.
"""

import hashlib
import json
import logging
import os
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from fastapi import HTTPException
from pydantic import BaseModel

from ..config import settings
from ..models.editorial import EnforcementClass, EnforcementOutcome
from ..models.evaluation import EditorialMode
from ..models.regression import (
    CalibrationExample,
    CalibrationResult,
    GatingFailure,
    GatingRule,
    LiveMetrics,
    LiveResult,
    ModeStats,
    RegressionBaseline,
    RegressionRun,
    StaticMetrics,
)
from .calibration_data import CALIBRATION_DATASET, CALIBRATION_VERSION
from .enforcement import CorrectionPipeline, classify, enforcement_applies
from .generator import EDITORIAL_PROMPTS, MINIMAL_EDIT_PROMPTS, TextGenerator, get_generator
from .selection import CandidateScorer, CandidateSelector
from .semantic import SemanticScorer
from .thresholds import BASE_THRESHOLDS, MODE_WEIGHTS, resolve_thresholds

logger = logging.getLogger(__name__)

STATIC_GATING_RULES: List[GatingRule] = [
    GatingRule(
        id="good_win_rate",
        description="Good edits must outscore bad edits",
        metric="good_win_rate",
        min_drop=0.05,
        floor=0.85,
    ),
    GatingRule(
        id="false_negatives",
        description="False negatives (good scored below bad) must not rise",
        metric="false_negatives",
        max_rise=3,
    ),
    GatingRule(
        id="mean_stylistic_good",
        description="Average stylistic similarity for good edits must not drop",
        metric="mean_stylistic_good",
        min_drop=0.05,
        floor=0.70,
    ),
    GatingRule(
        id="mean_semantic_good",
        description="Average semantic similarity for good edits must not drop",
        metric="mean_semantic_good",
        min_drop=0.05,
        floor=0.75,
    ),
    GatingRule(
        id="mean_combined_good",
        description="Average combined score for good edits must not drop",
        metric="mean_combined_good",
        min_drop=0.05,
        floor=0.70,
    ),
]

LIVE_GATING_RULES: List[GatingRule] = [
    GatingRule(
        id="live_voice_similarity",
        description="Live: average voice similarity must not drop",
        metric="mean_voice_similarity",
        min_drop=0.05,
        floor=0.65,
    ),
    GatingRule(
        id="live_semantic_similarity",
        description="Live: average semantic similarity must not drop",
        metric="mean_semantic_similarity",
        min_drop=0.05,
        floor=0.80,
    ),
    GatingRule(
        id="live_pass_rate",
        description="Live: pass rate must not drop",
        metric="pass_rate",
        min_drop=0.08,
        floor=0.70,
    ),
    GatingRule(
        id="live_drift_rate",
        description="Live: drift rate (semantic failure) must not rise",
        metric="drift_rate",
        max_rise=0.05,
        ceiling=0.10,
    ),
    GatingRule(
        id="live_enforcement_failure",
        description="Live: enforcement failure rate must not rise dramatically",
        metric="enforcement_failure_rate",
        max_rise=0.10,
        ceiling=0.25,
    ),
]

# Outcomes where corrections could not produce a passing rewrite
UNRESOLVED_OUTCOMES = {EnforcementOutcome.PASSTHROUGH, EnforcementOutcome.ORIGINAL_RETURNED}


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def compute_metrics(results: List[CalibrationResult]) -> StaticMetrics:
    """Aggregate per-example scores into the gated metrics."""
    total = len(results)
    good_wins = sum(1 for r in results if r.good_wins)

    by_mode: Dict[str, ModeStats] = {}
    for mode in EditorialMode:
        mode_results = [r for r in results if r.mode == mode]
        if not mode_results:
            continue
        wins = sum(1 for r in mode_results if r.good_wins)
        by_mode[mode.value] = ModeStats(
            total=len(mode_results),
            good_wins=wins,
            good_win_rate=wins / len(mode_results),
            false_negatives=len(mode_results) - wins,
            mean_combined_good=_mean([r.good.combined for r in mode_results]),
            mean_combined_bad=_mean([r.bad.combined for r in mode_results]),
        )

    return StaticMetrics(
        good_win_rate=good_wins / total if total else 0.0,
        false_negatives=total - good_wins,
        total=total,
        mean_semantic_good=_mean([r.good.semantic for r in results]),
        mean_stylistic_good=_mean([r.good.stylistic for r in results]),
        mean_scope_good=_mean([r.good.scope for r in results]),
        mean_combined_good=_mean([r.good.combined for r in results]),
        mean_semantic_bad=_mean([r.bad.semantic for r in results]),
        mean_stylistic_bad=_mean([r.bad.stylistic for r in results]),
        mean_scope_bad=_mean([r.bad.scope for r in results]),
        mean_combined_bad=_mean([r.bad.combined for r in results]),
        good_pass_rate=_mean([1.0 if r.good_passed else 0.0 for r in results]),
        bad_reject_rate=_mean([0.0 if r.bad_passed else 1.0 for r in results]),
        good_classes=dict(Counter(r.good_class.value for r in results)),
        bad_classes=dict(Counter(r.bad_class.value for r in results)),
        by_mode=by_mode,
    )


def compute_live_metrics(results: List[LiveResult]) -> LiveMetrics:
    """Aggregate full-pipeline replays. An example with no candidate counts as unresolved and not passing."""
    total = len(results)
    generated = [r for r in results if r.generated]

    def rate(count: int) -> float:
        return count / total if total else 0.0

    return LiveMetrics(
        mean_voice_similarity=_mean([r.selected.stylistic for r in generated]),
        mean_semantic_similarity=_mean([r.selected.semantic for r in generated]),
        pass_rate=rate(sum(1 for r in results if r.selected_passed)),
        drift_rate=rate(sum(1 for r in results if r.enforcement_class == EnforcementClass.DRIFT)),
        enforcement_failure_rate=rate(sum(1 for r in results if r.enforcement_outcome in UNRESOLVED_OUTCOMES)),
        example_count=total,
        outcomes=dict(Counter(r.enforcement_outcome.value for r in results)),
    )


def evaluate_gates(
    rules: List[GatingRule],
    baseline: Optional[BaseModel],
    current: BaseModel,
) -> List[GatingFailure]:
    """
    Check current metrics against a baseline.

    Without a baseline there is nothing to compare to and no rule applies,
    floors and ceilings included.
    """
    if baseline is None:
        return []

    failures: List[GatingFailure] = []
    for rule in rules:
        base = float(getattr(baseline, rule.metric))
        value = float(getattr(current, rule.metric))

        def fail(threshold: str) -> None:
            failures.append(
                GatingFailure(
                    rule=rule.id,
                    description=rule.description,
                    baseline=base,
                    current=value,
                    threshold=threshold,
                )
            )

        if rule.min_drop is not None and value < base - rule.min_drop:
            fail(f"current ({value:.4f}) < baseline ({base:.4f}) - {rule.min_drop}")
        if rule.floor is not None and value < rule.floor:
            fail(f"current ({value:.4f}) < floor {rule.floor}")
        if rule.max_rise is not None and value > base + rule.max_rise:
            fail(f"current ({value:.4f}) > baseline ({base:.4f}) + {rule.max_rise}")
        if rule.ceiling is not None and value > rule.ceiling:
            fail(f"current ({value:.4f}) > ceiling {rule.ceiling}")
    return failures


def config_hash(provider: Optional[str] = None, model: Optional[str] = None) -> str:
    """sha256 over everything that can move calibration scores."""
    payload = {
        "calibration_version": CALIBRATION_VERSION,
        "thresholds": {mode.value: t.model_dump() for mode, t in BASE_THRESHOLDS.items()},
        "weights": {mode.value: w.model_dump() for mode, w in MODE_WEIGHTS.items()},
        "prompts": {mode.value: p for mode, p in EDITORIAL_PROMPTS.items()},
        "minimal_edit_prompts": {mode.value: p for mode, p in MINIMAL_EDIT_PROMPTS.items()},
        "provider": provider or settings.ai_provider,
        "model": model or settings.ai_model,
    }
    encoded = json.dumps(payload, sort_keys=True).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


class RegressionStore:
    """Where baselines and gate runs are kept."""

    async def get_baseline(self) -> Optional[RegressionBaseline]:
        raise NotImplementedError

    async def save_baseline(self, baseline: RegressionBaseline) -> RegressionBaseline:
        raise NotImplementedError

    async def record_run(self, run: RegressionRun) -> RegressionRun:
        raise NotImplementedError

    async def get_run(self, run_id: str) -> Optional[RegressionRun]:
        raise NotImplementedError

    async def list_runs(self, limit: int = 10) -> List[RegressionRun]:
        raise NotImplementedError


class SupabaseRegressionStore(RegressionStore):
    def __init__(self):
        # Deferred so file-backed CLI runs never open a database client
        from . import supabase as db

        self.client = db.supabase_client
        self.baselines_table = db.REGRESSION_BASELINES_TABLE
        self.runs_table = db.REGRESSION_RUNS_TABLE

    async def get_baseline(self) -> Optional[RegressionBaseline]:
        try:
            response = (
                self.client.table(self.baselines_table)
                .select("*")
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to load regression baseline: {str(e)}")
        return RegressionBaseline(**response.data[0]) if response.data else None

    async def save_baseline(self, baseline: RegressionBaseline) -> RegressionBaseline:
        try:
            response = (
                self.client.table(self.baselines_table)
                .insert(baseline.model_dump(mode="json", exclude={"id", "created_at"}))
                .execute()
            )
            return RegressionBaseline(**response.data[0])
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to save regression baseline: {str(e)}")

    async def record_run(self, run: RegressionRun) -> RegressionRun:
        try:
            response = (
                self.client.table(self.runs_table)
                .insert(run.model_dump(mode="json", exclude={"id", "created_at"}))
                .execute()
            )
            return RegressionRun(**response.data[0])
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to record regression run: {str(e)}")

    async def get_run(self, run_id: str) -> Optional[RegressionRun]:
        try:
            response = self.client.table(self.runs_table).select("*").eq("id", run_id).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to load regression run: {str(e)}")
        return RegressionRun(**response.data[0]) if response.data else None

    async def list_runs(self, limit: int = 10) -> List[RegressionRun]:
        try:
            response = (
                self.client.table(self.runs_table)
                .select("*")
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to list regression runs: {str(e)}")
        return [RegressionRun(**row) for row in response.data]


class JsonFileRegressionStore(RegressionStore):
    """
    Baseline and run history in a local JSON file.

    Used by the CLI so CI can gate without database credentials. The file
    holds ``{"baseline": {...} | null, "runs": [...]}``, newest run last.
    """

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> dict:
        if not os.path.exists(self.path):
            return {"baseline": None, "runs": []}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        data.setdefault("baseline", None)
        data.setdefault("runs", [])
        return data

    def _save(self, data: dict) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    @staticmethod
    def _stamp(record):
        return record.model_copy(update={
            "id": record.id or str(uuid.uuid4()),
            "created_at": record.created_at or datetime.now(timezone.utc),
        })

    async def get_baseline(self) -> Optional[RegressionBaseline]:
        data = self._load()
        return RegressionBaseline(**data["baseline"]) if data["baseline"] else None

    async def save_baseline(self, baseline: RegressionBaseline) -> RegressionBaseline:
        data = self._load()
        stored = self._stamp(baseline)
        data["baseline"] = stored.model_dump(mode="json")
        self._save(data)
        return stored

    async def record_run(self, run: RegressionRun) -> RegressionRun:
        data = self._load()
        stored = self._stamp(run)
        data["runs"].append(stored.model_dump(mode="json"))
        self._save(data)
        return stored

    async def get_run(self, run_id: str) -> Optional[RegressionRun]:
        for row in self._load()["runs"]:
            if row["id"] == run_id:
                return RegressionRun(**row)
        return None

    async def list_runs(self, limit: int = 10) -> List[RegressionRun]:
        runs = self._load()["runs"]
        return [RegressionRun(**row) for row in reversed(runs[-limit:])]


class RegressionGate:
    """Scores the calibration corpus and gates it against the baseline."""

    def __init__(
        self,
        store: Optional[RegressionStore] = None,
        semantic: Optional[SemanticScorer] = None,
        dataset: Optional[List[CalibrationExample]] = None,
        rules: Optional[List[GatingRule]] = None,
        generator: Optional[TextGenerator] = None,
        live_rules: Optional[List[GatingRule]] = None,
    ):
        self.store = store or SupabaseRegressionStore()
        self.semantic = semantic
        self.dataset = dataset if dataset is not None else CALIBRATION_DATASET
        self.rules = rules if rules is not None else STATIC_GATING_RULES
        self.generator = generator
        self.live_rules = live_rules if live_rules is not None else LIVE_GATING_RULES

    def _scorer(self, skip_embeddings: bool) -> CandidateScorer:
        return CandidateScorer(self.semantic or SemanticScorer(skip_embeddings=skip_embeddings))

    async def score_corpus(self, skip_embeddings: bool = True) -> List[CalibrationResult]:
        scorer = self._scorer(skip_embeddings)
        results = []
        for example in self.dataset:
            # No profile: calibration measures the base policy
            thresholds = resolve_thresholds(example.mode)
            good, bad = await scorer.score_texts(
                example.original,
                [example.good_edit, example.bad_edit],
                example.mode,
                thresholds,
            )
            results.append(
                CalibrationResult(
                    example_id=example.id,
                    mode=example.mode,
                    good=good.scores,
                    bad=bad.scores,
                    good_passed=good.passed,
                    bad_passed=bad.passed,
                    good_class=classify(good),
                    bad_class=classify(bad),
                )
            )
            if not results[-1].good_wins:
                logger.info("Calibration example %s: bad edit outscored good edit", example.id)
        return results

    async def replay_pipeline(self, skip_embeddings: bool = True) -> List[LiveResult]:
        """Drive every calibration original through selection, classification and correction."""
        generator = self.generator or get_generator()
        scorer = self._scorer(skip_embeddings)
        timeout = settings.generation_timeout_seconds
        selector = CandidateSelector(generator, scorer, timeout)
        corrections = CorrectionPipeline(generator, scorer, timeout)

        results = []
        for example in self.dataset:
            thresholds = resolve_thresholds(example.mode)
            selection = await selector.run(example.original, example.mode, thresholds)
            best = selection.selected
            if best is None:
                logger.warning("Calibration example %s: every generation failed", example.id)
                results.append(
                    LiveResult(
                        example_id=example.id,
                        mode=example.mode,
                        generated=False,
                        enforcement_class=EnforcementClass.FAILURE,
                        enforcement_outcome=EnforcementOutcome.ORIGINAL_RETURNED,
                    )
                )
                continue

            enforcement_class = classify(best.score)
            outcome = EnforcementOutcome.PASS
            if enforcement_class != EnforcementClass.PASS and enforcement_applies(example.original):
                correction = await corrections.run(
                    example.original,
                    example.mode,
                    thresholds,
                    enforcement_class,
                    best,
                    next_index=selection.next_index,
                )
                outcome = correction.outcome

            results.append(
                LiveResult(
                    example_id=example.id,
                    mode=example.mode,
                    generated=True,
                    selected=best.score.scores,
                    selected_passed=best.score.passed,
                    enforcement_class=enforcement_class,
                    enforcement_outcome=outcome,
                )
            )
        return results

    async def run(self, skip_embeddings: bool = True, live: bool = False) -> RegressionRun:
        """Score, gate against the current baseline, and record the run."""
        metrics = compute_metrics(await self.score_corpus(skip_embeddings))
        live_metrics = compute_live_metrics(await self.replay_pipeline(skip_embeddings)) if live else None
        baseline = await self.store.get_baseline()
        failures = evaluate_gates(self.rules, baseline.metrics if baseline else None, metrics)
        if live_metrics is not None:
            if baseline is not None and baseline.live is None:
                logger.warning("Baseline has no live metrics; live gating rules not applied")
            failures += evaluate_gates(self.live_rules, baseline.live if baseline else None, live_metrics)
        digest = config_hash()

        if baseline is None:
            logger.warning("No regression baseline stored; gating rules not applied")
        elif baseline.config_hash != digest:
            logger.info("Config hash changed since baseline (%s -> %s)", baseline.config_hash[:12], digest[:12])

        run = await self.store.record_run(
            RegressionRun(
                passed=not failures,
                config_hash=digest,
                static_only=not live,
                skip_embeddings=skip_embeddings,
                metrics=metrics,
                live=live_metrics,
                failures=failures,
                baseline_id=baseline.id if baseline else None,
            )
        )
        if failures:
            logger.error("Regression gate FAILED with %d violation(s)", len(failures))
        else:
            logger.info("Regression gate passed (good_win_rate=%.4f)", metrics.good_win_rate)
        return run

    async def save_baseline(
        self,
        metrics: StaticMetrics,
        source_run_id: Optional[str] = None,
        created_by: Optional[str] = None,
        live: Optional[LiveMetrics] = None,
    ) -> RegressionBaseline:
        baseline = await self.store.save_baseline(
            RegressionBaseline(
                config_hash=config_hash(),
                metrics=metrics,
                live=live,
                source_run_id=source_run_id,
                created_by=created_by,
            )
        )
        logger.info("Saved regression baseline %s", baseline.id)
        return baseline

    async def promote(self, run_id: str, created_by: Optional[str] = None) -> RegressionBaseline:
        """Make a passing run's metrics the new baseline."""
        run = await self.store.get_run(run_id)
        if run is None:
            raise HTTPException(status_code=404, detail="Regression run not found")
        if not run.passed:
            raise HTTPException(status_code=409, detail="Only a passing regression run can be promoted")
        baseline = await self.store.save_baseline(
            RegressionBaseline(
                config_hash=run.config_hash,
                metrics=run.metrics,
                live=run.live,
                source_run_id=run.id,
                created_by=created_by,
            )
        )
        logger.info("Promoted regression run %s to baseline", run_id)
        return baseline


def format_report(run: RegressionRun, baseline: Optional[RegressionBaseline]) -> str:
    """Human-readable gate report for the CLI."""
    m = run.metrics
    lines = ["", "# Voice Regression Suite", "", f"Result: {'PASS' if run.passed else 'FAIL'}", ""]

    if baseline is not None:
        b = baseline.metrics
        lines.append("## Metric Diffs (current vs baseline)")
        for name, higher_is_better in (
            ("good_win_rate", True),
            ("false_negatives", False),
            ("mean_semantic_good", True),
            ("mean_stylistic_good", True),
            ("mean_scope_good", True),
            ("mean_combined_good", True),
        ):
            current = float(getattr(m, name))
            base = float(getattr(b, name))
            delta = current - base
            ok = delta >= 0 if higher_is_better else delta <= 0
            lines.append(f"  {name}: {current:.4f} (baseline: {base:.4f}) {delta:+.4f} {'ok' if ok else 'WORSE'}")
        lines.append("")

    if run.failures:
        lines.append("## Gating Failures")
        for f in run.failures:
            lines.append(f"  {f.rule}: {f.description}")
            lines.append(f"    {f.threshold}")
        lines.append("")

    lines.append("## Current Metrics")
    lines.append(f"  good_win_rate:       {m.good_win_rate:.4f}")
    lines.append(f"  false_negatives:     {m.false_negatives}")
    lines.append(f"  mean_semantic_good:  {m.mean_semantic_good:.4f}")
    lines.append(f"  mean_stylistic_good: {m.mean_stylistic_good:.4f}")
    lines.append(f"  mean_combined_good:  {m.mean_combined_good:.4f}")
    lines.append(f"  good_pass_rate:      {m.good_pass_rate:.4f}")
    lines.append(f"  bad_reject_rate:     {m.bad_reject_rate:.4f}")
    for mode, stats in m.by_mode.items():
        lines.append(f"  {mode}: {stats.good_wins}/{stats.total} good wins")

    if run.live is not None:
        live = run.live
        base_live = baseline.live if baseline is not None else None
        lines.append("")
        lines.append("## Live Pipeline Metrics")
        for name in (
            "mean_voice_similarity",
            "mean_semantic_similarity",
            "pass_rate",
            "drift_rate",
            "enforcement_failure_rate",
        ):
            current = getattr(live, name)
            suffix = f" (baseline: {getattr(base_live, name):.4f})" if base_live is not None else ""
            lines.append(f"  {name}: {current:.4f}{suffix}")
        lines.append(f"  outcomes: {live.outcomes}")

    lines.append(f"  config_hash: {run.config_hash}")
    return "\n".join(lines)
