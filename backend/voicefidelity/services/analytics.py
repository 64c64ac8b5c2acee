"""
Read-only analytics over persisted records.

Every function here is pure: it takes already-loaded records and derives
aggregates, so dashboards never re-run generation or scoring.
"""

from collections import defaultdict
from typing import Dict, List, Optional

from ..models.analytics import (
    CorrectionMetrics,
    CorrectionTypeStats,
    EnforcementStats,
    FailureBreakdown,
    Histogram,
    ModeEnforcement,
    ModelVersionStats,
    MultiCandidateStats,
    ScoreDistributions,
    ScoreImprovement,
    SimulationFlip,
    SimulationResult,
    VariationStats,
)
from ..models.editorial import EditorialCandidate, EditorialRun, EnforcementClass, RunStatus
from ..models.evaluation import EditorialMode, VoiceEvaluation, VoiceThresholds
from .scoring import DIMENSION_ORDER, failed_dimensions

# Mean combined drop against the reference model/prompt that flags a regression
MODEL_REGRESSION_DELTA = -0.03


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _histogram(values: List[float], bin_count: int) -> Histogram:
    counts = [0] * bin_count
    for v in values:
        counts[min(bin_count - 1, max(0, int(v * bin_count)))] += 1
    return Histogram(
        bins=[round(i / bin_count, 4) for i in range(bin_count)],
        counts=counts,
        mean=_mean(values),
        minimum=min(values) if values else 0.0,
        maximum=max(values) if values else 0.0,
    )


def score_distributions(evaluations: List[VoiceEvaluation], bin_count: int = 10) -> ScoreDistributions:
    return ScoreDistributions(
        total=len(evaluations),
        pass_rate=_mean([1.0 if e.passed else 0.0 for e in evaluations]),
        dimensions={
            d.value: _histogram([e.scores().get(d) for e in evaluations], bin_count) for d in DIMENSION_ORDER
        },
    )


def failure_breakdown(evaluations: List[VoiceEvaluation]) -> FailureBreakdown:
    failed = [e for e in evaluations if e.enforced and not e.passed]
    by_dimension: Dict[str, int] = defaultdict(int)
    by_mode: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    combinations: Dict[str, int] = defaultdict(int)
    for e in failed:
        for d in e.failed_dimensions:
            by_dimension[d.value] += 1
            by_mode[e.editorial_mode.value][d.value] += 1
        combinations["+".join(d.value for d in e.failed_dimensions)] += 1
    return FailureBreakdown(
        total_failed=len(failed),
        by_dimension=dict(by_dimension),
        by_mode={mode: dict(counts) for mode, counts in by_mode.items()},
        combinations=dict(combinations),
    )


def simulate_thresholds(
    evaluations: List[VoiceEvaluation],
    proposed: Optional[VoiceThresholds] = None,
) -> SimulationResult:
    """
    Recompute pass/fail of enforced evaluations against proposed thresholds.

    With no proposal each evaluation is re-checked against its own stored
    thresholds, which reproduces the stored labels exactly.
    """
    enforced = [e for e in evaluations if e.enforced]
    current_passed = sum(1 for e in enforced if e.passed)
    simulated_passed = 0
    flips: List[SimulationFlip] = []

    for e in enforced:
        thresholds = proposed or e.thresholds
        failed = failed_dimensions(e.scores(), thresholds)
        would_pass = not failed
        if would_pass:
            simulated_passed += 1
        if would_pass != e.passed:
            flips.append(
                SimulationFlip(
                    evaluation_id=e.id,
                    direction="pass_to_fail" if e.passed else "fail_to_pass",
                    mode=e.editorial_mode.value,
                    scores=e.scores(),
                    failed_dimensions=failed,
                    original_preview=e.original_preview,
                )
            )

    return SimulationResult(
        total_enforced=len(enforced),
        current_passed=current_passed,
        current_failed=len(enforced) - current_passed,
        simulated_passed=simulated_passed,
        simulated_failed=len(enforced) - simulated_passed,
        net_change=simulated_passed - current_passed,
        flips=flips,
    )


def compare_models(evaluations: List[VoiceEvaluation]) -> List[ModelVersionStats]:
    """
    Per (model, prompt version) means, compared against the oldest pair seen.

    A pair whose mean combined score sits more than 0.03 below the reference
    is flagged as a regression.
    """
    groups: Dict[tuple, List[VoiceEvaluation]] = defaultdict(list)
    first_seen: Dict[tuple, str] = {}
    for e in evaluations:
        key = (e.model, e.prompt_version)
        groups[key].append(e)
        stamp = e.created_at.isoformat() if e.created_at else ""
        if key not in first_seen or stamp < first_seen[key]:
            first_seen[key] = stamp
    if not groups:
        return []

    reference = min(groups, key=lambda k: (first_seen[k], k))
    reference_mean = _mean([e.combined_score for e in groups[reference]])

    stats = []
    for (model, prompt_version), items in sorted(groups.items(), key=lambda kv: first_seen[kv[0]]):
        mean_combined = _mean([e.combined_score for e in items])
        delta = mean_combined - reference_mean
        stats.append(
            ModelVersionStats(
                model=model,
                prompt_version=prompt_version,
                count=len(items),
                mean_semantic=_mean([e.semantic_score for e in items]),
                mean_stylistic=_mean([e.stylistic_score for e in items]),
                mean_combined=mean_combined,
                pass_rate=_mean([1.0 if e.passed else 0.0 for e in items]),
                delta_combined=delta,
                regression=delta < MODEL_REGRESSION_DELTA,
            )
        )
    return stats


def enforcement_stats(runs: List[EditorialRun]) -> EnforcementStats:
    total = len(runs)
    if total == 0:
        return EnforcementStats(total=0)

    by_class: Dict[str, int] = defaultdict(int)
    by_outcome: Dict[str, int] = defaultdict(int)
    for r in runs:
        by_class[r.enforcement_class.value] += 1
        by_outcome[r.enforcement_outcome.value] += 1

    retried = [r for r in runs if r.retry_attempted]
    improvements = [
        r.final_best_combined_score - r.initial_best_combined_score
        for r in retried
        if r.final_best_combined_score is not None and r.initial_best_combined_score is not None
    ]
    improvement = None
    if improvements:
        improvement = ScoreImprovement(
            count=len(improvements),
            avg=_mean(improvements),
            minimum=min(improvements),
            maximum=max(improvements),
            positive_count=sum(1 for d in improvements if d > 0),
        )

    by_mode = {}
    for mode in EditorialMode:
        mode_runs = [r for r in runs if r.editorial_mode == mode]
        if not mode_runs:
            continue
        mode_retried = [r for r in mode_runs if r.retry_attempted]
        count = lambda cls: sum(1 for r in mode_runs if r.enforcement_class == cls)  # noqa: E731
        by_mode[mode.value] = ModeEnforcement(
            total=len(mode_runs),
            pass_count=count(EnforcementClass.PASS),
            soft_warning_count=count(EnforcementClass.SOFT_WARNING),
            failure_count=count(EnforcementClass.FAILURE),
            drift_count=count(EnforcementClass.DRIFT),
            retry_count=len(mode_retried),
            original_return_count=sum(1 for r in mode_runs if r.returned_original),
            pass_rate=count(EnforcementClass.PASS) / len(mode_runs),
            retry_success_rate=_mean([0.0 if r.returned_original else 1.0 for r in mode_retried]),
        )

    return EnforcementStats(
        total=total,
        by_class=dict(by_class),
        by_outcome=dict(by_outcome),
        retry_rate=len(retried) / total,
        original_return_rate=sum(1 for r in runs if r.returned_original) / total,
        retry_success_rate=_mean([0.0 if r.returned_original else 1.0 for r in retried]),
        score_improvement=improvement,
        by_mode=by_mode,
    )


def correction_metrics(evaluations: List[VoiceEvaluation]) -> CorrectionMetrics:
    attempted = [e for e in evaluations if e.correction_attempted and e.correction_type is not None]
    by_type: Dict[str, List[VoiceEvaluation]] = defaultdict(list)
    for e in attempted:
        by_type[e.correction_type.value].append(e)

    def summarize(items: List[VoiceEvaluation]) -> CorrectionTypeStats:
        improved = sum(1 for e in items if e.correction_improved_score)
        deltas = [e.final_combined_score - e.combined_score for e in items if e.final_combined_score is not None]
        return CorrectionTypeStats(
            count=len(items),
            improved=improved,
            improvement_rate=improved / len(items) if items else 0.0,
            avg_delta=_mean(deltas),
        )

    return CorrectionMetrics(
        attempted=len(attempted),
        improved=sum(1 for e in attempted if e.correction_improved_score),
        by_type={key: summarize(items) for key, items in by_type.items()},
    )


def multi_candidate_stats(runs: List[EditorialRun], candidates: List[EditorialCandidate]) -> MultiCandidateStats:
    total = len(runs)
    selected_distribution: Dict[str, int] = defaultdict(int)
    for r in runs:
        key = "original" if r.selected_candidate_index is None else str(r.selected_candidate_index)
        selected_distribution[key] += 1

    primaries: Dict[str, List[EditorialCandidate]] = defaultdict(list)
    by_variation: Dict[str, List[EditorialCandidate]] = defaultdict(list)
    for c in candidates:
        if c.is_fallback or c.correction_type is not None:
            continue
        primaries[c.run_id].append(c)
        by_variation[c.variation_key].append(c)

    selection_deltas = []
    combined_deltas = []
    for pair in primaries.values():
        if len(pair) < 2:
            continue
        ranked = sorted(pair, key=lambda c: -c.selection_score)
        selection_deltas.append(abs(ranked[0].selection_score - ranked[1].selection_score))
        combined_deltas.append(abs(ranked[0].combined_score - ranked[1].combined_score))

    return MultiCandidateStats(
        total_runs=total,
        fallback_rate=sum(1 for r in runs if r.fallback_used) / total if total else 0.0,
        all_passed_rate=sum(1 for r in runs if r.all_candidates_passed) / total if total else 0.0,
        superseded_count=sum(1 for r in runs if r.status == RunStatus.SUPERSEDED),
        selected_distribution=dict(selected_distribution),
        avg_selection_delta=_mean(selection_deltas),
        avg_combined_delta=_mean(combined_deltas),
        by_variation={
            key: VariationStats(
                count=len(items),
                wins=sum(1 for c in items if c.selected),
                avg_selection=_mean([c.selection_score for c in items]),
            )
            for key, items in by_variation.items()
        },
    )
