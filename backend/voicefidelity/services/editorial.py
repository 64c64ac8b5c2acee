"""
Editorial engine: one rewrite request from profile lookup to persisted run.

The engine owns orchestration only. Scoring, selection, classification and
correction live in their own modules; every record written here is
insert-once apart from the documented patches.
"""

import logging
from typing import List, Optional, Tuple

from fastapi import HTTPException

from ..config import settings
from ..models.drift import RunMetric
from ..models.editorial import (
    AlternateResult,
    EditorialCandidate,
    EditorialRequest,
    EditorialResult,
    EditorialRun,
    EnforcementClass,
    EnforcementOutcome,
    EvaluationDebug,
    ScoredCandidate,
)
from ..models.evaluation import CorrectionType, ResolvedThresholds, VoiceEvaluation
from ..models.voice_profile import ProfileStatus, VoiceProfile
from .drift import DriftMonitor
from .enforcement import CorrectionPipeline, CorrectionResult, classify, enforcement_applies
from .evaluations import EvaluationService
from .generator import TextGenerator, get_generator, prompt_version_id
from .runs import RunService
from .selection import CandidateScorer, CandidateSelector
from .semantic import SemanticScorer
from .thresholds import resolve_thresholds
from .voice_profile import VoiceProfileService

logger = logging.getLogger(__name__)


class EditorialEngine:
    """Runs one editorial request end to end."""

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        semantic: Optional[SemanticScorer] = None,
        profiles: Optional[VoiceProfileService] = None,
        runs: Optional[RunService] = None,
        evaluations: Optional[EvaluationService] = None,
        drift: Optional[DriftMonitor] = None,
    ):
        self.generator = generator or get_generator()
        scorer = CandidateScorer(semantic or SemanticScorer())
        timeout = settings.generation_timeout_seconds
        self.selector = CandidateSelector(self.generator, scorer, timeout)
        self.corrections = CorrectionPipeline(self.generator, scorer, timeout)
        self.profiles = profiles or VoiceProfileService()
        self.runs = runs or RunService()
        self.evaluations = evaluations or EvaluationService()
        self.drift = drift or DriftMonitor()

    async def refine(
        self,
        user_id: str,
        request: EditorialRequest,
        org_id: Optional[str] = None,
    ) -> Tuple[EditorialResult, Optional[RunMetric]]:
        """
        Produce a voice-checked rewrite.

        Returns the caller-facing result and the run metric to feed the drift
        monitor (None when nothing could be generated).
        """
        mode = request.mode
        provider = self.generator.provider
        model = self.generator.model
        prompt_version = prompt_version_id(mode)

        profile = await self.profiles.get_profile(user_id, org_id)
        thresholds = self._thresholds(request, profile)
        active_fp = profile.fingerprint if profile and profile.status == ProfileStatus.ACTIVE else None

        if request.post_id:
            superseded = await self.runs.supersede_active(user_id, request.post_id, mode)
            if superseded:
                logger.info("Superseded %d earlier %s run(s) for post %s", superseded, mode.value, request.post_id)

        selection = await self.selector.run(
            request.text,
            mode,
            thresholds,
            profile_fingerprint=active_fp,
            variation_seed=request.variation_seed,
            nudge=request.nudge_direction,
        )
        enforced = enforcement_applies(request.text)
        best = selection.selected

        correction: Optional[CorrectionResult] = None
        if best is None:
            logger.warning("Every %s generation failed; returning original text", mode.value)
            enforcement_class = EnforcementClass.FAILURE
            outcome = EnforcementOutcome.ORIGINAL_RETURNED
            returned: Optional[ScoredCandidate] = None
            text = request.text
        else:
            active_alert = await self.drift.has_active_alert(user_id, model, prompt_version)
            enforcement_class = classify(best.score, active_alert)
            if not enforced or enforcement_class == EnforcementClass.PASS:
                outcome = EnforcementOutcome.PASS
                returned = best
                text = best.text
            else:
                correction = await self.corrections.run(
                    request.text,
                    mode,
                    thresholds,
                    enforcement_class,
                    best,
                    next_index=selection.next_index,
                    profile_fingerprint=active_fp,
                    nudge=request.nudge_direction,
                )
                outcome = correction.outcome
                returned = correction.returned_candidate
                text = correction.text

        all_candidates = selection.candidates + (correction.attempts if correction else [])
        best_passing_index = selection.best_passing_index
        if returned is not None and returned.score.passed:
            best_passing_index = returned.index
        top = max(all_candidates, key=lambda c: c.score.scores.combined, default=None)

        run = await self.runs.create_run(
            EditorialRun(
                id="",
                user_id=user_id,
                org_id=org_id,
                post_id=request.post_id,
                editorial_mode=mode,
                original_text=request.text,
                variation_seed=request.variation_seed,
                candidate_count=len(all_candidates),
                selected_candidate_index=returned.index if returned else None,
                best_passing_index=best_passing_index,
                all_candidates_passed=selection.all_candidates_passed,
                fallback_used=selection.fallback_used,
                enforced=enforced,
                enforcement_class=enforcement_class,
                enforcement_outcome=outcome,
                retry_attempted=correction is not None,
                correction_types=correction.correction_types if correction else [],
                returned_original=returned is None,
                initial_best_combined_score=best.score.scores.combined if best else None,
                initial_best_semantic_score=best.score.scores.semantic if best else None,
                final_best_combined_score=top.score.scores.combined if top else None,
                final_best_semantic_score=top.score.scores.semantic if top else None,
                provider=provider,
                model=model,
                prompt_version=prompt_version,
                nudge_direction=request.nudge_direction,
            )
        )

        evaluation_ids = await self._persist_candidates(
            run, all_candidates, returned, profile, thresholds, enforced, provider, model, prompt_version
        )

        if correction is not None and best is not None:
            await self.evaluations.record_correction(
                evaluation_ids[best.index],
                self._correction_type(correction),
                correction.improved,
                correction.final_combined_score,
            )

        has_alternate = any(self._is_alternate(c, returned, enforced) for c in all_candidates)
        result = EditorialResult(
            mode=mode,
            original_text=request.text,
            suggested_text=text,
            provider=provider,
            model=model,
            prompt_version=prompt_version,
            run_id=run.id,
            has_alternate=has_alternate,
            nudge_direction=request.nudge_direction,
            enforcement_class=enforcement_class,
            enforcement_outcome=outcome,
            returned_original=run.returned_original,
            voice_evaluation=self._debug(returned or best, enforced, profile) if settings.voice_engine_debug else None,
        )

        metric_source = returned or best
        metric = None
        if metric_source is not None:
            metric = RunMetric(
                run_id=run.id,
                user_id=user_id,
                model=model,
                prompt_version=prompt_version,
                semantic_score=metric_source.score.scores.semantic,
                stylistic_score=metric_source.score.scores.stylistic,
                combined_score=metric_source.score.scores.combined,
                profile_confidence=profile.confidence if profile else None,
                enforcement_class=enforcement_class,
            )
        return result, metric

    async def alternate(self, run_id: str, user_id: str) -> AlternateResult:
        """Serve the best not-yet-shown candidate of a run ("try again")."""
        run = await self.runs.get_run(run_id, user_id)
        candidates = await self.runs.get_candidates(run_id)
        unshown = [c for c in candidates if not c.shown and (c.passed or not run.enforced)]
        if not unshown:
            raise HTTPException(status_code=404, detail="No alternate available for this run")

        choice = min(unshown, key=lambda c: (not c.passed, -c.selection_score, c.candidate_index))
        await self.runs.mark_shown(choice.id)
        return AlternateResult(
            run_id=run_id,
            candidate_index=choice.candidate_index,
            suggested_text=choice.suggested_text,
            has_alternate=len(unshown) > 1,
        )

    def _thresholds(self, request: EditorialRequest, profile: Optional[VoiceProfile]) -> ResolvedThresholds:
        if profile is None:
            return resolve_thresholds(request.mode)
        return resolve_thresholds(request.mode, profile.confidence_band, profile.confidence)

    @staticmethod
    def _is_alternate(candidate: ScoredCandidate, returned: Optional[ScoredCandidate], enforced: bool) -> bool:
        if returned is not None and candidate.index == returned.index:
            return False
        return candidate.score.passed or not enforced

    async def _persist_candidates(
        self,
        run: EditorialRun,
        candidates: List[ScoredCandidate],
        returned: Optional[ScoredCandidate],
        profile: Optional[VoiceProfile],
        thresholds: ResolvedThresholds,
        enforced: bool,
        provider: str,
        model: str,
        prompt_version: str,
    ) -> dict:
        """Store one evaluation per candidate, then the candidates. Returns index -> evaluation id."""
        active = profile is not None and profile.status == ProfileStatus.ACTIVE
        evaluation_ids = {}
        for c in candidates:
            stored = await self.evaluations.create_evaluation(
                VoiceEvaluation(
                    id="",
                    user_id=run.user_id,
                    org_id=run.org_id,
                    post_id=run.post_id,
                    run_id=run.id,
                    editorial_mode=run.editorial_mode,
                    original_fingerprint=c.score.original_fingerprint,
                    suggestion_fingerprint=c.score.candidate_fingerprint,
                    profile_fingerprint=profile.fingerprint if active else None,
                    semantic_score=c.score.scores.semantic,
                    stylistic_score=c.score.scores.stylistic,
                    scope_score=c.score.scores.scope,
                    combined_score=c.score.scores.combined,
                    thresholds=thresholds.bare(),
                    passed=c.score.passed,
                    failed_dimensions=c.score.failed_dimensions,
                    enforced=enforced,
                    semantic_method=c.score.semantic_method,
                    profile_status=profile.status if profile else ProfileStatus.NONE,
                    profile_confidence=profile.confidence if profile else None,
                    profile_confidence_band=profile.confidence_band if profile else None,
                    provider=provider,
                    model=model,
                    prompt_version=prompt_version,
                    original_preview=run.original_text,
                    suggestion_preview=c.text,
                )
            )
            evaluation_ids[c.index] = stored.id

        returned_index = returned.index if returned is not None else None
        await self.runs.add_candidates([
            EditorialCandidate(
                id="",
                run_id=run.id,
                candidate_index=c.index,
                variation_key=c.variation_key,
                suggested_text=c.text,
                semantic_score=c.score.scores.semantic,
                stylistic_score=c.score.scores.stylistic,
                scope_score=c.score.scores.scope,
                combined_score=c.score.scores.combined,
                selection_score=c.score.selection_score,
                passed=c.score.passed,
                failed_dimensions=c.score.failed_dimensions,
                selected=c.index == returned_index,
                shown=c.index == returned_index,
                is_fallback=c.is_fallback,
                generation_phase=c.generation_phase,
                correction_type=c.correction_type,
                evaluation_id=evaluation_ids[c.index],
            )
            for c in candidates
        ])
        return evaluation_ids

    @staticmethod
    def _debug(candidate: Optional[ScoredCandidate], enforced: bool, profile: Optional[VoiceProfile]) -> Optional[EvaluationDebug]:
        if candidate is None:
            return None
        return EvaluationDebug(
            scores=candidate.score.scores,
            selection_score=candidate.score.selection_score,
            passed=candidate.score.passed,
            enforced=enforced,
            profile_status=(profile.status if profile else ProfileStatus.NONE).value,
        )

    @staticmethod
    def _correction_type(correction: CorrectionResult) -> CorrectionType:
        if correction.outcome in (EnforcementOutcome.PASSTHROUGH, EnforcementOutcome.ORIGINAL_RETURNED):
            return CorrectionType.PASSTHROUGH
        return correction.correction_types[-1]
