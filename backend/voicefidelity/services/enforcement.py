"""
Enforcement classification and the bounded correction pipeline.

A run whose selected candidate did not pass is classified, then corrected
with at most two sequential regenerations (constraint boost, then minimal
edit). If neither passes, the best candidate is only returned when it
matches the original text's own baseline; otherwise the original is
returned verbatim.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel

from ..models.editorial import (
    EnforcementClass,
    EnforcementOutcome,
    GenerationPhase,
    NudgeDirection,
    ScoredCandidate,
)
from ..models.evaluation import CandidateScore, CorrectionType, Dimension, EditorialMode, ResolvedThresholds
from ..models.fingerprint import Fingerprint
from .generator import GenerationConstraints, TextGenerator, generate_safely
from .scoring import score_candidate
from .selection import CandidateScorer

logger = logging.getLogger(__name__)

MIN_WORDS_FOR_ENFORCEMENT = 50
SOFT_WARNING_MARGIN = 0.05
MAX_CORRECTION_ATTEMPTS = 2

CORRECTION_ORDER = (CorrectionType.CONSTRAINT_BOOST, CorrectionType.MINIMAL_EDIT)

RESOLVED_OUTCOMES = {
    EnforcementClass.SOFT_WARNING: EnforcementOutcome.SOFT_WARNING_RESOLVED,
    EnforcementClass.FAILURE: EnforcementOutcome.FAILURE_RESOLVED,
    EnforcementClass.DRIFT: EnforcementOutcome.DRIFT_RESOLVED,
}

SCOPE_MESSAGES = {
    EditorialMode.COPY: (
        "- You exceeded copy editing scope. Do NOT rephrase, restructure, or rework sentences. "
        "Fix only spelling, grammar, and punctuation."
    ),
    EditorialMode.LINE: (
        "- You exceeded line editing scope. Do NOT reorganize paragraphs or add/remove sections. "
        "Refine sentences in place."
    ),
    EditorialMode.DEVELOPMENTAL: (
        "- Even in developmental editing, preserve the author's paragraph count approximately. "
        "Restructure argument flow, but do not inflate or deflate the text dramatically."
    ),
}


def enforcement_applies(original_text: str) -> bool:
    return len(original_text.split()) >= MIN_WORDS_FOR_ENFORCEMENT


def classify(score: CandidateScore, active_drift_alert: bool = False) -> EnforcementClass:
    """
    Classify the selected candidate.

    Drift wins over soft warning and failure: an unacknowledged drift alert
    for the author, or a semantic failure, means meaning or voice is slipping.
    """
    if score.passed:
        return EnforcementClass.PASS
    if active_drift_alert or Dimension.SEMANTIC in score.failed_dimensions:
        return EnforcementClass.DRIFT

    thresholds = score.thresholds
    deficits = [getattr(thresholds, d.value) - score.scores.get(d) for d in score.failed_dimensions]
    if all(deficit <= SOFT_WARNING_MARGIN for deficit in deficits):
        return EnforcementClass.SOFT_WARNING
    return EnforcementClass.FAILURE


def build_constraint_boost(score: CandidateScore, profile_fingerprint: Optional[Fingerprint], mode: EditorialMode) -> str:
    """Voice-safety instructions aimed at the dimensions the candidate failed."""
    failed = set(score.failed_dimensions)
    lines = [
        "CRITICAL VOICE SAFETY CONSTRAINTS (your previous suggestion drifted from the author's voice, "
        "you MUST correct this):"
    ]

    if Dimension.SEMANTIC in failed:
        lines.append(
            "- You changed the MEANING of the text. Do NOT add claims, remove arguments, or alter the "
            "author's position. Preserve every substantive point."
        )

    fp = profile_fingerprint or score.original_fingerprint
    if Dimension.STYLISTIC in failed or Dimension.COMBINED in failed:
        lines.append(f"- The author's average sentence length is ~{round(fp.avg_sentence_length)} words. Match this.")
        if fp.contraction_frequency > 0.02:
            lines.append("- The author uses contractions freely. Use contractions.")
        elif fp.contraction_frequency < 0.005:
            lines.append("- The author avoids contractions. Do not add contractions.")
        if fp.hedging_frequency > 0.15:
            lines.append("- The author uses hedging language naturally. Do not remove qualifiers.")
        elif fp.hedging_frequency < 0.05:
            lines.append("- The author is direct and decisive. Do not add hedging language.")
        if fp.question_ratio > 0.1:
            lines.append("- The author uses rhetorical questions. Preserve this pattern.")
        if fp.exclamation_ratio > 0.05:
            lines.append("- The author uses exclamation marks intentionally. Preserve them.")
        if fp.readability_score < 8:
            level = "accessible and conversational"
        elif fp.readability_score < 12:
            level = "moderate complexity"
        else:
            level = "dense and academic"
        lines.append(
            f"- The author's writing is {level} (grade level ~{round(fp.readability_score)}). "
            "Do not change the complexity level."
        )

    if Dimension.SCOPE in failed:
        lines.append(SCOPE_MESSAGES[mode])

    lines.append("- Make FEWER changes. When in doubt, leave the original phrasing intact.")
    lines.append("- Your output must read as if the original author wrote it, not as if an editor rewrote it.")
    return "\n".join(lines)


def original_baseline(
    original: str,
    mode: EditorialMode,
    thresholds: ResolvedThresholds,
    profile_fingerprint: Optional[Fingerprint] = None,
) -> float:
    """Combined score of the original text treated as its own candidate."""
    score = score_candidate(original, original, mode, thresholds, 1.0, profile_fingerprint=profile_fingerprint)
    return score.scores.combined


class CorrectionResult(BaseModel):
    outcome: EnforcementOutcome
    text: str
    returned_original: bool
    attempts: List[ScoredCandidate] = []
    correction_types: List[CorrectionType] = []
    returned_candidate: Optional[ScoredCandidate] = None
    improved: bool = False
    final_combined_score: Optional[float] = None


class CorrectionPipeline:
    """Runs corrective regenerations strictly one after another."""

    def __init__(self, generator: TextGenerator, scorer: CandidateScorer, timeout: Optional[float] = None):
        self.generator = generator
        self.scorer = scorer
        self.timeout = timeout

    async def run(
        self,
        original: str,
        mode: EditorialMode,
        thresholds: ResolvedThresholds,
        enforcement_class: EnforcementClass,
        best: ScoredCandidate,
        next_index: int,
        profile_fingerprint: Optional[Fingerprint] = None,
        nudge: Optional[NudgeDirection] = None,
    ) -> CorrectionResult:
        attempts: List[ScoredCandidate] = []
        attempted: List[CorrectionType] = []

        for slot, correction_type in enumerate(CORRECTION_ORDER[:MAX_CORRECTION_ATTEMPTS]):
            attempted.append(correction_type)
            constraints = self._constraints(correction_type, best.score, profile_fingerprint, mode, nudge)
            text = await generate_safely(self.generator, original, mode, constraints, self.timeout)
            if text is None:
                logger.info("%s attempt produced no candidate", correction_type.value)
                continue

            [score] = await self.scorer.score_texts(original, [text], mode, thresholds, profile_fingerprint)
            candidate = ScoredCandidate(
                index=next_index + slot,
                variation_key=correction_type.value,
                text=text,
                score=score,
                generation_phase=GenerationPhase.CORRECTIVE_RETRY,
                correction_type=correction_type,
            )
            attempts.append(candidate)

            if score.passed:
                logger.info("%s resolved %s run", correction_type.value, enforcement_class.value)
                return CorrectionResult(
                    outcome=RESOLVED_OUTCOMES[enforcement_class],
                    text=text,
                    returned_original=False,
                    attempts=attempts,
                    correction_types=attempted,
                    returned_candidate=candidate,
                    improved=score.scores.combined > best.score.scores.combined,
                    final_combined_score=score.scores.combined,
                )

        baseline = original_baseline(original, mode, thresholds, profile_fingerprint)
        return self._passthrough(original, best, attempts, attempted, baseline)

    def _constraints(
        self,
        correction_type: CorrectionType,
        score: CandidateScore,
        profile_fingerprint: Optional[Fingerprint],
        mode: EditorialMode,
        nudge: Optional[NudgeDirection],
    ) -> GenerationConstraints:
        if correction_type == CorrectionType.MINIMAL_EDIT:
            return GenerationConstraints(minimal_edit=True, nudge=nudge)
        return GenerationConstraints(
            voice_constraints=build_constraint_boost(score, profile_fingerprint, mode),
            nudge=nudge,
        )

    def _passthrough(
        self,
        original: str,
        best: ScoredCandidate,
        attempts: List[ScoredCandidate],
        attempted: List[CorrectionType],
        baseline: float,
    ) -> CorrectionResult:
        pool = [best] + attempts
        top = min(pool, key=lambda c: (-c.score.scores.combined, c.index))
        improved = top.score.scores.combined > best.score.scores.combined
        final_combined = top.score.scores.combined

        if final_combined >= baseline:
            return CorrectionResult(
                outcome=EnforcementOutcome.PASSTHROUGH,
                text=top.text,
                returned_original=False,
                attempts=attempts,
                correction_types=attempted,
                returned_candidate=top,
                improved=improved,
                final_combined_score=final_combined,
            )

        logger.info(
            "Corrections exhausted (best %.3f below original %.3f); returning original text", final_combined, baseline
        )
        return CorrectionResult(
            outcome=EnforcementOutcome.ORIGINAL_RETURNED,
            text=original,
            returned_original=True,
            attempts=attempts,
            correction_types=attempted,
            improved=improved,
            final_combined_score=final_combined,
        )
