"""Multi-candidate generation and deterministic winner selection."""

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from ..models.editorial import NudgeDirection, ScoredCandidate, Selection
from ..models.evaluation import EditorialMode, ResolvedThresholds
from ..models.fingerprint import Fingerprint
from .fingerprint import extract_fingerprint
from .generator import GenerationConstraints, TextGenerator, generate_safely, get_variation_pair
from .scoring import score_candidate
from .semantic import SemanticScorer

logger = logging.getLogger(__name__)

FALLBACK_VARIATION_KEY = "minimal_edit_fallback"


def pick_winner(candidates: Sequence[ScoredCandidate]) -> Tuple[Optional[int], Optional[int]]:
    """
    Return (selected_index, best_passing_index).

    Passing candidates rank by selection score; with none passing the highest
    combined score wins. Ties go to the lowest candidate index.
    """
    if not candidates:
        return None, None

    passing = [c for c in candidates if c.score.passed]
    if passing:
        best = min(passing, key=lambda c: (-c.score.selection_score, c.index))
        return best.index, best.index

    best = min(candidates, key=lambda c: (-c.score.scores.combined, c.index))
    return best.index, None


class CandidateScorer:
    """Scores generated texts against an original with shared fingerprints."""

    def __init__(self, semantic: SemanticScorer):
        self.semantic = semantic

    async def score_texts(
        self,
        original: str,
        texts: List[str],
        mode: EditorialMode,
        thresholds: ResolvedThresholds,
        profile_fingerprint: Optional[Fingerprint] = None,
    ):
        original_fp = extract_fingerprint(original)
        similarities = await self.semantic.similarities(original, texts)
        return [
            score_candidate(
                original,
                text,
                mode,
                thresholds,
                similarity,
                profile_fingerprint=profile_fingerprint,
                semantic_method=method,
                original_fingerprint=original_fp,
            )
            for text, (similarity, method) in zip(texts, similarities)
        ]


class CandidateSelector:
    """Generates two varied candidates, a fallback if both fail, and picks a winner."""

    def __init__(self, generator: TextGenerator, scorer: CandidateScorer, timeout: Optional[float] = None):
        self.generator = generator
        self.scorer = scorer
        self.timeout = timeout

    async def run(
        self,
        original: str,
        mode: EditorialMode,
        thresholds: ResolvedThresholds,
        profile_fingerprint: Optional[Fingerprint] = None,
        variation_seed: int = 0,
        nudge: Optional[NudgeDirection] = None,
    ) -> Selection:
        variations = get_variation_pair(mode, variation_seed)
        texts = await asyncio.gather(
            *[
                generate_safely(
                    self.generator,
                    original,
                    mode,
                    GenerationConstraints(variation=variation, nudge=nudge),
                    self.timeout,
                )
                for variation in variations
            ]
        )

        # Candidates keep their variation slot as index even when a sibling failed
        generated = [(slot, v.key, t) for slot, (v, t) in enumerate(zip(variations, texts)) if t is not None]
        candidates = await self._score(original, generated, mode, thresholds, profile_fingerprint)

        fallback_used = False
        if not any(c.score.passed for c in candidates):
            fallback_used = True
            logger.info("No initial %s candidate passed; generating minimal-edit fallback", mode.value)
            text = await generate_safely(
                self.generator,
                original,
                mode,
                GenerationConstraints(minimal_edit=True, nudge=nudge),
                self.timeout,
            )
            if text is not None:
                fallback = await self._score(
                    original,
                    [(len(variations), FALLBACK_VARIATION_KEY, text)],
                    mode,
                    thresholds,
                    profile_fingerprint,
                    is_fallback=True,
                )
                candidates.extend(fallback)

        selected_index, best_passing_index = pick_winner(candidates)
        return Selection(
            candidates=candidates,
            selected_index=selected_index,
            best_passing_index=best_passing_index,
            all_candidates_passed=bool(candidates) and all(c.score.passed for c in candidates),
            fallback_used=fallback_used,
        )

    async def _score(
        self,
        original: str,
        generated: List[Tuple[int, str, str]],
        mode: EditorialMode,
        thresholds: ResolvedThresholds,
        profile_fingerprint: Optional[Fingerprint],
        is_fallback: bool = False,
    ) -> List[ScoredCandidate]:
        if not generated:
            return []
        scores = await self.scorer.score_texts(
            original, [text for _, _, text in generated], mode, thresholds, profile_fingerprint
        )
        return [
            ScoredCandidate(
                index=slot,
                variation_key=key,
                text=text,
                score=score,
                is_fallback=is_fallback,
            )
            for (slot, key, text), score in zip(generated, scores)
        ]
