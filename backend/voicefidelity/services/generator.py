"""
Text generator seam, editorial prompts, variations and nudges.

The engine only ever calls ``TextGenerator.generate``; how the text is
produced is opaque to scoring and enforcement.
"""

import asyncio
import hashlib
import logging
from typing import Dict, List, Optional, Tuple

from anthropic import APIError, AsyncAnthropic
from pydantic import BaseModel

from ..config import settings
from ..models.editorial import NudgeDirection
from ..models.evaluation import EditorialMode

logger = logging.getLogger(__name__)

EDITORIAL_PROMPTS: Dict[EditorialMode, str] = {
    EditorialMode.DEVELOPMENTAL: (
        "You are a developmental editor reviewing a blog post.\n"
        "Focus on the big picture: overall structure, logical flow, strength of argument, "
        "coherence between sections, and content gaps.\n"
        "Reorganize, restructure, and rewrite as needed to strengthen the piece as a whole.\n"
        "Preserve the author's voice and core thesis.\n"
        "Return only the improved text. No commentary, no meta-discussion, no explanations."
    ),
    EditorialMode.LINE: (
        "You are a line editor reviewing a blog post.\n"
        "Focus on sentence-level craft: word choice, rhythm, cadence, transitions between sentences "
        "and paragraphs, eliminating redundancy, and tightening prose.\n"
        "Do not alter the overall structure or argument. Only refine how each sentence reads.\n"
        "Preserve the author's voice.\n"
        "Return only the improved text. No commentary, no meta-discussion, no explanations."
    ),
    EditorialMode.COPY: (
        "You are a copy editor reviewing a blog post.\n"
        "Focus strictly on grammar, spelling, punctuation, capitalization, verb tense consistency, "
        "subject-verb agreement, and style consistency.\n"
        "Do not restructure, rewrite for style, or alter the author's voice. Only correct mechanical errors.\n"
        "Return only the corrected text. No commentary, no meta-discussion, no explanations."
    ),
}

MINIMAL_EDIT_PROMPTS: Dict[EditorialMode, str] = {
    EditorialMode.COPY: (
        "You are a copy editor making MINIMAL corrections. Find the single most important grammar, "
        "spelling, or punctuation error and fix only that. If there are no errors, return the text "
        "unchanged. Do not rephrase anything. Output only the corrected text."
    ),
    EditorialMode.LINE: (
        "You are a line editor making ONE refinement. Find the single weakest sentence and improve "
        "only that sentence. Leave everything else exactly as written. Do not reorganize. Do not add "
        "transitions. Output the full text with your one change."
    ),
    EditorialMode.DEVELOPMENTAL: (
        "You are a developmental editor making ONE structural observation. If the argument has a "
        "single clear gap, address only that gap with minimal text. If the structure is sound, return "
        "the text unchanged. Do not rewrite voice or style. Output the full text."
    ),
}

NUDGE_INSTRUCTIONS: Dict[NudgeDirection, str] = {
    NudgeDirection.MORE_MINIMAL: (
        "Make the text more minimal and stripped down. Remove more unnecessary words, ornamentation, "
        "and decorative language. Favor brevity over explanation."
    ),
    NudgeDirection.MORE_RAW: (
        "Make the text feel more raw and unpolished. Preserve rough edges, imperfections, and directness "
        "that give it authentic character. Resist the urge to smooth everything out."
    ),
    NudgeDirection.SHARPER: (
        "Make the text sharper and more incisive. Strengthen the points, tighten the language, and make "
        "claims hit harder. Remove hedging and qualifiers where the author's intent is clear."
    ),
    NudgeDirection.SOFTER: (
        "Make the text softer and more approachable. Ease aggressive or confrontational language without "
        "losing the underlying point. Allow more breathing room between ideas."
    ),
    NudgeDirection.MORE_EMOTIONAL: (
        "Let more emotion come through in the text. Do not manufacture emotion, but amplify what is "
        "already present. Let vulnerability, conviction, or passion show more clearly."
    ),
    NudgeDirection.MORE_DRY: (
        "Make the text drier and more matter-of-fact. Reduce emotionality, sentimentality, and ornamental "
        "language. Favor precision and understatement."
    ),
}

_VARIATION_HEADER = "SUBTLE VARIATION PREFERENCE (apply only when two options are equally good):\n"


class Variation(BaseModel):
    key: str
    suffix: str


def _pair(first: Tuple[str, str], second: Tuple[str, str]) -> Tuple[Variation, Variation]:
    return (
        Variation(key=first[0], suffix=_VARIATION_HEADER + first[1]),
        Variation(key=second[0], suffix=_VARIATION_HEADER + second[1]),
    )


VARIATION_PAIRS: Dict[EditorialMode, List[Tuple[Variation, Variation]]] = {
    EditorialMode.LINE: [
        _pair(
            ("concision_lean", "Lean toward the option that uses fewer words."),
            ("cadence_lean", "Lean toward the option with better sentence-to-sentence rhythm."),
        ),
        _pair(
            ("precision_lean", "Prefer a more specific word when it fits the author's natural vocabulary."),
            ("flow_lean", "Strengthen the connective tissue so each thought leads to the next."),
        ),
        _pair(
            ("trim_lean", "Remove filler phrases and throat-clearing. Preserve every substantive word."),
            ("transition_lean", "Smooth transitions between sentences and paragraphs without adding weight."),
        ),
    ],
    EditorialMode.DEVELOPMENTAL: [
        _pair(
            ("structural_economy", "Prefer tighter organization. Consolidate sections that overlap."),
            ("connective_tissue", "Prefer stronger transitions between sections."),
        ),
        _pair(
            ("gap_closure", "Close gaps where the reader must guess. Add just enough context."),
            ("redundancy_reduction", "Consolidate paragraphs that make overlapping points."),
        ),
        _pair(
            ("arc_strengthening", "Make sure the opening promise is fulfilled by the conclusion."),
            ("internal_logic", "Make sure each paragraph sets up, develops, or resolves a point."),
        ),
    ],
    EditorialMode.COPY: [
        _pair(
            ("mechanics_strict", "Correct only unambiguous errors. Leave stylistic choices alone."),
            ("consistency_lean", "Prioritize consistent capitalization, tense and punctuation across the text."),
        ),
    ],
}


def get_variation_pair(mode: EditorialMode, seed: int) -> Tuple[Variation, Variation]:
    pairs = VARIATION_PAIRS[mode]
    return pairs[seed % len(pairs)]


def prompt_version_id(mode: EditorialMode) -> str:
    """Stable hash of a mode's base prompt, used to correlate runs with prompt changes."""
    return hashlib.sha256(EDITORIAL_PROMPTS[mode].encode("utf-8")).hexdigest()[:12]


class GenerationError(Exception):
    """Raised when the text generator cannot produce a candidate."""


class GenerationConstraints(BaseModel):
    """Extra instructions layered onto the base editorial prompt."""

    variation: Optional[Variation] = None
    nudge: Optional[NudgeDirection] = None
    voice_constraints: Optional[str] = None
    minimal_edit: bool = False


def build_system_prompt(mode: EditorialMode, constraints: Optional[GenerationConstraints] = None) -> str:
    constraints = constraints or GenerationConstraints()
    base = MINIMAL_EDIT_PROMPTS[mode] if constraints.minimal_edit else EDITORIAL_PROMPTS[mode]
    parts = [base]
    if constraints.nudge is not None:
        parts.append(f"DIRECTIONAL ADJUSTMENT: {NUDGE_INSTRUCTIONS[constraints.nudge]}")
    if constraints.voice_constraints:
        parts.append(constraints.voice_constraints)
    # Variation is the lowest-priority instruction, so it goes last
    if constraints.variation is not None:
        parts.append(constraints.variation.suffix)
    return "\n\n".join(parts)


class TextGenerator:
    """Interface for anything that turns (text, mode, constraints) into a candidate."""

    provider: str = "unknown"
    model: str = "unknown"

    async def generate(self, text: str, mode: EditorialMode, constraints: GenerationConstraints) -> str:
        raise NotImplementedError


class AnthropicTextGenerator(TextGenerator):
    """Generates candidates with the Anthropic Messages API."""

    provider = "anthropic"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, max_tokens: Optional[int] = None):
        self.client = AsyncAnthropic(api_key=api_key or settings.anthropic_api_key)
        self.model = model or settings.ai_model
        self.max_tokens = max_tokens or settings.ai_max_tokens

    async def generate(self, text: str, mode: EditorialMode, constraints: GenerationConstraints) -> str:
        system = build_system_prompt(mode, constraints)
        logger.debug("Generating %s candidate (system prompt %d chars)", mode.value, len(system))
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=[{"role": "user", "content": text}],
            )
        except APIError as e:
            raise GenerationError(f"Anthropic API error: {e}") from e

        content = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
        if not content.strip():
            raise GenerationError("Empty response from model")
        return content.strip()


def get_generator() -> TextGenerator:
    if settings.ai_provider != "anthropic":
        raise ValueError(f"Unknown AI provider: {settings.ai_provider}")
    return AnthropicTextGenerator()


async def generate_safely(
    generator: TextGenerator,
    text: str,
    mode: EditorialMode,
    constraints: GenerationConstraints,
    timeout: Optional[float] = None,
) -> Optional[str]:
    """Run one generation with a timeout. Failures are logged and return None."""
    try:
        return await asyncio.wait_for(
            generator.generate(text, mode, constraints),
            timeout=timeout or settings.generation_timeout_seconds,
        )
    except GenerationError as e:
        logger.warning("Generation failed for %s edit: %s", mode.value, e)
    except asyncio.TimeoutError:
        logger.warning("Generation timed out for %s edit", mode.value)
    return None
