"""Stylometric fingerprint models."""

from typing import List

from pydantic import BaseModel, ConfigDict


class PunctuationFrequencies(BaseModel):
    """Punctuation counts per 1000 words."""

    model_config = ConfigDict(frozen=True)

    comma: float = 0.0
    period: float = 0.0
    semicolon: float = 0.0
    colon: float = 0.0
    exclamation: float = 0.0
    question: float = 0.0
    dash: float = 0.0
    ellipsis: float = 0.0
    parenthetical: float = 0.0

    def as_vector(self) -> List[float]:
        return [
            self.comma,
            self.period,
            self.semicolon,
            self.colon,
            self.exclamation,
            self.question,
            self.dash,
            self.ellipsis,
            self.parenthetical,
        ]


class LexicalEntry(BaseModel):
    """One function word and its relative frequency."""

    model_config = ConfigDict(frozen=True)

    word: str
    frequency: float


class Fingerprint(BaseModel):
    """Numeric feature vector summarising one text's structure and word choice."""

    model_config = ConfigDict(frozen=True)

    avg_sentence_length: float = 0.0
    sentence_length_variance: float = 0.0
    sentence_length_std_dev: float = 0.0
    avg_paragraph_length: float = 0.0
    paragraph_length_variance: float = 0.0
    punctuation_frequencies: PunctuationFrequencies = PunctuationFrequencies()
    adjective_adverb_density: float = 0.0
    hedging_frequency: float = 0.0
    stopword_density: float = 0.0
    contraction_frequency: float = 0.0
    question_ratio: float = 0.0
    exclamation_ratio: float = 0.0
    repetition_index: float = 0.0
    vocabulary_richness: float = 0.0
    avg_word_length: float = 0.0
    readability_score: float = 0.0
    complexity_score: float = 0.0
    lexical_signature: List[LexicalEntry] = []
    word_count: int = 0
    sentence_count: int = 0
    paragraph_count: int = 0
    confidence: float = 0.0
