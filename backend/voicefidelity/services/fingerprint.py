"""Deterministic stylometric fingerprint extraction and blending."""

import math
import re
from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ..models.fingerprint import Fingerprint, LexicalEntry, PunctuationFrequencies

LEXICAL_SIGNATURE_SIZE = 30

# Below this many words a fingerprint is considered unreliable
MIN_WORDS_FOR_FINGERPRINT = 50

CONFIDENCE_HALF_LIFE = 300

ALPHA_MIN = 0.05
ALPHA_MAX = 0.25
SIZE_FACTOR_MIN = 0.5
SIZE_FACTOR_MAX = math.sqrt(3.0)
STALENESS_DAYS = 30
STALENESS_ALPHA_BOOST = 0.05

STOPWORDS = {
    "a", "about", "above", "after", "again", "against", "all", "am", "an",
    "and", "any", "are", "aren't", "as", "at", "be", "because", "been",
    "before", "being", "below", "between", "both", "but", "by", "can't",
    "cannot", "could", "couldn't", "did", "didn't", "do", "does", "doesn't",
    "doing", "don't", "down", "during", "each", "few", "for", "from",
    "further", "get", "got", "had", "hadn't", "has", "hasn't", "have",
    "haven't", "having", "he", "he'd", "he'll", "he's", "her", "here",
    "hers", "herself", "him", "himself", "his", "how", "i", "i'd", "i'll",
    "i'm", "i've", "if", "in", "into", "is", "isn't", "it", "it's", "its",
    "itself", "just", "let's", "me", "might", "more", "most", "my",
    "myself", "no", "nor", "not", "of", "off", "on", "once", "only", "or",
    "other", "ought", "our", "ours", "ourselves", "out", "over", "own",
    "really", "same", "she", "she'd", "she'll", "she's", "should",
    "shouldn't", "so", "some", "still", "such", "than", "that", "that's",
    "the", "their", "theirs", "them", "themselves", "then", "there",
    "there's", "these", "they", "they'd", "they'll", "they're", "they've",
    "this", "those", "through", "to", "too", "under", "until", "up", "us",
    "very", "was", "wasn't", "we", "we'd", "we'll", "we're", "we've", "were",
    "weren't", "what", "what's", "when", "where", "which", "while", "who",
    "whom", "why", "will", "with", "won't", "would", "wouldn't", "you",
    "you'd", "you'll", "you're", "you've", "your", "yours", "yourself",
    "yourselves",
}

# Closed-class words that make up the lexical signature
FUNCTION_WORDS = {
    "the", "a", "an", "and", "but", "or", "nor", "for", "yet", "so",
    "in", "on", "at", "to", "from", "by", "with", "about", "into",
    "through", "during", "before", "after", "above", "below", "between",
    "under", "over", "of", "up", "down", "out", "off", "then", "than",
    "that", "this", "these", "those", "which", "who", "whom", "whose",
    "what", "where", "when", "how", "why", "if", "because", "since",
    "while", "although", "though", "unless", "until", "whether",
    "not", "no", "never", "always", "also", "just", "only", "even",
    "still", "already", "very", "quite", "rather", "really", "too",
    "much", "more", "most", "less", "least", "well", "almost", "enough",
    "perhaps", "maybe", "however", "therefore", "thus", "hence",
    "nevertheless", "meanwhile", "otherwise", "instead", "indeed",
    "certainly", "probably", "possibly", "actually", "apparently",
    "basically", "essentially", "generally", "particularly", "specifically",
    "i", "you", "he", "she", "it", "we", "they", "me", "him", "her",
    "us", "them", "my", "your", "his", "its", "our", "their",
    "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "having", "do", "does", "did", "doing",
    "will", "would", "shall", "should", "may", "might", "can", "could",
    "must", "need", "ought",
}

HEDGING_PHRASES = [
    "i think", "i believe", "i feel", "i guess", "i suppose",
    "in my opinion", "it seems", "it appears", "it looks like",
    "kind of", "sort of", "somewhat", "relatively",
    "perhaps", "maybe", "possibly", "probably", "arguably",
    "might be", "could be", "may be", "seems to be",
    "to some extent", "in some ways", "more or less",
    "a bit", "a little", "slightly", "fairly", "rather",
    "tend to", "seems like", "appears to",
    "not entirely", "not necessarily", "not always",
]

ADJECTIVE_SUFFIXES = (
    "able", "ible", "al", "ial", "ful", "ic", "ical", "ish",
    "ive", "less", "ous", "ious", "eous",
)

COMMON_ADJECTIVES = {
    "good", "bad", "big", "small", "large", "great", "little", "old",
    "new", "young", "long", "short", "high", "low", "early", "late",
    "hard", "soft", "hot", "cold", "fast", "slow", "full", "empty",
    "dark", "light", "clear", "strong", "weak", "deep", "wide", "thin",
    "simple", "complex", "easy", "difficult", "sure", "certain",
    "real", "true", "false", "right", "wrong", "whole", "entire",
    "main", "key", "major", "minor", "common", "rare", "strange",
    "obvious", "subtle", "specific", "broad", "narrow",
}

COMMON_ADVERBS = {
    "very", "really", "quite", "rather", "fairly", "pretty",
    "just", "only", "even", "still", "already", "always", "never",
    "often", "sometimes", "usually", "rarely", "seldom",
    "here", "there", "now", "then", "today", "soon", "later", "again",
    "also", "too", "well", "badly", "far", "near", "enough",
}

CONTRACTIONS_RE = re.compile(r"\b\w+'(?:t|s|re|ve|ll|d|m)\b", re.IGNORECASE)
SENTENCE_END_RE = re.compile(r"([.!?…])(\s+|$)")
PARAGRAPH_RE = re.compile(r"\n\s*\n")
TOKEN_STRIP_RE = re.compile(r"[^\w\s'-]")
VOWELS = set("aeiouy")


def split_sentences(text: str) -> List[str]:
    """Split text into sentences, merging short unterminated fragments."""
    raw = [s.strip() for s in SENTENCE_END_RE.sub(r"\1\n", text).split("\n")]
    merged: List[str] = []
    for sentence in raw:
        if not sentence:
            continue
        if merged and len(merged[-1]) < 15 and merged[-1][-1] not in ".!?…":
            merged[-1] = f"{merged[-1]} {sentence}"
        else:
            merged.append(sentence)
    return merged


def split_paragraphs(text: str) -> List[str]:
    return [p.strip() for p in PARAGRAPH_RE.split(text) if p.strip()]


def tokenize(text: str) -> List[str]:
    return [w for w in TOKEN_STRIP_RE.sub(" ", text.lower()).split() if w]


def count_syllables(word: str) -> int:
    letters = re.sub(r"[^a-z]", "", word.lower())
    if len(letters) <= 2:
        return 1

    count = 0
    prev_vowel = False
    for ch in letters:
        is_vowel = ch in VOWELS
        if is_vowel and not prev_vowel:
            count += 1
        prev_vowel = is_vowel

    if letters.endswith("e") and not letters.endswith("le") and count > 1:
        count -= 1
    if letters.endswith("ed") and len(letters) > 3 and count > 1:
        count -= 1
    return max(1, count)


def _variance(values: List[float]) -> float:
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def _is_adjective(word: str) -> bool:
    if word in COMMON_ADJECTIVES:
        return True
    return any(word.endswith(s) and len(word) > len(s) + 2 for s in ADJECTIVE_SUFFIXES)


def _is_adverb(word: str) -> bool:
    return word in COMMON_ADVERBS or (word.endswith("ly") and len(word) > 4)


def fingerprint_confidence(word_count: int) -> float:
    if word_count < MIN_WORDS_FOR_FINGERPRINT:
        return word_count / MIN_WORDS_FOR_FINGERPRINT * 0.5
    return 1 - math.exp(-word_count / CONFIDENCE_HALF_LIFE)


def extract_fingerprint(text: str) -> Fingerprint:
    """
    Compute the stylometric fingerprint of a text.

    Pure and deterministic. Empty text yields an all-zero fingerprint with
    zero confidence; every ratio with a zero denominator is 0.0.
    """
    paragraphs = split_paragraphs(text)
    sentences = split_sentences(text)
    words = tokenize(text)
    word_count = len(words)
    sentence_count = len(sentences)
    paragraph_count = len(paragraphs)

    sentence_lengths = [len(tokenize(s)) for s in sentences]
    avg_sentence_length = _ratio(sum(sentence_lengths), sentence_count)
    sentence_variance = _variance(sentence_lengths)

    paragraph_lengths = [len(split_sentences(p)) for p in paragraphs]
    avg_paragraph_length = _ratio(sum(paragraph_lengths), paragraph_count)

    per_1k = _ratio(1000, word_count)
    punctuation = PunctuationFrequencies(
        comma=text.count(",") * per_1k,
        period=text.count(".") * per_1k,
        semicolon=text.count(";") * per_1k,
        colon=text.count(":") * per_1k,
        exclamation=text.count("!") * per_1k,
        question=text.count("?") * per_1k,
        dash=len(re.findall(r"[—–-]{1,2}", text)) * per_1k,
        ellipsis=len(re.findall(r"\.{3}|…", text)) * per_1k,
        parenthetical=len(re.findall(r"[()]", text)) * per_1k,
    )

    adj_adv = sum(1 for w in words if _is_adjective(w) or _is_adverb(w))

    lower = text.lower()
    hedges = sum(lower.count(phrase) for phrase in HEDGING_PHRASES)

    questions = sum(1 for s in sentences if s.endswith("?"))
    exclamations = sum(1 for s in sentences if s.endswith("!"))

    bigrams = [f"{a} {b}" for a, b in zip(words, words[1:])]
    repetition = 1 - _ratio(len(set(bigrams)), len(bigrams)) if bigrams else 0.0

    syllables = sum(count_syllables(w) for w in words)
    avg_syllables = _ratio(syllables, word_count)
    readability = 0.39 * avg_sentence_length + 11.8 * avg_syllables - 15.59 if word_count else 0.0

    function_counts = Counter(w for w in words if w in FUNCTION_WORDS)
    signature = [
        LexicalEntry(word=word, frequency=_ratio(count, word_count))
        for word, count in sorted(function_counts.items(), key=lambda kv: (-kv[1], kv[0]))[:LEXICAL_SIGNATURE_SIZE]
    ]

    return Fingerprint(
        avg_sentence_length=avg_sentence_length,
        sentence_length_variance=sentence_variance,
        sentence_length_std_dev=math.sqrt(sentence_variance),
        avg_paragraph_length=avg_paragraph_length,
        paragraph_length_variance=_variance(paragraph_lengths),
        punctuation_frequencies=punctuation,
        adjective_adverb_density=_ratio(adj_adv, word_count),
        hedging_frequency=_ratio(hedges, sentence_count),
        stopword_density=_ratio(sum(1 for w in words if w in STOPWORDS), word_count),
        contraction_frequency=_ratio(len(CONTRACTIONS_RE.findall(text)), word_count),
        question_ratio=_ratio(questions, sentence_count),
        exclamation_ratio=_ratio(exclamations, sentence_count),
        repetition_index=repetition,
        vocabulary_richness=_ratio(len(set(words)), word_count),
        avg_word_length=_ratio(sum(len(w) for w in words), word_count),
        readability_score=readability,
        complexity_score=avg_syllables,
        lexical_signature=signature,
        word_count=word_count,
        sentence_count=sentence_count,
        paragraph_count=paragraph_count,
        confidence=fingerprint_confidence(word_count),
    )


def blend_alpha(
    sample_count: int,
    sample_words: int,
    average_sample_words: float,
    last_sample_at: Optional[datetime],
    now: datetime,
) -> float:
    """
    Weight given to an incoming sample when folded into a profile.

    Base 1/(n+1), scaled by sqrt(size ratio) so larger samples count for more,
    plus a small boost for profiles idle beyond the staleness window.
    Always within [ALPHA_MIN, ALPHA_MAX].
    """
    alpha = 1.0 / (sample_count + 1)

    if average_sample_words > 0 and sample_words > 0:
        factor = math.sqrt(sample_words / average_sample_words)
        alpha *= min(SIZE_FACTOR_MAX, max(SIZE_FACTOR_MIN, factor))

    if last_sample_at is not None:
        idle_days = (now - last_sample_at).total_seconds() / 86400
        if idle_days > STALENESS_DAYS:
            alpha += STALENESS_ALPHA_BOOST * min(1.0, idle_days / (STALENESS_DAYS * 3))

    return min(ALPHA_MAX, max(ALPHA_MIN, alpha))


def _merge_signatures(existing: List[LexicalEntry], incoming: List[LexicalEntry], alpha: float) -> List[LexicalEntry]:
    merged: Dict[str, float] = {}
    for entry in existing:
        merged[entry.word] = entry.frequency * (1 - alpha)
    for entry in incoming:
        merged[entry.word] = merged.get(entry.word, 0.0) + entry.frequency * alpha
    ranked = sorted(merged.items(), key=lambda kv: (-kv[1], kv[0]))[:LEXICAL_SIGNATURE_SIZE]
    return [LexicalEntry(word=w, frequency=f) for w, f in ranked]


# Fields blended as plain scalars
_SCALAR_FIELDS = (
    "avg_sentence_length",
    "sentence_length_variance",
    "sentence_length_std_dev",
    "avg_paragraph_length",
    "paragraph_length_variance",
    "adjective_adverb_density",
    "hedging_frequency",
    "stopword_density",
    "contraction_frequency",
    "question_ratio",
    "exclamation_ratio",
    "repetition_index",
    "vocabulary_richness",
    "avg_word_length",
    "readability_score",
    "complexity_score",
)


def blend_fingerprints(existing: Fingerprint, incoming: Fingerprint, alpha: float) -> Fingerprint:
    """Exponentially weighted blend of ``incoming`` into ``existing``."""

    def mix(a: float, b: float) -> float:
        return a * (1 - alpha) + b * alpha

    values = {name: mix(getattr(existing, name), getattr(incoming, name)) for name in _SCALAR_FIELDS}
    old_punct = existing.punctuation_frequencies
    new_punct = incoming.punctuation_frequencies
    punctuation = PunctuationFrequencies(
        **{name: mix(getattr(old_punct, name), getattr(new_punct, name)) for name in PunctuationFrequencies.model_fields}
    )

    return Fingerprint(
        **values,
        punctuation_frequencies=punctuation,
        lexical_signature=_merge_signatures(existing.lexical_signature, incoming.lexical_signature, alpha),
        word_count=existing.word_count + incoming.word_count,
        sentence_count=existing.sentence_count + incoming.sentence_count,
        paragraph_count=existing.paragraph_count + incoming.paragraph_count,
        confidence=min(1.0, existing.confidence + incoming.confidence * alpha),
    )


def blend_into_profile(
    existing: Fingerprint,
    incoming: Fingerprint,
    sample_count: int,
    average_sample_words: float,
    last_sample_at: Optional[datetime],
    now: datetime,
) -> Tuple[Fingerprint, float]:
    alpha = blend_alpha(sample_count, incoming.word_count, average_sample_words, last_sample_at, now)
    return blend_fingerprints(existing, incoming, alpha), alpha
