"""Semantic similarity: embeddings when available, lexical cosine otherwise."""

import logging
import math
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

import httpx

from ..config import settings
from ..models.evaluation import SemanticMethod
from .fingerprint import STOPWORDS, tokenize

logger = logging.getLogger(__name__)

MAX_EMBEDDING_CHARS = 30000


class EmbeddingError(Exception):
    """Raised when the embeddings endpoint cannot produce vectors."""


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b) or not a:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    denom = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / denom if denom else 0.0


def _term_vector(text: str) -> Dict[str, int]:
    words = tokenize(text)
    content = [w for w in words if w not in STOPWORDS]
    return Counter(content or words)


def lexical_similarity(original: str, candidate: str) -> float:
    """Cosine similarity of content-word counts. Identical texts score 1.0."""
    if original == candidate:
        return 1.0
    a = _term_vector(original)
    b = _term_vector(candidate)
    if not a or not b:
        return 0.0
    vocabulary = sorted(set(a) | set(b))
    return cosine_similarity([a.get(w, 0) for w in vocabulary], [b.get(w, 0) for w in vocabulary])


def length_penalty(original: str, candidate: str) -> float:
    original_words = len(original.split())
    candidate_words = len(candidate.split())
    ratio = candidate_words / original_words if original_words else 1.0

    if ratio > 1.5 or ratio < 0.5:
        return 0.7
    if ratio > 1.3 or ratio < 0.7:
        return 0.85
    return 1.0


class EmbeddingClient:
    """Calls an OpenAI-compatible /v1/embeddings endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.embedding_api_key
        self.api_url = api_url or settings.embedding_api_url
        self.model = model or settings.embedding_model
        self.timeout = timeout or settings.embedding_timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def embed(self, texts: List[str]) -> List[List[float]]:
        if not self.enabled:
            raise EmbeddingError("No embedding API key configured")

        payload = {"model": self.model, "input": [t[:MAX_EMBEDDING_CHARS] for t in texts]}
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
                response.raise_for_status()
            data = response.json()["data"]
            vectors = [item["embedding"] for item in sorted(data, key=lambda d: d["index"])]
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Embeddings request failed: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise EmbeddingError(f"Malformed embeddings response: {e!r}") from e

        if len(vectors) != len(texts):
            raise EmbeddingError(f"Expected {len(texts)} embeddings, got {len(vectors)}")
        return vectors


class SemanticScorer:
    """
    Produces the raw semantic similarity between an original and candidates.

    Falls back to the lexical heuristic when embeddings are skipped,
    unconfigured, or the endpoint fails.
    """

    def __init__(self, embeddings: Optional[EmbeddingClient] = None, skip_embeddings: bool = False):
        self.embeddings = embeddings or EmbeddingClient()
        self.skip_embeddings = skip_embeddings

    async def similarities(self, original: str, candidates: List[str]) -> List[Tuple[float, SemanticMethod]]:
        if not candidates:
            return []

        if not self.skip_embeddings and self.embeddings.enabled:
            try:
                vectors = await self.embeddings.embed([original] + candidates)
                base = vectors[0]
                return [
                    (max(0.0, min(1.0, cosine_similarity(base, v))), SemanticMethod.EMBEDDING)
                    for v in vectors[1:]
                ]
            except EmbeddingError as e:
                logger.warning("Falling back to lexical similarity: %s", e)

        return [(lexical_similarity(original, c), SemanticMethod.LEXICAL) for c in candidates]
