"""
Semantic similarity collaborators for loop detection

The detector hands the outputs of its window to one of these and asks for the
highest pairwise similarity in [0, 1]. The lexical calculator works offline;
the embedding calculator calls an OpenAI-style ``/embeddings`` endpoint over
httpx and compares vectors by cosine.
"""

from __future__ import annotations

import logging
import math
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from itertools import combinations

import httpx

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+")


class SemanticSimilarityCalculator(ABC):
    """Scores how alike a set of outputs are."""

    @abstractmethod
    async def max_similarity(self, outputs: Sequence[str]) -> float:
        """Highest pairwise similarity in [0, 1]; 0.0 when fewer than two outputs."""


def _token_set(text: str) -> frozenset[str]:
    return frozenset(_TOKEN_RE.findall(text.lower()))


def jaccard(a: frozenset[str], b: frozenset[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0.0:
        return 0.0
    # clamp: rounding can push identical vectors past 1.0
    return max(0.0, min(1.0, dot / norm))


class LexicalSimilarityCalculator(SemanticSimilarityCalculator):
    """Max pairwise Jaccard similarity of word-token sets.

    Outputs with no word tokens (punctuation, whitespace) carry no content to
    compare and are left out of the pairing.
    """

    async def max_similarity(self, outputs: Sequence[str]) -> float:
        sets = [s for s in (_token_set(o) for o in outputs if o) if s]
        if len(sets) < 2:
            return 0.0
        return max(jaccard(a, b) for a, b in combinations(sets, 2))


class EmbeddingSimilarityCalculator(SemanticSimilarityCalculator):
    """Max pairwise cosine similarity of embeddings from an HTTP service.

    Args:
        base_url: Service root, e.g. ``http://localhost:8080/v1``
        model: Embedding model name sent with each request
        api_key: Optional bearer token
        timeout: Request timeout in seconds
        http_client: Pre-built client, mainly for tests; not closed by ``aclose``
    """

    def __init__(
        self,
        base_url: str,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """Fetch one embedding per text, in input order.

        Raises:
            httpx.HTTPError: transport failure or non-2xx response
            ValueError: response body does not match the request
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        client = await self._get_client()
        response = await client.post(
            f"{self.base_url}/embeddings",
            json={"model": self.model, "input": list(texts)},
            headers=headers,
        )
        response.raise_for_status()

        data = response.json().get("data", [])
        if len(data) != len(texts):
            raise ValueError(f"expected {len(texts)} embeddings, got {len(data)}")
        ordered = sorted(data, key=lambda item: item.get("index", 0))
        return [item["embedding"] for item in ordered]

    async def max_similarity(self, outputs: Sequence[str]) -> float:
        texts = [o for o in outputs if o]
        if len(texts) < 2:
            return 0.0
        vectors = await self.embed(texts)
        logger.debug("Embedded %d outputs with %s", len(vectors), self.model)
        return max(cosine(a, b) for a, b in combinations(vectors, 2))
