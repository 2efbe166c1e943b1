"""TF-IDF index over historical classified items.

Used to pick the few-shot examples most similar to a batch of incoming items,
so the classifier prompt shows precedents instead of an arbitrary sample.
The index is built once per build and is read-only afterwards, which makes it
safe to query from several batch threads at once.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from typing import Iterable, Sequence

from report_merge.models import HistoricalExample

logger = logging.getLogger(__name__)

SparseVector = dict[int, float]


def tokenize(text: str) -> list[str]:
    """Lowercase ``text`` and split it into maximal runs of letters/digits."""

    tokens: list[str] = []
    current: list[str] = []
    for ch in text.lower():
        if ch.isalpha() or ch.isdigit():
            current.append(ch)
        elif current:
            tokens.append("".join(current))
            current = []
    if current:
        tokens.append("".join(current))
    return tokens


def cosine_similarity(a: SparseVector, b: SparseVector) -> float:
    if not a or not b:
        return 0.0
    dot = sum(value * b[idx] for idx, value in a.items() if idx in b)
    norm_a = math.sqrt(sum(v * v for v in a.values()))
    norm_b = math.sqrt(sum(v * v for v in b.values()))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class TfidfIndex:
    """Sparse TF-IDF vectors for a fixed corpus of :class:`HistoricalExample`."""

    def __init__(
        self,
        examples: Sequence[HistoricalExample],
        vocab: dict[str, int],
        idf: list[float],
        vectors: list[SparseVector],
    ) -> None:
        self._examples = list(examples)
        self._vocab = vocab
        self._idf = idf
        self._vectors = vectors

    @classmethod
    def build(cls, examples: Iterable[HistoricalExample]) -> "TfidfIndex":
        examples = list(examples)
        vocab: dict[str, int] = {}
        term_counts: list[Counter[int]] = []
        for example in examples:
            counts: Counter[int] = Counter()
            for token in tokenize(example.description):
                idx = vocab.setdefault(token, len(vocab))
                counts[idx] += 1
            term_counts.append(counts)

        doc_freq = [0] * len(vocab)
        for counts in term_counts:
            for idx in counts:
                doc_freq[idx] += 1

        n_docs = float(len(examples))
        idf = [math.log(n_docs / df) + 1.0 if df else 0.0 for df in doc_freq]

        vectors = [
            {idx: count * idf[idx] for idx, count in counts.items()}
            for counts in term_counts
        ]
        logger.debug("Built TF-IDF index: %d documents, %d terms", len(examples), len(vocab))
        return cls(examples, vocab, idf, vectors)

    def __len__(self) -> int:
        return len(self._examples)

    def query_vector(self, query: str) -> SparseVector:
        counts: Counter[int] = Counter()
        for token in tokenize(query):
            idx = self._vocab.get(token)
            if idx is not None:
                counts[idx] += 1
        return {idx: count * self._idf[idx] for idx, count in counts.items()}

    def scored(self, query: str, k: int) -> list[tuple[int, float]]:
        """Return ``(document index, similarity)`` for the best ``k`` matches.

        Documents with zero similarity are never returned. Equal scores keep
        corpus order.
        """
        if not self._examples or k <= 0:
            return []
        qvec = self.query_vector(query)
        if not qvec:
            return []
        results = []
        for idx, dvec in enumerate(self._vectors):
            sim = cosine_similarity(qvec, dvec)
            if sim > 0:
                results.append((idx, sim))
        results.sort(key=lambda pair: -pair[1])
        return results[:k]

    def top_k(self, query: str, k: int) -> list[HistoricalExample]:
        return [self._examples[idx] for idx, _ in self.scored(query, k)]

    def top_k_for_batch(self, queries: Iterable[str], k: int) -> list[HistoricalExample]:
        """Union of per-query results, best similarity first, capped at ``k``."""

        if not self._examples or k <= 0:
            return []
        best: dict[int, float] = {}
        for query in queries:
            for idx, sim in self.scored(query, k):
                if idx not in best or sim > best[idx]:
                    best[idx] = sim
        # dicts keep first-seen order, so the stable sort breaks ties by it.
        ranked = sorted(best.items(), key=lambda pair: -pair[1])
        return [self._examples[idx] for idx, _ in ranked[:k]]
