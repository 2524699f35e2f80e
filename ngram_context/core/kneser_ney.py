# ngram_context/core/kneser_ney.py
"""
Kneser-Ney smoothing over an NgramFrequencyModel.

 - order 1: continuation probability |distinct left contexts of w| / all left contexts
 - order k: discounted main term plus lambda-weighted backoff to the (k-1)-gram that
   drops the earliest token
 - discount derived from table sparsity, clamped to [0.5, 0.95]
 - every intermediate value rounded to 6 places so repeated recursion stays stable

Results are always inside [EPSILON, 1]; nothing here returns 0, NaN or inf.
"""

from __future__ import annotations

import math
from typing import Sequence

from ngram_context.core.ngram_model import NgramFrequencyModel

PRECISION = 6
EPSILON = 1e-6
MIN_DISCOUNT = 0.5
MAX_DISCOUNT = 0.95


def _r(x: float) -> float:
    return round(x, PRECISION)


class KneserNeySmoother:
    def __init__(self, model: NgramFrequencyModel):
        self.model = model

    def discount(self) -> float:
        """
        Share of distinct n-grams in the weighted mass. A young table is mostly
        one-off n-grams and gets discounted harder.
        """
        total = self.model.total_ngrams
        if total <= 0:
            return MAX_DISCOUNT
        type_ratio = min(1.0, self.model.unique_ngrams() / total)
        d = MIN_DISCOUNT + (MAX_DISCOUNT - MIN_DISCOUNT) * type_ratio
        return _r(min(MAX_DISCOUNT, max(MIN_DISCOUNT, d)))

    def continuation_probability(self, token: str) -> float:
        total = self.model.total_reverse_continuations
        if total <= 0:
            return EPSILON
        p = _r(len(self.model.reverse_continuations(token)) / total)
        return min(1.0, max(EPSILON, p))

    def probability(self, ngram: str, order: int) -> float:
        tokens = ngram.split() if ngram else []
        if not tokens:
            return EPSILON
        order = max(1, min(int(order), len(tokens)))
        return self._probability(tokens[:order], order)

    def _probability(self, tokens: Sequence[str], order: int) -> float:
        if order <= 1:
            return self.continuation_probability(tokens[-1])

        prefix = " ".join(tokens[:-1])
        prefix_freq = self.model.frequency(prefix)
        if prefix_freq <= 0:
            return self._probability(tokens[1:], order - 1)

        d = self.discount()
        ngram_freq = self.model.frequency(" ".join(tokens))
        main = _r(max(ngram_freq - d, 0.0) / prefix_freq)
        lam = _r(d * len(self.model.continuations(prefix)) / prefix_freq)
        backoff = self._probability(tokens[1:], order - 1)
        p = _r(main + _r(lam * backoff))
        return min(1.0, max(EPSILON, p))

    # -------------------------
    # TF-IDF
    # -------------------------
    def document_frequency(self, ngram: str) -> int:
        """Token df for unigrams; for longer n-grams the smallest token df (an upper bound)."""
        tokens = ngram.split()
        if not tokens:
            return 0
        return min(self.model.document_frequency(t) for t in tokens)

    def tfidf(self, ngram: str, tokens: Sequence[str]) -> float:
        parts = ngram.split()
        n = len(parts)
        if n == 0 or not tokens:
            return 0.0
        windows = max(1, len(tokens) - n + 1)
        occurrences = sum(1 for i in range(len(tokens) - n + 1) if list(tokens[i:i + n]) == parts)
        tf = _r(occurrences / windows)
        df = self.document_frequency(ngram)
        docs = self.model.total_documents
        if df <= 0 or docs <= 0:
            return 0.0
        idf = _r(math.log(docs / df))
        return _r(max(0.0, tf * idf))
