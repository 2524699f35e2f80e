# ngram_context/core/context_predictor.py
"""
ContextPredictor - picks the statistically discovered context that best explains an input
and the most likely next token.

Scoring per context c over every input n-gram g of order n (1..max_order):

    sum(KN(g, n) * TFIDF(g) * n * log(1 + freq(c)) * (1 + affinity_weight * affinity(g, c)))
    / sum(n)

affinity(g, c) is the share of g's tokens seen in documents labelled c.

Cold start never raises; the fallback chain is:
  (a) most frequent context
  (b) most relevant high-frequency multi-token n-gram (Jaccard + frequency)
  (c) part-of-speech compatible candidate when relevance is too low
  (d) any learned n-gram, else a bootstrap phrase
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from ngram_context.context.analyzer import analyze_terms
from ngram_context.context.scorers import analyze_morphological_features, morphological_suitability
from ngram_context.context.tokenizer import has_japanese
from ngram_context.core.kneser_ney import KneserNeySmoother
from ngram_context.core.lexicon import GENERAL_CONTEXT, StatisticalLexicon
from ngram_context.core.ngram_model import NgramFrequencyModel
from ngram_context.utils.cache_utils import BoundedCache

logger = logging.getLogger(__name__)

BOOTSTRAP_PHRASE = "お話し ください"


@dataclass(frozen=True)
class PredictorConfig:
    cache_size: int = 1000
    affinity_weight: float = 1.0
    max_confidence: float = 0.95
    frequent_context_confidence_cap: float = 0.5
    ngram_fallback_confidence_cap: float = 0.4
    last_resort_confidence: float = 0.1
    fallback_candidates: int = 10
    relevance_threshold: float = 0.15
    pos_fallback_relevance: float = 0.2
    pos_suitability_threshold: float = 0.1
    next_word_max_prefix: int = 3
    bootstrap_phrase: str = BOOTSTRAP_PHRASE


@dataclass(frozen=True)
class ContextPrediction:
    predicted_category: str
    predicted_next_word: Optional[str]
    confidence: float
    fallback_mode: bool = False

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        return {
            "predictedCategory": d["predicted_category"],
            "predictedNextWord": d["predicted_next_word"],
            "confidence": d["confidence"],
            "fallbackMode": d["fallback_mode"],
        }


class ContextPredictor:
    def __init__(self,
                 model: NgramFrequencyModel,
                 smoother: KneserNeySmoother,
                 lexicon: StatisticalLexicon,
                 config: Optional[PredictorConfig] = None,
                 analyzer: Any = None,
                 dictionary_enhancer: Any = None,
                 seed: int = 0):
        self.model = model
        self.smoother = smoother
        self.lexicon = lexicon
        self.cfg = config or PredictorConfig()
        self.analyzer = analyzer
        self.enhancer = dictionary_enhancer
        self._rng = random.Random(seed)
        self._seed = seed
        self.cache: BoundedCache[str, ContextPrediction] = BoundedCache(self.cfg.cache_size)

    def reset(self) -> None:
        """Drop cached predictions and restart the fallback sampler."""
        self.cache.clear()
        self._rng = random.Random(self._seed)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def predict(self, text: str) -> ContextPrediction:
        key = text or ""
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        try:
            result = await self._predict(key)
        except Exception as e:
            logger.warning("[ContextPredictor] prediction failed, using last resort: %s", e)
            result = self._last_resort([])
        self.cache.put(key, result)
        return result

    def score_contexts(self, tokens: Sequence[str]) -> Dict[str, float]:
        """Normalized score of every known context for the token sequence."""
        contexts = self.model.context_frequencies
        if not tokens or not contexts:
            return {}
        weighted: List[Tuple[Sequence[str], float]] = []
        total_weight = 0
        for n in range(1, self.model.cfg.max_order + 1):
            for i in range(0, len(tokens) - n + 1):
                window = tokens[i:i + n]
                ngram = " ".join(window)
                kn = self.smoother.probability(ngram, n)
                tfidf = self.smoother.tfidf(ngram, tokens)
                weighted.append((window, kn * tfidf * n))
                total_weight += n
        if total_weight == 0:
            return {}

        scores: Dict[str, float] = {}
        aw = self.cfg.affinity_weight
        for label, freq in contexts.items():
            cf = math.log(1 + freq)
            profile = self.model.context_terms(label)
            s = 0.0
            for window, base in weighted:
                if base <= 0:
                    continue
                affinity = sum(1 for t in window if t in profile) / len(window)
                s += base * cf * (1 + aw * affinity)
            scores[label] = s / total_weight
        return scores

    def _extensions(self, ngram: str, order: int) -> Iterator[Tuple[str, int]]:
        """ngram and every stored longer n-gram that starts with it, with token counts."""
        yield ngram, order
        if order >= self.model.cfg.max_order:
            return
        for tok in sorted(self.model.continuations(ngram)):
            yield from self._extensions(f"{ngram} {tok}", order + 1)

    def predict_next_word(self, tokens: Sequence[str]) -> Optional[str]:
        """
        Best continuation of the trailing 1..3 tokens. Every stored n-gram that opens with
        the prefix and is longer than it votes for the token right after the prefix, scored
        by frequency * matched prefix length * KN at the n-gram's own order. Falls back to
        the first learned common word.
        """
        best: Optional[str] = None
        best_score = 0.0
        for n in range(1, min(self.cfg.next_word_max_prefix, len(tokens)) + 1):
            prefix = " ".join(tokens[-n:])
            for cand in sorted(self.model.continuations(prefix)):
                for ngram, order in self._extensions(f"{prefix} {cand}", n + 1):
                    freq = self.model.frequency(ngram)
                    if freq <= 0:
                        continue
                    score = freq * n * self.smoother.probability(ngram, order)
                    if score > best_score:
                        best, best_score = cand, score
        if best is not None:
            return best
        for word in self.lexicon.common_words():
            if self.model.frequency(word) > 0:
                return word
        return None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _predict(self, text: str) -> ContextPrediction:
        terms = [
            t for t in await analyze_terms(text, self.analyzer)
            if has_japanese(t.get("base_form") or t.get("surface") or "")
        ]
        tokens = [t.get("base_form") or t.get("surface") for t in terms]

        scores = self.score_contexts(tokens)
        best_label, best_score = None, 0.0
        for label, s in scores.items():
            if s > best_score:
                best_label, best_score = label, s
        if best_label is not None:
            return ContextPrediction(
                predicted_category=best_label,
                predicted_next_word=self.predict_next_word(tokens),
                confidence=round(min(self.cfg.max_confidence, best_score / (1 + best_score)), 6),
            )

        if self.model.context_frequencies:
            return self._most_frequent_context(tokens)
        return await self._statistical_fallback(tokens, terms)

    def _most_frequent_context(self, tokens: Sequence[str]) -> ContextPrediction:
        contexts = self.model.context_frequencies
        label, freq = None, 0
        for k, v in contexts.items():
            if label is None or v > freq:
                label, freq = k, v
        total = sum(contexts.values())
        share = (freq / total) if total > 0 else 0.0
        return ContextPrediction(
            predicted_category=label or GENERAL_CONTEXT,
            predicted_next_word=self.predict_next_word(tokens),
            confidence=round(min(self.cfg.frequent_context_confidence_cap, share), 6),
        )

    def relevance(self, tokens: Sequence[str], ngram: str, freq: float) -> float:
        parts = ngram.split()
        q, g = set(tokens), set(parts)
        union = q | g
        jaccard = (len(q & g) / len(union)) if union else 0.0
        denom = math.log(self.model.total_ngrams + 1)
        freq_weight = (math.log(freq + 1) / denom) if denom > 0 else 0.0
        return jaccard * 0.7 + freq_weight * 0.3

    async def _statistical_fallback(self, tokens: Sequence[str],
                                    terms: List[Mapping[str, str]]) -> ContextPrediction:
        candidates = self.model.top_ngrams(self.cfg.fallback_candidates, min_tokens=2)
        if not candidates:
            return self._last_resort(tokens)

        best, best_rel = candidates[0][0], -1.0
        for ngram, freq in candidates:
            rel = self.relevance(tokens, ngram, freq)
            if rel > best_rel:
                best, best_rel = ngram, rel

        if best_rel < self.cfg.relevance_threshold:
            best = await self._pos_compatible_candidate(terms, [g for g, _ in candidates])
            best_rel = self.cfg.pos_fallback_relevance

        return ContextPrediction(
            predicted_category=best,
            predicted_next_word=self.predict_next_word(tokens),
            confidence=round(min(self.cfg.ngram_fallback_confidence_cap, best_rel), 6),
            fallback_mode=True,
        )

    async def _pos_compatible_candidate(self, terms: List[Mapping[str, str]], candidates: List[str]) -> str:
        features = analyze_morphological_features(terms)
        best, best_score = None, 0.0
        for ngram in candidates:
            cand_terms = await analyze_terms(ngram, self.analyzer)
            score = await morphological_suitability(cand_terms, features, self.enhancer)
            if score > best_score:
                best, best_score = ngram, score
        if best is not None and best_score > self.cfg.pos_suitability_threshold:
            return best
        # most generic: first bigram, else the most frequent candidate
        for ngram in candidates:
            if len(ngram.split()) == 2:
                return ngram
        return candidates[0]

    def _last_resort(self, tokens: Sequence[str]) -> ContextPrediction:
        learned = list(self.model.ngram_frequencies)[: self.cfg.fallback_candidates]
        if learned:
            category = self._rng.choice(learned)
        elif self.lexicon.cfg.use_bootstrap_fallbacks:
            category = self.cfg.bootstrap_phrase
        else:
            category = GENERAL_CONTEXT
        return ContextPrediction(
            predicted_category=category,
            predicted_next_word=self.predict_next_word(tokens) if tokens else None,
            confidence=self.cfg.last_resort_confidence,
            fallback_mode=True,
        )
