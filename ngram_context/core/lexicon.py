# ngram_context/core/lexicon.py
"""
StatisticalLexicon - word classes discovered from the n-gram table instead of fixed lists.

Discovers:
 - logical connectors (tokens opening/continuing frequent multi-token n-grams)
 - common words (highest-mass tokens)
 - particles (short tokens sitting between other tokens)
 - semantic categories (high-frequency terms grouped by co-occurrence)
 - a context label for a token sequence

When discovery finds nothing (a fresh model) the BOOTSTRAP_* lists below are used as a
cold-start bootstrap. Setting use_bootstrap_fallbacks=False disables them and discovery
results are returned as-is, possibly empty.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ngram_context.context.tokenizer import has_japanese
from ngram_context.core.ngram_model import NgramFrequencyModel

logger = logging.getLogger(__name__)

# Cold-start bootstrap lists, only consulted when discovery is empty
BOOTSTRAP_CONNECTORS = ("について", "から", "ので", "けれど", "また", "さらに")
BOOTSTRAP_COMMON_WORDS = ("について", "を", "は", "が", "に", "で")
BOOTSTRAP_PARTICLES = ("は", "が", "を", "に", "で", "と", "から", "の")

GENERAL_CONTEXT = "general"

_alnum_re = re.compile(r"[a-zA-Z0-9]")


@dataclass(frozen=True)
class LexiconConfig:
    use_bootstrap_fallbacks: bool = True
    refresh_interval: int = 25  # documents between rediscoveries
    connector_min_frequency: float = 10.0
    connector_limit: int = 30
    common_word_limit: int = 20
    particle_max_length: int = 2
    particle_min_frequency: float = 50.0
    particle_limit: int = 15
    category_term_limit: int = 100
    category_cooccurrence_threshold: float = 5.0
    category_match_threshold: float = 0.3


def _is_lexical(token: str) -> bool:
    return bool(token) and not _alnum_re.search(token)


def _top(scores: Dict[str, float], limit: int) -> List[str]:
    return [t for t, _ in sorted(scores.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]]


class StatisticalLexicon:
    def __init__(self, model: NgramFrequencyModel, config: Optional[LexiconConfig] = None):
        self.model = model
        self.cfg = config or LexiconConfig()
        self._connectors: Optional[List[str]] = None
        self._common: Optional[List[str]] = None
        self._particles: Optional[List[str]] = None
        self._categories: Optional[Dict[str, List[str]]] = None
        self._documents_at_refresh = 0

    # -------------------------
    # cache lifecycle
    # -------------------------
    def invalidate(self) -> None:
        self._connectors = None
        self._common = None
        self._particles = None
        self._categories = None
        self._documents_at_refresh = self.model.total_documents

    def maybe_refresh(self) -> bool:
        """Invalidate once refresh_interval documents were learned since the last refresh."""
        if self.model.total_documents - self._documents_at_refresh >= max(1, self.cfg.refresh_interval):
            self.invalidate()
            return True
        return False

    def _fallback(self, discovered: List[str], bootstrap: Sequence[str], name: str) -> List[str]:
        if discovered or not self.cfg.use_bootstrap_fallbacks:
            return discovered
        logger.debug("[Lexicon] no %s discovered, using cold-start bootstrap", name)
        return list(bootstrap)

    # -------------------------
    # discovery
    # -------------------------
    def logical_connectors(self) -> List[str]:
        if self._connectors is None:
            scores: Dict[str, float] = {}
            for ngram, freq in self.model.ngram_frequencies.items():
                if freq <= self.cfg.connector_min_frequency:
                    continue
                tokens = ngram.split()
                if len(tokens) < 2:
                    continue
                for tok in tokens[:2]:
                    if len(tok) > 1 and _is_lexical(tok):
                        scores[tok] = scores.get(tok, 0.0) + freq
            self._connectors = _top(scores, self.cfg.connector_limit)
        return self._fallback(self._connectors, BOOTSTRAP_CONNECTORS, "connectors")

    def common_words(self) -> List[str]:
        if self._common is None:
            scores: Dict[str, float] = {}
            for ngram, freq in self.model.ngram_frequencies.items():
                for tok in ngram.split():
                    if _is_lexical(tok):
                        scores[tok] = scores.get(tok, 0.0) + freq
            self._common = _top(scores, self.cfg.common_word_limit)
        return self._fallback(self._common, BOOTSTRAP_COMMON_WORDS, "common words")

    def particles(self) -> List[str]:
        if self._particles is None:
            scores: Dict[str, float] = {}
            for ngram, freq in self.model.ngram_frequencies.items():
                tokens = ngram.split()
                # short tokens between two other tokens behave like particles
                for tok in tokens[1:-1]:
                    if len(tok) <= self.cfg.particle_max_length and _is_lexical(tok):
                        scores[tok] = scores.get(tok, 0.0) + freq
            frequent = {t: s for t, s in scores.items() if s > self.cfg.particle_min_frequency}
            self._particles = _top(frequent, self.cfg.particle_limit)
        return self._fallback(self._particles, BOOTSTRAP_PARTICLES, "particles")

    def semantic_categories(self) -> Dict[str, List[str]]:
        """Greedy grouping of high-frequency terms by n-gram co-occurrence. No bootstrap."""
        if self._categories is not None:
            return self._categories
        term_freq: Dict[str, float] = {}
        pair_freq: Dict[tuple, float] = {}
        for ngram, freq in self.model.ngram_frequencies.items():
            tokens = [t for t in ngram.split() if len(t) > 1 and _is_lexical(t)]
            for tok in tokens:
                term_freq[tok] = term_freq.get(tok, 0.0) + freq
            for i, a in enumerate(tokens):
                for b in tokens[i + 1:]:
                    if a != b:
                        key = (a, b) if a <= b else (b, a)
                        pair_freq[key] = pair_freq.get(key, 0.0) + freq

        high = _top(term_freq, self.cfg.category_term_limit)
        categories: Dict[str, List[str]] = {}
        seen = set()
        for term in high:
            if term in seen:
                continue
            group = [term]
            seen.add(term)
            for other in high:
                if other in seen:
                    continue
                key = (term, other) if term <= other else (other, term)
                if pair_freq.get(key, 0.0) > self.cfg.category_cooccurrence_threshold:
                    group.append(other)
                    seen.add(other)
            categories[term] = group
        self._categories = categories
        return categories

    # -------------------------
    # context discovery
    # -------------------------
    def infer_semantic_context(self, tokens: Sequence[str]) -> Optional[str]:
        if not tokens:
            return None
        best, best_score = None, 0.0
        for category, keywords in self.semantic_categories().items():
            hits = sum(1 for tok in tokens if any(k in tok or tok in k for k in keywords))
            score = hits / len(tokens)
            if score > best_score and score > self.cfg.category_match_threshold:
                best, best_score = category, score
        return best

    def natural_context(self, tokens: Sequence[str]) -> Optional[str]:
        """First meaningful (multi-character, non-particle) Japanese token."""
        particles = set(self.particles())
        for tok in tokens:
            if len(tok) > 1 and tok not in particles:
                return tok if has_japanese(tok) else None
        return None

    def discover_context(self, tokens: Sequence[str]) -> Optional[str]:
        return self.infer_semantic_context(tokens) or self.natural_context(tokens)
