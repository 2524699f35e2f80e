# ngram_model.py
# variable-order N-gram frequency model: weighted counts, continuations, document and context frequencies.

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ngram_context.context.tokenizer import is_valid_ngram

logger = logging.getLogger(__name__)

Ngram = str
REVERSE_MARKER = "_reverse_"


@dataclass(frozen=True)
class NgramConfig:
    """
    Knobs for n-gram counting. Every *_range field bounds the value drawn for its
    sibling when a seeded randomized config is requested.
    """
    min_order: int = 1
    max_order: int = 3
    connector_weight: float = 1.4  # bonus for n-grams holding a logical connector
    connector_weight_range: Tuple[float, float] = (1.0, 1.8)
    structure_weight: float = 1.25  # bonus for order >= 4 when structure preservation is on
    structure_weight_range: Tuple[float, float] = (1.0, 1.5)
    enable_structure_preservation: bool = False
    structure_min_order: int = 4


@dataclass
class NgramTables:
    """Everything the model persists."""
    ngram_frequencies: Dict[Ngram, float] = field(default_factory=dict)
    continuation_counts: Dict[str, Set[str]] = field(default_factory=dict)
    document_frequencies: Dict[str, int] = field(default_factory=dict)
    context_frequencies: Dict[str, int] = field(default_factory=dict)
    context_terms: Dict[str, Counter] = field(default_factory=dict)
    total_documents: int = 0

    def is_empty(self) -> bool:
        return not self.ngram_frequencies


class NgramFrequencyModel:
    """
    Owns the n-gram tables. Learning is the only path that grows them; compact()
    is the maintenance path that shrinks them.

    Running totals (weighted n-gram mass, reverse continuation count) are kept
    incrementally.
    """

    def __init__(self, config: Optional[NgramConfig] = None) -> None:
        self.cfg = config or NgramConfig()
        self.tables = NgramTables()
        self._total_weight: float = 0.0
        self._total_reverse: int = 0

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def ngram_frequencies(self) -> Dict[Ngram, float]:
        return self.tables.ngram_frequencies

    @property
    def continuation_counts(self) -> Dict[str, Set[str]]:
        return self.tables.continuation_counts

    @property
    def context_frequencies(self) -> Dict[str, int]:
        return self.tables.context_frequencies

    @property
    def total_documents(self) -> int:
        return self.tables.total_documents

    @property
    def total_ngrams(self) -> float:
        """Weighted n-gram mass."""
        return self._total_weight

    @property
    def total_reverse_continuations(self) -> int:
        return self._total_reverse

    def frequency(self, ngram: Ngram) -> float:
        return self.tables.ngram_frequencies.get(ngram, 0.0)

    def document_frequency(self, term: str) -> int:
        return self.tables.document_frequencies.get(term, 0)

    def continuations(self, prefix: str) -> Set[str]:
        return self.tables.continuation_counts.get(prefix, set())

    def reverse_continuations(self, suffix: str) -> Set[str]:
        return self.tables.continuation_counts.get(REVERSE_MARKER + suffix, set())

    def context_terms(self, label: str) -> Counter:
        return self.tables.context_terms.get(label, Counter())

    def unique_ngrams(self) -> int:
        return len(self.tables.ngram_frequencies)

    def is_empty(self) -> bool:
        return self.tables.is_empty()

    def top_ngrams(self, n: int = 10, min_tokens: int = 1) -> List[Tuple[Ngram, float]]:
        """Highest-frequency n-grams with at least min_tokens tokens (ties keep insertion order)."""
        items = [
            (g, f) for g, f in self.tables.ngram_frequencies.items()
            if len(g.split()) >= min_tokens
        ]
        items.sort(key=lambda kv: -kv[1])
        return items[:n]

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------
    def ngram_weight(self, tokens: Sequence[str], order: int, connectors: Iterable[str] = ()) -> float:
        weight = 1.0
        connector_set = connectors if isinstance(connectors, (set, frozenset)) else set(connectors)
        if connector_set and any(t in connector_set for t in tokens):
            weight *= self.cfg.connector_weight
        if self.cfg.enable_structure_preservation and order >= self.cfg.structure_min_order:
            weight *= self.cfg.structure_weight
        return weight

    def _add_continuation(self, key: str, token: str, reverse: bool) -> None:
        bucket = self.tables.continuation_counts.setdefault(key, set())
        if token not in bucket:
            bucket.add(token)
            if reverse:
                self._total_reverse += 1

    def learn_tokens(self,
                     tokens: Sequence[str],
                     context_label: Optional[str] = None,
                     connectors: Iterable[str] = ()) -> int:
        """
        Count one document. Returns the number of n-gram occurrences added.
        An empty token list changes nothing.
        """
        if not tokens:
            return 0
        t = self.tables
        t.total_documents += 1
        for term in set(tokens):
            t.document_frequencies[term] = t.document_frequencies.get(term, 0) + 1

        connector_set = set(connectors)
        added = 0
        lo = max(1, self.cfg.min_order)
        for n in range(lo, self.cfg.max_order + 1):
            for i in range(0, len(tokens) - n + 1):
                window = tokens[i:i + n]
                ngram = " ".join(window)
                if not is_valid_ngram(ngram, n):
                    continue
                w = self.ngram_weight(window, n, connector_set)
                t.ngram_frequencies[ngram] = t.ngram_frequencies.get(ngram, 0.0) + w
                self._total_weight += w
                added += 1
                if n > 1:
                    self._add_continuation(" ".join(window[:-1]), window[-1], reverse=False)
                    self._add_continuation(REVERSE_MARKER + " ".join(window[1:]), window[0], reverse=True)

        if context_label:
            t.context_frequencies[context_label] = t.context_frequencies.get(context_label, 0) + 1
            t.context_terms.setdefault(context_label, Counter()).update(tokens)
        return added

    # ------------------------------------------------------------------
    # Bulk state
    # ------------------------------------------------------------------
    def load_tables(self, tables: NgramTables) -> None:
        """Replace all state and rebuild the running totals."""
        self.tables = tables
        self._recompute_totals()

    def _recompute_totals(self) -> None:
        self._total_weight = float(sum(self.tables.ngram_frequencies.values()))
        self._total_reverse = sum(
            len(v) for k, v in self.tables.continuation_counts.items() if k.startswith(REVERSE_MARKER)
        )

    def clear(self) -> None:
        self.tables = NgramTables()
        self._total_weight = 0.0
        self._total_reverse = 0

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------
    def compact(self, decay: float = 1.0, min_frequency: float = 0.0) -> int:
        """
        Multiply every frequency by decay, then evict n-grams under min_frequency.
        Continuation entries whose n-gram was evicted are dropped too.
        Returns the number of evicted n-grams.
        """
        decay = float(decay)
        if not 0.0 < decay <= 1.0:
            raise ValueError(f"decay must be in (0, 1], got {decay}")
        freqs = self.tables.ngram_frequencies
        kept: Dict[Ngram, float] = {}
        for ngram, f in freqs.items():
            value = f * decay
            if value >= min_frequency:
                kept[ngram] = value
        evicted = len(freqs) - len(kept)
        self.tables.ngram_frequencies = kept

        if evicted:
            pruned: Dict[str, Set[str]] = {}
            for key, bucket in self.tables.continuation_counts.items():
                if key.startswith(REVERSE_MARKER):
                    suffix = key[len(REVERSE_MARKER):]
                    alive = {tok for tok in bucket if f"{tok} {suffix}" in kept}
                else:
                    alive = {tok for tok in bucket if f"{key} {tok}" in kept}
                if alive:
                    pruned[key] = alive
            self.tables.continuation_counts = pruned

        self._recompute_totals()
        logger.info("[NgramModel] compacted: decay=%s evicted=%d remaining=%d", decay, evicted, len(kept))
        return evicted
