# ngram_context/core/pattern_ai.py
"""
NgramContextPatternAI - the facade the surrounding application talks to.
Purpose:
 - learn raw text into the n-gram model (noise filtered, analyzer tokens, whitespace fallback)
 - predict the context and next word of an input (tiered cold-start fallback, LRU cached)
 - expose Kneser-Ney probabilities and TF-IDF
 - build co-occurrence data and distributional vectors, answer similarity queries
 - bandit-assisted vocabulary selection when a bandit collaborator is supplied
 - load/save the versioned snapshot through the store collaborator, never persisting an
   empty model over existing data
 - compaction as an explicit maintenance operation

Learning is serialised with an asyncio.Lock; everything else is synchronous computation
with awaits only at collaborator boundaries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ngram_context.context.analyzer import analyze_tokens
from ngram_context.context.normalizer import clean_text
from ngram_context.context.tokenizer import filter_valid_tokens
from ngram_context.core.context_predictor import ContextPrediction, ContextPredictor
from ngram_context.core.kneser_ney import KneserNeySmoother
from ngram_context.core.lexicon import GENERAL_CONTEXT, StatisticalLexicon
from ngram_context.core.ngram_model import NgramFrequencyModel
from ngram_context.core.protocols import (
    DictionaryEnhancer,
    MorphologicalAnalyzer,
    NgramStore,
    RelationshipSource,
    VocabularyBandit,
)
from ngram_context.core.semantic_engine import DistributionalSemanticEngine, SimilarTerm
from ngram_context.core.vocabulary_selector import VocabularySelection, VocabularySelector
from ngram_context.utils.async_runner import maybe_await
from ngram_context.utils.config_manager import EngineConfig, resolve
from ngram_context.utils.logger_utils import Log
from ngram_context.utils.model_store import SnapshotError, decode_tables, encode_tables

logger = logging.getLogger(__name__)


class NgramContextPatternAI:
    """
    Public API:
      - initialize()
      - learn_pattern(text, context_info=None), learn_batch(texts)
      - predict_context(text)
      - calculate_kneser_ney_probability(ngram, order), calculate_tfidf(ngram, tokens)
      - build_cooccurrence_matrix(window_size=None), build_cooccurrence_from_relationships(user)
      - generate_distributional_vectors(), agenerate_distributional_vectors()
      - calculate_cosine_similarity(a, b), find_semantically_similar_terms(term, candidates, threshold)
      - select_semantically_appropriate_vocabulary(...), select_optimal_vocabulary_with_bandit(...)
      - save(), export_snapshot(), import_snapshot(doc)
      - save_semantic_cache(path), load_semantic_cache(path)
      - compact(decay, min_frequency), stats()
    """

    def __init__(self,
                 config: Optional[EngineConfig] = None,
                 store: Optional[NgramStore] = None,
                 analyzer: Optional[MorphologicalAnalyzer] = None,
                 bandit: Optional[VocabularyBandit] = None,
                 dictionary_enhancer: Optional[DictionaryEnhancer] = None,
                 relationship_source: Optional[RelationshipSource] = None):
        self.config = resolve(config or EngineConfig())
        cfg = self.config
        self.store = store
        self.analyzer = analyzer
        self.bandit = bandit
        self.dictionary_enhancer = dictionary_enhancer
        self.relationship_source = relationship_source

        # Core components
        self.model = NgramFrequencyModel(cfg.ngram)
        self.smoother = KneserNeySmoother(self.model)
        self.lexicon = StatisticalLexicon(self.model, cfg.lexicon)
        self.predictor = ContextPredictor(
            self.model, self.smoother, self.lexicon, cfg.predictor,
            analyzer=analyzer, dictionary_enhancer=dictionary_enhancer, seed=cfg.seed,
        )
        self.semantic = DistributionalSemanticEngine(cfg.semantic)
        self.selector = VocabularySelector(
            self.smoother, self.semantic, cfg.selection, bandit=bandit,
            min_order=cfg.ngram.min_order, max_order=cfg.ngram.max_order,
        )

        self._learn_lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None
        self._autosave = cfg.autosave

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def initialize(self) -> bool:
        """Load the snapshot from the store. Returns True when data was restored."""
        if self.store is None:
            return False
        try:
            doc = await maybe_await(self.store.load_ngram_data())
        except Exception as e:
            logger.warning("[NgramContextPatternAI] store load failed, starting empty: %s", e)
            return False
        if not doc:
            Log.write("[NgramContextPatternAI] no stored n-gram data, starting empty")
            return False
        return self.import_snapshot(doc)

    def export_snapshot(self) -> Dict[str, Any]:
        return encode_tables(self.model.tables)

    def import_snapshot(self, doc: Mapping[str, Any]) -> bool:
        try:
            tables = decode_tables(doc)
        except SnapshotError as e:
            logger.error("[NgramContextPatternAI] invalid snapshot ignored: %s", e)
            return False
        self.model.load_tables(tables)
        self._invalidate_derived()
        Log.write(
            f"[NgramContextPatternAI] restored {self.model.unique_ngrams()} n-grams, "
            f"{self.model.total_documents} documents"
        )
        return True

    async def save(self) -> bool:
        """Persist the snapshot. An empty model is never written."""
        if self.store is None:
            return False
        if self.model.is_empty():
            logger.warning("[NgramContextPatternAI] n-gram table is empty, skipping save")
            return False
        try:
            result = await maybe_await(self.store.save_ngram_data(self.export_snapshot()))
        except Exception as e:
            logger.warning("[NgramContextPatternAI] save failed: %s", e)
            return False
        return result is not False

    def _lock(self) -> asyncio.Lock:
        """Learning lock for the running event loop; a new loop gets a fresh lock."""
        loop = asyncio.get_running_loop()
        if self._learn_lock is None or self._lock_loop is not loop:
            self._learn_lock = asyncio.Lock()
            self._lock_loop = loop
        return self._learn_lock

    def _invalidate_derived(self) -> None:
        self.predictor.reset()
        self.lexicon.invalidate()

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------
    async def learn_pattern(self, text: str, context_info: Optional[Mapping[str, Any]] = None) -> int:
        """Learn one document. Returns the number of n-gram occurrences counted."""
        async with self._lock():
            added = await self._learn(text, context_info)
        if added and self._autosave:
            await self.save()
        return added

    async def learn_batch(self, texts: Iterable[str], context_info: Optional[Mapping[str, Any]] = None) -> int:
        """Learn many documents and save once at the end."""
        total = 0
        async with self._lock():
            for text in texts:
                total += await self._learn(text, context_info)
        if total and self._autosave:
            await self.save()
        return total

    async def _learn(self, text: str, context_info: Optional[Mapping[str, Any]]) -> int:
        cleaned = clean_text(text or "")
        if not cleaned:
            logger.info("[NgramContextPatternAI] nothing to learn after noise filtering")
            return 0
        tokens = filter_valid_tokens(await analyze_tokens(cleaned, self.analyzer))
        if not tokens:
            logger.info("[NgramContextPatternAI] no valid tokens in input, skipped")
            return 0

        label = self.lexicon.discover_context(tokens)
        if not label:
            hint = (context_info or {}).get("category")
            label = hint if isinstance(hint, str) and hint else GENERAL_CONTEXT
        added = self.model.learn_tokens(tokens, label, self.lexicon.logical_connectors())
        self.predictor.reset()
        self.lexicon.maybe_refresh()
        logger.debug("[NgramContextPatternAI] learned %d n-grams (context=%s)", added, label)
        return added

    # ------------------------------------------------------------------
    # Prediction and smoothing
    # ------------------------------------------------------------------
    async def predict_context(self, text: str) -> ContextPrediction:
        return await self.predictor.predict(text)

    def calculate_kneser_ney_probability(self, ngram: str, order: int) -> float:
        return self.smoother.probability(ngram, order)

    def calculate_tfidf(self, ngram: str, tokens: Sequence[str]) -> float:
        return self.smoother.tfidf(ngram, tokens)

    # ------------------------------------------------------------------
    # Distributional semantics
    # ------------------------------------------------------------------
    def build_cooccurrence_matrix(self, window_size: Optional[int] = None) -> Dict[str, int]:
        return self.semantic.build_cooccurrence_matrix(self.model.ngram_frequencies, window_size)

    async def build_cooccurrence_from_relationships(self, user: str = "default") -> Dict[str, int]:
        if self.relationship_source is None:
            logger.warning("[NgramContextPatternAI] no relationship source, falling back to n-gram windows")
            return self.build_cooccurrence_matrix()
        try:
            relations = await maybe_await(self.relationship_source.get_user_specific_relations(user))
        except Exception as e:
            logger.warning("[NgramContextPatternAI] relationship source failed, using n-gram windows: %s", e)
            return self.build_cooccurrence_matrix()
        return self.semantic.build_cooccurrence_from_relationships(relations or {})

    def generate_distributional_vectors(self) -> Dict[str, int]:
        return self.semantic.generate_distributional_vectors()

    async def agenerate_distributional_vectors(self) -> Dict[str, int]:
        return await self.semantic.agenerate_distributional_vectors()

    def calculate_cosine_similarity(self, term_a: str, term_b: str) -> float:
        return self.semantic.calculate_cosine_similarity(term_a, term_b)

    def find_semantically_similar_terms(self, term: str, candidates: Iterable[str],
                                        threshold: Optional[float] = None) -> List[SimilarTerm]:
        return self.semantic.find_semantically_similar_terms(term, candidates, threshold)

    def select_semantically_appropriate_vocabulary(self, input_terms: Iterable[str], candidates: Iterable[str],
                                                   max_results: int = 5) -> List[tuple]:
        return self.semantic.select_semantically_appropriate_vocabulary(input_terms, candidates, max_results)

    def save_semantic_cache(self, path: str) -> bool:
        return self.semantic.save_semantic_cache(path)

    def load_semantic_cache(self, path: str) -> bool:
        return self.semantic.load_semantic_cache(path)

    # ------------------------------------------------------------------
    # Bandit
    # ------------------------------------------------------------------
    async def select_optimal_vocabulary_with_bandit(self, context_tokens: Sequence[str], candidates: Sequence[str],
                                                    options: Optional[Mapping[str, Any]] = None) -> VocabularySelection:
        return await self.selector.select(context_tokens, candidates, options)

    def record_vocabulary_feedback(self, term: str, reward: float) -> None:
        """Forward a [0, 1] reward to the bandit when it supports updates."""
        if self.bandit is not None and hasattr(self.bandit, "update_rewards"):
            self.bandit.update_rewards(term, reward)

    # ------------------------------------------------------------------
    # Maintenance and introspection
    # ------------------------------------------------------------------
    async def compact(self, decay: float = 1.0, min_frequency: float = 0.0, persist: bool = True) -> int:
        """Decay and evict n-grams, then drop derived caches. Returns evicted count."""
        async with self._lock():
            evicted = self.model.compact(decay, min_frequency)
            self._invalidate_derived()
        if persist and self._autosave:
            await self.save()
        return evicted

    def stats(self) -> Dict[str, Any]:
        return {
            "ngrams": self.model.unique_ngrams(),
            "total_ngrams": round(self.model.total_ngrams, 6),
            "documents": self.model.total_documents,
            "contexts": len(self.model.context_frequencies),
            "discount": self.smoother.discount(),
            "cooccurrence_pairs": self.semantic.matrix.size,
            "vectors": len(self.semantic.vectors),
            "dimensions": self.semantic.dimensions,
            "prediction_cache": self.predictor.cache.stats(),
        }
