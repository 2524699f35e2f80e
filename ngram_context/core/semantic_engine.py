# ngram_context/core/semantic_engine.py
"""
DistributionalSemanticEngine - co-occurrence based term vectors. Features:
 - sparse term x term co-occurrence matrix built from n-gram windows or a relationship graph
 - PPMI + TF-IDF hybrid scoring with a frequency-adaptive sigmoid blend
 - statistical pair filter (top percentile with an absolute floor) to bound work
 - batched pair processing with periodic gc hints, async variant yields between batches
 - fixed random projection of L2-normalized profiles into dense vectors
 - MinHash LSH index (datasketch) flagging approximate near duplicates
 - cached, symmetric hybrid similarity (cosine + word-mover-like distance term)
 - semantic cache file (pickle, atomic writes) for fast reload
"""

from __future__ import annotations

import asyncio
import gc
import logging
import math
import os
import pickle
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import numpy as np
from datasketch import MinHash, MinHashLSH

from ngram_context.core.sparse_matrix import SparseCooccurrenceMatrix
from ngram_context.utils.cache_utils import BoundedCache, pair_key
from ngram_context.utils.logger_utils import Log, is_development

logger = logging.getLogger(__name__)

Vec = np.ndarray
ProfileEntry = Tuple[str, float, float]  # (co-term, hybrid score, co-occurrence count)
CandidateList = List[Tuple[str, float]]

CACHE_VERSION = 1


@dataclass(frozen=True)
class SemanticConfig:
    window_size: int = 5
    min_term_length: int = 1
    cooccurrence_percentile: float = 0.15
    min_filtered_cooccurrence: float = 3.0
    min_cooccurrence_for_pmi: float = 2.0
    # sigmoid blend of PMI vs TF-IDF weight, driven by relative pair frequency
    sigmoid_steepness: float = 7.0
    sigmoid_steepness_range: Tuple[float, float] = (5.0, 9.0)
    sigmoid_center: float = 0.55
    sigmoid_center_range: Tuple[float, float] = (0.4, 0.7)
    pmi_base_weight: float = 0.35
    pmi_base_weight_range: Tuple[float, float] = (0.2, 0.5)
    pmi_weight_span: float = 0.45
    pmi_weight_span_range: Tuple[float, float] = (0.3, 0.6)
    diversity_factor: float = 0.05
    score_scale: float = 50.0
    batch_size: int = 5000
    gc_every_batches: int = 10
    min_dimensions: int = 10
    max_dimensions: int = 100
    dimension_growth: float = 0.125
    input_dimensions: int = 100
    cosine_weight: float = 0.8
    distance_weight: float = 0.2
    euclid_cost_weight: float = 0.7
    length_cost_weight: float = 0.3
    similarity_cache_size: int = 50000
    lsh_num_perm: int = 128
    lsh_threshold: float = 0.5
    lsh_quantization: int = 100
    threshold_min: float = 0.3
    threshold_max: float = 0.8
    threshold_default: float = 0.5
    seed: int = 42


@dataclass(frozen=True)
class SimilarTerm:
    term: str
    similarity: float
    lsh_hit: bool = False

    @property
    def semantic_strength(self) -> float:
        return self.similarity


def _sigmoid(x: float) -> float:
    if x < -60:
        return 0.0
    if x > 60:
        return 1.0
    return 1.0 / (1.0 + math.exp(-x))


def _length_cost(a: str, b: str) -> float:
    return abs(len(a) - len(b)) / max(len(a), len(b), 1)


class DistributionalSemanticEngine:
    def __init__(self, config: Optional[SemanticConfig] = None):
        self.cfg = config or SemanticConfig()
        self.matrix = SparseCooccurrenceMatrix()
        self.total_cooccurrences: float = 0.0
        self.profiles: Dict[str, List[ProfileEntry]] = {}
        self.vectors: Dict[str, Vec] = {}
        self.dimensions: int = 0
        self._term_totals: Optional[Dict[str, float]] = None
        self._projection: Optional[Vec] = None
        self._lsh: Optional[MinHashLSH] = None
        self._similarity_cache: BoundedCache[Tuple[str, str], float] = BoundedCache(self.cfg.similarity_cache_size)

    # -------------------------
    # caches
    # -------------------------
    def term_totals(self) -> Dict[str, float]:
        """Total co-occurrence mass per term, computed in one pass and kept until invalidated."""
        if self._term_totals is None:
            totals: Dict[str, float] = {}
            for t1, t2, c in self.matrix:
                totals[t1] = totals.get(t1, 0.0) + c
                totals[t2] = totals.get(t2, 0.0) + c
            self._term_totals = totals
        return self._term_totals

    def invalidate_caches(self) -> None:
        self._term_totals = None
        self._similarity_cache.clear()

    # -------------------------
    # matrix construction
    # -------------------------
    def build_cooccurrence_matrix(self,
                                  ngram_frequencies: Mapping[str, float],
                                  window_size: Optional[int] = None) -> Dict[str, int]:
        """Rebuild the matrix from n-gram windows; pairs inside one window accumulate the n-gram weight."""
        window = int(window_size or self.cfg.window_size)
        self.matrix.clear()
        for ngram, freq in ngram_frequencies.items():
            if not isinstance(ngram, str):
                logger.warning("[SemanticEngine] skipping non-string n-gram key %r", ngram)
                continue
            terms = [t for t in ngram.split() if len(t) >= self.cfg.min_term_length]
            for i in range(len(terms)):
                for j in range(i + 1, min(i + window, len(terms))):
                    if terms[i] != terms[j]:
                        self.matrix.add(terms[i], terms[j], freq)
        return self._finish_build()

    def build_cooccurrence_from_relationships(self, relations: Mapping[str, Iterable[Mapping[str, Any]]]) -> Dict[str, int]:
        """Rebuild the matrix from {keyword: [{"term", "strength" | "count"}]}."""
        self.matrix.clear()
        for keyword, related in (relations or {}).items():
            if not keyword or len(keyword) < 2:
                continue
            for rel in related or ():
                term = rel.get("term") if isinstance(rel, Mapping) else None
                if not term or len(term) < 2 or term == keyword:
                    continue
                strength = rel.get("strength", rel.get("count", 1.0))
                try:
                    strength = float(strength)
                except (TypeError, ValueError):
                    continue
                if strength > 0:
                    self.matrix.add(keyword, term, strength)
        return self._finish_build()

    def _finish_build(self) -> Dict[str, int]:
        self.total_cooccurrences = float(sum(c for _, _, c in self.matrix))
        self.invalidate_caches()
        Log.write(
            f"[SemanticEngine] co-occurrence matrix built: {self.matrix.size} pairs, "
            f"{self.matrix.vocabulary_size} terms"
        )
        return {"pair_count": self.matrix.size, "term_count": self.matrix.vocabulary_size}

    # -------------------------
    # scoring
    # -------------------------
    def min_cooccurrence(self, counts: List[float]) -> float:
        """Count at the configured top percentile, never below the absolute floor."""
        if not counts:
            return self.cfg.min_filtered_cooccurrence
        ordered = sorted(counts, reverse=True)
        idx = min(len(ordered) - 1, int(math.floor(len(ordered) * self.cfg.cooccurrence_percentile)))
        return max(ordered[idx], self.cfg.min_filtered_cooccurrence)

    def ppmi(self, t1: str, t2: str, count: float) -> float:
        totals = self.term_totals()
        total = self.total_cooccurrences
        if count < self.cfg.min_cooccurrence_for_pmi or total <= 0:
            return 0.0
        p1 = totals.get(t1, 0.0) / total
        p2 = totals.get(t2, 0.0) / total
        if p1 <= 0 or p2 <= 0:
            return 0.0
        p12 = count / total
        return max(0.0, math.log2(p12 / (p1 * p2)))

    def term_tfidf(self, target: str, other: str, count: float) -> float:
        totals = self.term_totals()
        target_total = totals.get(target, 0.0)
        vocab = self.matrix.vocabulary_size
        if target_total <= 0 or vocab <= 0:
            return 0.0
        tf = count / target_total
        idf = math.log(vocab / (1.0 + totals.get(other, 0.0)))
        return max(0.0, tf * idf)

    def hybrid_score(self, target: str, other: str, count: float, max_count: float) -> float:
        cfg = self.cfg
        pmi = self.ppmi(target, other, count)
        tfidf = self.term_tfidf(target, other, count)
        if pmi <= 0 and tfidf <= 0:
            return 0.0
        pmi_n = min(1.0, pmi / 10.0)
        tfidf_n = min(1.0, tfidf)
        ratio = count / max_count if max_count > 0 else 0.0
        pmi_w = cfg.pmi_base_weight + _sigmoid(cfg.sigmoid_steepness * (ratio - cfg.sigmoid_center)) * cfg.pmi_weight_span
        pmi_w = min(1.0, max(0.0, pmi_w))
        tfidf_w = 1.0 - pmi_w

        totals = self.term_totals()
        f1, f2 = totals.get(target, 0.0), totals.get(other, 0.0)
        denom = math.log(max(f1, f2) + 1)
        freq_diff = abs(math.log(f1 + 1) - math.log(f2 + 1)) / denom if denom > 0 else 0.0
        diversity = (_length_cost(target, other) + freq_diff) / 2.0

        base = pmi_n * pmi_w + tfidf_n * tfidf_w
        return math.tanh(base * (1.0 + cfg.diversity_factor * diversity)) * cfg.score_scale

    # -------------------------
    # vector generation
    # -------------------------
    def _dimensions_for(self, vocab_size: int) -> int:
        dims = int(math.floor(vocab_size * self.cfg.dimension_growth))
        return max(self.cfg.min_dimensions, min(self.cfg.max_dimensions, dims))

    def projection_matrix(self, out_dims: int, in_dims: int) -> Vec:
        """Seeded [-1, 1] projection, generated once per shape and reused."""
        if self._projection is None or self._projection.shape != (out_dims, in_dims):
            rng = np.random.default_rng(self.cfg.seed)
            self._projection = rng.uniform(-1.0, 1.0, size=(out_dims, in_dims))
            logger.debug("[SemanticEngine] projection matrix %dx%d generated", out_dims, in_dims)
        return self._projection

    def _vector_pass(self) -> Iterator[None]:
        """Generator doing the whole pass; yields after every batch."""
        cfg = self.cfg
        triples = list(self.matrix)
        self.profiles = {}
        self.vectors = {}
        self._similarity_cache.clear()
        if not triples:
            self.dimensions = 0
            self._lsh = None
            return

        self.term_totals()
        min_co = self.min_cooccurrence([c for _, _, c in triples])
        relevant = [t for t in triples if t[2] >= min_co]
        max_co = max((c for _, _, c in relevant), default=1.0)
        logger.info("[SemanticEngine] %d/%d pairs kept (min co-occurrence %.2f)", len(relevant), len(triples), min_co)

        profiles: Dict[str, List[ProfileEntry]] = {}
        batch = max(1, cfg.batch_size)
        for batch_no, start in enumerate(range(0, len(relevant), batch), 1):
            for t1, t2, co in relevant[start:start + batch]:
                s12 = self.hybrid_score(t1, t2, co, max_co)
                if s12 > 0:
                    profiles.setdefault(t1, []).append((t2, s12, co))
                s21 = self.hybrid_score(t2, t1, co, max_co)
                if s21 > 0:
                    profiles.setdefault(t2, []).append((t1, s21, co))
            if cfg.gc_every_batches and batch_no % cfg.gc_every_batches == 0:
                gc.collect()
            yield

        terms = self.matrix.terms()
        dims = self._dimensions_for(len(terms))
        in_dims = max(dims, cfg.input_dimensions)
        proj = self.projection_matrix(dims, in_dims)
        lsh = MinHashLSH(threshold=cfg.lsh_threshold, num_perm=cfg.lsh_num_perm)

        for start in range(0, len(terms), batch):
            for term in terms[start:start + batch]:
                entries = sorted(profiles.get(term, []), key=lambda e: (-e[1], e[0]))
                profiles[term] = entries
                orig = np.zeros(in_dims, dtype=float)
                for i, (_, score, count) in enumerate(entries[:in_dims]):
                    orig[i] = score * math.log10(1 + count) * (1 + 0.1 * (i + 1) / dims)
                orig = np.abs(np.nan_to_num(orig, nan=0.0, posinf=0.0, neginf=0.0))
                norm = np.linalg.norm(orig)
                if norm > 0:
                    orig = orig / norm
                vec = proj @ orig
                self.vectors[term] = vec
                if norm > 0:
                    self._index_term(lsh, term, vec)
            yield

        self.profiles = profiles
        self.dimensions = dims
        self._lsh = lsh

    def generate_distributional_vectors(self) -> Dict[str, int]:
        with Log.time_block("vector_generation"):
            for _ in self._vector_pass():
                pass
        return self._vector_summary()

    async def agenerate_distributional_vectors(self) -> Dict[str, int]:
        """Same pass as generate_distributional_vectors, yielding to the loop between batches."""
        with Log.time_block("vector_generation"):
            for _ in self._vector_pass():
                await asyncio.sleep(0)
        return self._vector_summary()

    def _vector_summary(self) -> Dict[str, int]:
        Log.write(f"[SemanticEngine] {len(self.vectors)} vectors, {self.dimensions} dimensions")
        return {"vector_count": len(self.vectors), "dimensions": self.dimensions}

    # -------------------------
    # LSH
    # -------------------------
    def vector_features(self, vec: Vec) -> List[str]:
        q = self.cfg.lsh_quantization
        feats = []
        for i, v in enumerate(vec):
            bucket = int(math.floor(float(v) * q))
            if bucket != 0:
                feats.append(f"{i}:{bucket}")
        return feats

    def _minhash(self, vec: Vec) -> MinHash:
        feats = self.vector_features(vec)
        if not feats:
            raise ValueError("vector has no non-zero features")
        m = MinHash(num_perm=self.cfg.lsh_num_perm, seed=self.cfg.seed)
        for f in feats:
            m.update(f.encode("utf-8"))
        return m

    def _index_term(self, lsh: MinHashLSH, term: str, vec: Vec) -> None:
        try:
            lsh.insert(term, self._minhash(vec))
        except Exception as e:
            if is_development():
                logger.warning("[SemanticEngine] LSH indexing failed for %r: %s", term, e)

    def rebuild_lsh_index(self) -> None:
        lsh = MinHashLSH(threshold=self.cfg.lsh_threshold, num_perm=self.cfg.lsh_num_perm)
        for term, vec in self.vectors.items():
            if np.any(vec):
                self._index_term(lsh, term, vec)
        self._lsh = lsh

    def lsh_candidates(self, term: str) -> set:
        """Terms sharing LSH buckets with term. Raises when term cannot be looked up."""
        if self._lsh is None:
            raise LookupError("LSH index not built")
        vec = self.vectors.get(term)
        if vec is None:
            raise KeyError(f"no vector for {term!r}")
        return set(self._lsh.query(self._minhash(vec)))

    # -------------------------
    # similarity
    # -------------------------
    def calculate_cosine_similarity(self, a: str, b: str) -> float:
        key = pair_key(a, b)
        cached = self._similarity_cache.get(key)
        if cached is not None:
            return cached
        va = self.vectors.get(a)
        vb = self.vectors.get(b)
        if va is None or vb is None:
            return 0.0
        na = float(np.linalg.norm(va))
        nb = float(np.linalg.norm(vb))
        cos = float(va.dot(vb) / (na * nb + 1e-12)) if na > 0 and nb > 0 else 0.0
        euclid = float(np.linalg.norm(va - vb))
        cost = self.cfg.euclid_cost_weight * euclid + self.cfg.length_cost_weight * _length_cost(a, b)
        wmd = 1.0 / (1.0 + cost)
        sim = self.cfg.cosine_weight * cos + self.cfg.distance_weight * wmd
        if not math.isfinite(sim):
            sim = 0.0
        sim = round(min(1.0, max(0.0, sim)), 6)
        self._similarity_cache.put(key, sim)
        return sim

    def average_similarity(self, term: str) -> float:
        if term not in self.vectors:
            return 0.0
        total, count = 0.0, 0
        for other in self.vectors:
            if other != term:
                total += self.calculate_cosine_similarity(term, other)
                count += 1
        return total / count if count else 0.0

    def dynamic_similarity_threshold(self, candidates: Iterable[str]) -> float:
        """Midpoint of median and third quartile of candidate average similarities, clamped."""
        sims = sorted(s for s in (self.average_similarity(c) for c in candidates) if s > 0)
        if not sims:
            return self.cfg.threshold_default
        n = len(sims)
        median = sims[int(math.floor(n * 0.5))]
        q3 = sims[min(n - 1, int(math.floor(n * 0.75)))]
        return max(self.cfg.threshold_min, min(self.cfg.threshold_max, (median + q3) / 2.0))

    def find_semantically_similar_terms(self,
                                        term: str,
                                        candidates: Iterable[str],
                                        threshold: Optional[float] = None) -> List[SimilarTerm]:
        pool = [c for c in dict.fromkeys(candidates) if c != term]
        limit = self.dynamic_similarity_threshold(pool) if threshold is None else float(threshold)

        lsh_hits: set = set()
        try:
            lsh_hits = self.lsh_candidates(term)
        except Exception as e:
            if is_development():
                logger.warning("[SemanticEngine] LSH query failed for %r, no bucket hits: %s", term, e)

        # every candidate is scored; LSH buckets only mark near duplicates
        out = []
        for cand in pool:
            sim = self.calculate_cosine_similarity(term, cand)
            if sim >= limit:
                out.append(SimilarTerm(term=cand, similarity=sim, lsh_hit=cand in lsh_hits))
        out.sort(key=lambda s: (-s.similarity, s.term))
        return out

    def select_semantically_appropriate_vocabulary(self,
                                                   input_terms: Iterable[str],
                                                   candidates: Iterable[str],
                                                   max_results: int = 5) -> CandidateList:
        """Candidates ranked by mean positive similarity to the input terms, dynamic-threshold filtered."""
        cands = list(dict.fromkeys(candidates))
        if not self.vectors:
            logger.warning("[SemanticEngine] no vectors generated, returning candidates unscored")
            return [(c, 0.0) for c in cands[:max_results]]
        inputs = list(input_terms)
        scored: CandidateList = []
        for cand in cands:
            sims = [s for s in (self.calculate_cosine_similarity(t, cand) for t in inputs) if s > 0]
            scored.append((cand, sum(sims) / len(sims) if sims else 0.0))
        scored.sort(key=lambda kv: (-kv[1], kv[0]))
        limit = self.dynamic_similarity_threshold(cands)
        return [(c, round(s, 6)) for c, s in scored if s >= limit][:max_results]

    # -------------------------
    # persistence layer
    # -------------------------
    def save_semantic_cache(self, path: str) -> bool:
        """Atomic save of vectors and profiles (tmp file then replace)."""
        dirname = os.path.dirname(path) or "."
        os.makedirs(dirname, exist_ok=True)
        tmp_fd, tmp_path = tempfile.mkstemp(prefix="semcache_", dir=dirname)
        payload = {
            "version": CACHE_VERSION,
            "dimensions": self.dimensions,
            "vectors": {t: v.tolist() for t, v in self.vectors.items()},
            "profiles": {t: [list(e) for e in entries] for t, entries in self.profiles.items()},
        }
        try:
            with os.fdopen(tmp_fd, "wb") as fh:
                pickle.dump(payload, fh)
            os.replace(tmp_path, path)
            Log.write(f"[SemanticEngine] semantic cache saved ({len(self.vectors)} vectors)")
            return True
        except Exception as e:
            logger.error("[SemanticEngine] failed to save semantic cache: %s", e)
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            return False

    def load_semantic_cache(self, path: str) -> bool:
        if not os.path.exists(path):
            logger.info("[SemanticEngine] no semantic cache at %s", path)
            return False
        try:
            with open(path, "rb") as fh:
                data = pickle.load(fh)
            if not isinstance(data, dict) or data.get("version") != CACHE_VERSION:
                raise ValueError("unsupported semantic cache format")
            vectors = {t: np.asarray(v, dtype=float) for t, v in data.get("vectors", {}).items()}
            lengths = {v.shape for v in vectors.values()}
            if len(lengths) > 1:
                raise ValueError("semantic cache vectors have mixed lengths")
        except Exception as e:
            logger.error("[SemanticEngine] corrupted semantic cache, ignoring: %s", e)
            return False
        self.vectors = vectors
        self.profiles = {t: [tuple(e) for e in entries] for t, entries in data.get("profiles", {}).items()}
        self.dimensions = int(data.get("dimensions", 0))
        self._similarity_cache.clear()
        self.rebuild_lsh_index()
        Log.write(f"[SemanticEngine] semantic cache loaded ({len(self.vectors)} vectors)")
        return True
