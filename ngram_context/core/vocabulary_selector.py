# ngram_context/core/vocabulary_selector.py
"""
VocabularySelector - bandit-assisted vocabulary choice.

Signals per candidate term:
 - contextual: best Kneser-Ney probability of (trailing context n-gram + term), weighted by order
 - semantic: mean similarity to the context tokens (distributional vectors)
 - bandit: UCB value of the arm, normalized to [0, 1]

UCB values are infinite for arms never pulled; those are replaced by 1.5x the largest finite
value among the candidates (1.0 when there is none) before normalization.

    hybrid = bandit_w * bandit + (1 - bandit_w) * (semantic_share * semantic + (1 - semantic_share) * contextual)

Weights come from SelectionConfig named defaults; a seeded randomized config draws them inside
the *_range bounds. Ordering is deterministic: score desc, then term asc.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ngram_context.core.kneser_ney import KneserNeySmoother
from ngram_context.core.semantic_engine import DistributionalSemanticEngine
from ngram_context.utils.async_runner import maybe_await

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionConfig:
    bandit_weight: float = 0.6
    bandit_weight_range: Tuple[float, float] = (0.4, 0.8)
    semantic_share: float = 0.5
    semantic_share_range: Tuple[float, float] = (0.4, 0.6)
    use_semantic_filtering: bool = True
    max_results: int = 10
    infinity_multiplier: float = 1.5
    precision: int = 4


@dataclass
class CandidateScore:
    term: str
    hybrid_score: float
    bandit_score: float = 0.0
    raw_ucb: Optional[float] = None
    semantic_score: float = 0.0
    contextual_score: float = 0.0
    contextual_fit: float = 0.0
    order: int = 0
    selected: bool = False


@dataclass
class VocabularySelection:
    selected_term: Optional[str]
    results: List[CandidateScore] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selectedTerm": self.selected_term,
            "results": [asdict(r) for r in self.results],
            "metadata": dict(self.metadata),
        }


def normalize_ucb(raw: Mapping[str, float], selected: Optional[str], multiplier: float = 1.5) -> Tuple[Dict[str, float], float]:
    """
    Map raw UCB values to [0, 1]. Non-finite values become multiplier * max finite value
    (1.0 without finite values). The selected arm scores 1.0.
    Returns (normalized, replacement used for non-finite values).
    """
    finite = [v for v in raw.values() if v is not None and math.isfinite(v)]
    max_finite = max(finite) if finite else 0.0
    replacement = multiplier * max_finite if max_finite > 0 else 1.0
    out: Dict[str, float] = {}
    for term, v in raw.items():
        value = v if (v is not None and math.isfinite(v)) else replacement
        if term == selected:
            out[term] = 1.0
        elif max_finite > 0:
            out[term] = min(1.0, max(0.0, value / (2.0 * max_finite)))
        else:
            out[term] = min(1.0, max(0.0, value))
    return out, replacement


class VocabularySelector:
    def __init__(self,
                 smoother: KneserNeySmoother,
                 semantic: DistributionalSemanticEngine,
                 config: Optional[SelectionConfig] = None,
                 bandit: Any = None,
                 min_order: int = 1,
                 max_order: int = 3):
        self.smoother = smoother
        self.semantic = semantic
        self.cfg = config or SelectionConfig()
        self.bandit = bandit
        self.min_order = max(1, int(min_order))
        self.max_order = max(self.min_order, int(max_order))

    # ---------------------------------
    # contextual signal
    # ---------------------------------
    def contextual_candidates(self, context_tokens: Sequence[str], candidates: Sequence[str]) -> List[CandidateScore]:
        out: List[CandidateScore] = []
        for term in dict.fromkeys(candidates):
            if not term:
                continue
            best, best_order = 0.0, 0
            for n in range(self.min_order, self.max_order + 1):
                if len(context_tokens) < n:
                    break
                extended = " ".join(list(context_tokens[-n:]) + [term])
                p = self.smoother.probability(extended, n + 1)
                if p > best:
                    best, best_order = p, n + 1
            out.append(CandidateScore(
                term=term,
                hybrid_score=0.0,
                contextual_score=round(best, 6),
                contextual_fit=round(best * best_order, 6),
                order=best_order,
            ))
        out.sort(key=lambda c: (-c.contextual_fit, c.term))
        return out

    def _weights(self, options: Mapping[str, Any]) -> Tuple[float, float, float]:
        bw = float(options.get("bandit_weight", self.cfg.bandit_weight))
        sw = float(options.get("semantic_weight", 1.0 - bw))
        total = (bw + sw) or 1.0
        bw, sw = bw / total, sw / total
        share = float(options.get("semantic_share", self.cfg.semantic_share))
        share = min(1.0, max(0.0, share))
        return bw, sw, share

    # ---------------------------------
    # public API
    # ---------------------------------
    async def select(self,
                     context_tokens: Sequence[str],
                     candidates: Sequence[str],
                     options: Optional[Mapping[str, Any]] = None) -> VocabularySelection:
        options = dict(options or {})
        max_results = int(options.get("max_results", self.cfg.max_results))
        use_semantic = bool(options.get("use_semantic_filtering", self.cfg.use_semantic_filtering))

        if self.bandit is None:
            return self._semantic_only(context_tokens, candidates, max_results)

        scored = self.contextual_candidates(context_tokens, candidates)[:max_results]
        if not scored:
            return VocabularySelection(None, [], {"bandit_enabled": True, "candidate_count": 0})
        terms = [c.term for c in scored]

        semantic: Dict[str, float] = {}
        if use_semantic and self.semantic.vectors:
            semantic = dict(self.semantic.select_semantically_appropriate_vocabulary(
                context_tokens, terms, max_results=len(terms)))

        raw: Dict[str, float] = {}
        for term in terms:
            try:
                raw[term] = float(await maybe_await(self.bandit.calculate_ucb_value(term)))
            except Exception as e:
                logger.debug("[VocabularySelector] ucb lookup failed for %r: %s", term, e)
                raw[term] = math.nan
        try:
            selected = await maybe_await(self.bandit.select_vocabulary(terms))
        except Exception as e:
            logger.warning("[VocabularySelector] bandit selection failed, using best contextual fit: %s", e)
            selected = terms[0]

        normalized, replacement = normalize_ucb(raw, selected, self.cfg.infinity_multiplier)
        bw, sw, share = self._weights(options)
        p = self.cfg.precision
        for c in scored:
            c.raw_ucb = raw[c.term] if math.isfinite(raw[c.term]) else None
            c.bandit_score = round(normalized[c.term], p)
            c.semantic_score = round(semantic.get(c.term, 0.0), p)
            c.selected = c.term == selected
            blended = share * c.semantic_score + (1.0 - share) * c.contextual_score
            c.hybrid_score = round(bw * c.bandit_score + sw * blended, p)
        scored.sort(key=lambda c: (-c.hybrid_score, c.term))

        return VocabularySelection(
            selected_term=selected,
            results=scored,
            metadata={
                "bandit_enabled": True,
                "candidate_count": len(scored),
                "semantic_filtering": bool(semantic),
                "weights": {"bandit": round(bw, p), "semantic": round(sw, p), "semantic_share": round(share, p)},
                "ucb_replacement": replacement,
            },
        )

    def _semantic_only(self, context_tokens: Sequence[str], candidates: Sequence[str], max_results: int) -> VocabularySelection:
        ranked = self.semantic.select_semantically_appropriate_vocabulary(context_tokens, candidates, max_results)
        results = [CandidateScore(term=t, hybrid_score=s, semantic_score=s) for t, s in ranked]
        return VocabularySelection(
            selected_term=results[0].term if results else None,
            results=results,
            metadata={"bandit_enabled": False, "candidate_count": len(results)},
        )

    @staticmethod
    def debug_contributions(candidate: CandidateScore, weights: Mapping[str, float]) -> Dict[str, float]:
        """Per-signal weighted contributions of one scored candidate."""
        bw = float(weights.get("bandit", 0.0))
        sw = float(weights.get("semantic", 0.0))
        share = float(weights.get("semantic_share", 0.5))
        s = {
            "bandit": bw * candidate.bandit_score,
            "semantic": sw * share * candidate.semantic_score,
            "contextual": sw * (1.0 - share) * candidate.contextual_score,
        }
        s["final"] = sum(s.values())
        return s
