# ngram_context/context/scorers.py
# part-of-speech heuristics used to choose fallback candidates when statistics are thin

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ngram_context.utils.async_runner import maybe_await

logger = logging.getLogger(__name__)

# UniDic / IPADIC major classes
POS_VERB = "動詞"
POS_NOUN = "名詞"
POS_PRONOUN = "代名詞"
POS_ADJECTIVE = "形容詞"
POS_PARTICLE = "助詞"
POS_AUXILIARY = "助動詞"
ADVERBIAL_NOUN = "副詞可能"

FEATURE_KEYS = ("interrogative", "temporal", "verb", "adjective", "noun", "particle", "auxiliary")


def _details(term: Mapping[str, str]):
    return (term.get("pos_detail_1", ""), term.get("pos_detail_2", ""))


def is_interrogative(term: Mapping[str, str]) -> bool:
    return term.get("pos") == POS_PRONOUN or term.get("pos_detail_1") == POS_PRONOUN


def is_temporal(term: Mapping[str, str]) -> bool:
    return term.get("pos") == POS_NOUN and ADVERBIAL_NOUN in _details(term)


def analyze_morphological_features(terms: Iterable[Mapping[str, str]]) -> Dict[str, Any]:
    """
    Count the part-of-speech classes in an analyzed input.
    Returns {"interrogative": n, "temporal": n, ..., "total_tokens": n, "terms": [...]}.
    """
    counts: Counter = Counter()
    base_forms: List[str] = []
    total = 0
    for term in terms:
        total += 1
        base_forms.append(term.get("base_form") or term.get("surface") or "")
        pos = term.get("pos", "")
        if is_interrogative(term):
            counts["interrogative"] += 1
        if is_temporal(term):
            counts["temporal"] += 1
        if pos == POS_VERB:
            counts["verb"] += 1
        elif pos == POS_ADJECTIVE:
            counts["adjective"] += 1
        elif pos == POS_NOUN:
            counts["noun"] += 1
        elif pos == POS_PARTICLE:
            counts["particle"] += 1
        elif pos == POS_AUXILIARY:
            counts["auxiliary"] += 1
    features: Dict[str, Any] = {k: counts.get(k, 0) for k in FEATURE_KEYS}
    features["total_tokens"] = total
    features["terms"] = [t for t in base_forms if t]
    return features


def has_signal(features: Optional[Mapping[str, Any]]) -> bool:
    return bool(features) and any(features.get(k, 0) for k in FEATURE_KEYS)


async def _enhancer_bonus(input_terms: List[str], cand_terms: List[str], enhancer: Any) -> float:
    """Synonym overlap, PMI and significance bonuses from the dictionary enhancer."""
    if enhancer is None or not input_terms or not cand_terms:
        return 0.0
    bonus = 0.0
    try:
        synonyms = set()
        for t in input_terms:
            synonyms.update(await maybe_await(enhancer.synonyms(t)) or ())
        if synonyms:
            overlap = sum(1 for c in cand_terms if c in synonyms)
            bonus += 0.3 * (overlap / len(cand_terms))

        best_pmi = 0.0
        best_conf = 0.0
        for a in input_terms:
            for b in cand_terms:
                pmi = float(await maybe_await(enhancer.calculate_pmi(a, b)) or 0.0)
                best_pmi = max(best_pmi, pmi)
                sig = await maybe_await(enhancer.calculate_statistical_significance(a, b)) or {}
                if sig.get("is_significant"):
                    best_conf = max(best_conf, float(sig.get("confidence", 0.0)))
        if best_pmi > 0:
            bonus += min(0.2, best_pmi * 0.05)
        bonus += 0.1 * best_conf
    except Exception as e:
        logger.debug("[Scorers] dictionary enhancer failed: %s", e)
    return bonus


async def morphological_suitability(cand_terms: List[Mapping[str, str]],
                                    features: Mapping[str, Any],
                                    enhancer: Any = None) -> float:
    """Score how well an analyzed candidate n-gram fits the input's part-of-speech profile."""
    if not cand_terms:
        return 0.0
    pos = [t.get("pos", "") for t in cand_terms]
    score = 0.0
    if features.get("interrogative"):
        if POS_VERB in pos:
            score += 0.3
        if POS_AUXILIARY in pos:
            score += 0.2
    if features.get("temporal"):
        if any(is_temporal(t) for t in cand_terms):
            score += 0.3
        if POS_VERB in pos:
            score += 0.1
    if features.get("noun") and POS_PARTICLE in pos:
        score += 0.1
    if features.get("verb") and POS_AUXILIARY in pos:
        score += 0.2

    base_forms = [t.get("base_form") or t.get("surface") or "" for t in cand_terms]
    score += await _enhancer_bonus(list(features.get("terms", [])), [b for b in base_forms if b], enhancer)
    return round(score, 6)
