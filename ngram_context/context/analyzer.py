# ngram_context/context/analyzer.py
"""
Morphological analysis adapter.

FugashiAnalyzer wraps a fugashi (MeCab + UniDic) tagger and returns the
"enhanced terms" shape the rest of the package consumes:

    {"enhanced_terms": [{"surface", "base_form", "pos", "pos_detail_1", "pos_detail_2"}]}

analyze_tokens() is what callers use: it runs any analyzer (sync or async) and falls
back to whitespace splitting when there is no analyzer or it fails.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ngram_context.context.tokenizer import simple_tokenize
from ngram_context.utils.async_runner import maybe_await

logger = logging.getLogger(__name__)

Term = Dict[str, str]


class FugashiAnalyzer:
    """Lazy fugashi tagger. The dictionary is loaded on first use."""

    def __init__(self, tagger_args: str = ""):
        self.tagger_args = tagger_args
        self._tagger = None

    def _get_tagger(self):
        if self._tagger is None:
            from fugashi import Tagger

            self._tagger = Tagger(self.tagger_args)
            logger.info("[FugashiAnalyzer] tagger loaded")
        return self._tagger

    @staticmethod
    def _base_form(node) -> str:
        lemma = getattr(node.feature, "lemma", None)
        if not lemma or lemma == "*":
            return node.surface
        # UniDic lemmas of loanwords carry the origin, e.g. "パン-pão"
        return lemma.split("-", 1)[0] or node.surface

    def process_text(self, text: str) -> Dict[str, List[Term]]:
        terms: List[Term] = []
        if not text:
            return {"enhanced_terms": terms}
        for node in self._get_tagger()(text):
            if not node.surface:
                continue
            feat = node.feature
            terms.append({
                "surface": node.surface,
                "base_form": self._base_form(node),
                "pos": getattr(feat, "pos1", "") or "",
                "pos_detail_1": getattr(feat, "pos2", "") or "",
                "pos_detail_2": getattr(feat, "pos3", "") or "",
            })
        return {"enhanced_terms": terms}


def whitespace_terms(text: str) -> List[Term]:
    return [
        {"surface": t, "base_form": t, "pos": "", "pos_detail_1": "", "pos_detail_2": ""}
        for t in simple_tokenize(text)
    ]


async def analyze_terms(text: str, analyzer: Optional[Any]) -> List[Term]:
    """Enhanced terms for text, whitespace fallback when the analyzer is missing or fails."""
    if analyzer is None:
        return whitespace_terms(text)
    try:
        result = await maybe_await(analyzer.process_text(text))
        terms = (result or {}).get("enhanced_terms")
        if terms is None:
            raise ValueError("analyzer result has no enhanced_terms")
        return list(terms)
    except Exception as e:
        logger.warning("[Analyzer] morphological analysis failed, using whitespace split: %s", e)
        return whitespace_terms(text)


async def analyze_tokens(text: str, analyzer: Optional[Any]) -> List[str]:
    """Base-form tokens for text (surface when no base form is known)."""
    terms = await analyze_terms(text, analyzer)
    out = []
    for term in terms:
        tok = term.get("base_form") or term.get("surface") or ""
        if tok and tok != "*":
            out.append(tok)
    return out
