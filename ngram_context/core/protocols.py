# ngram_context/core/protocols.py
"""
Protocol interfaces for the collaborators NgramContextPatternAI talks to.

Only the methods the core calls are listed. Any method may be implemented sync or
async; the core awaits results that are awaitable.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, runtime_checkable
from typing_extensions import TypedDict


# Typed structures used across components ------------------------------------

class EnhancedTerm(TypedDict, total=False):
    """One analyzed token: {"surface": "猫", "base_form": "猫", "pos": "名詞", ...}"""
    surface: str
    base_form: str
    pos: str
    pos_detail_1: str
    pos_detail_2: str


class AnalysisResult(TypedDict):
    enhanced_terms: List[EnhancedTerm]


class Relation(TypedDict, total=False):
    term: str
    strength: float
    count: float


class SignificanceResult(TypedDict, total=False):
    is_significant: bool
    confidence: float


# Protocols ------------------------------------------------------------------

@runtime_checkable
class MorphologicalAnalyzer(Protocol):
    def process_text(self, text: str) -> AnalysisResult:
        ...


@runtime_checkable
class NgramStore(Protocol):
    """Persistence for the n-gram snapshot document ({"version", "payload"})."""

    def load_ngram_data(self) -> Optional[Dict[str, Any]]:
        ...

    def save_ngram_data(self, data: Dict[str, Any]) -> Any:
        ...


@runtime_checkable
class RelationshipSource(Protocol):
    def get_user_specific_relations(self, user: str = "default") -> Mapping[str, Iterable[Relation]]:
        ...


@runtime_checkable
class DictionaryEnhancer(Protocol):
    """Synonym network and association statistics, used only to bias fallback choices."""

    def synonyms(self, term: str) -> Iterable[str]:
        ...

    def calculate_pmi(self, term1: str, term2: str) -> float:
        ...

    def calculate_statistical_significance(self, term1: str, term2: str) -> SignificanceResult:
        ...


@runtime_checkable
class VocabularyBandit(Protocol):
    def select_vocabulary(self, candidates: Iterable[str]) -> Optional[str]:
        ...

    def calculate_ucb_value(self, term: str) -> float:
        ...
