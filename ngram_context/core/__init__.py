"""
ngram_context.core

Contains:
 - n-gram frequency tables and learning (NgramFrequencyModel)
 - Kneser-Ney smoothing and TF-IDF (KneserNeySmoother)
 - statistically discovered word classes (StatisticalLexicon)
 - context prediction with fallback chain (ContextPredictor)
 - co-occurrence / distributional vectors (DistributionalSemanticEngine)
 - UCB bandit and bandit-assisted selection (UCBVocabularyBandit, VocabularySelector)
 - the facade tying them together (NgramContextPatternAI)
"""

from .ngram_model import NgramConfig, NgramFrequencyModel, NgramTables
from .kneser_ney import KneserNeySmoother
from .lexicon import LexiconConfig, StatisticalLexicon
from .context_predictor import ContextPrediction, ContextPredictor, PredictorConfig
from .semantic_engine import DistributionalSemanticEngine, SemanticConfig, SimilarTerm
from .bandit import UCBVocabularyBandit
from .vocabulary_selector import SelectionConfig, VocabularySelection, VocabularySelector
from .pattern_ai import NgramContextPatternAI

__all__ = [
    "NgramConfig",
    "NgramFrequencyModel",
    "NgramTables",
    "KneserNeySmoother",
    "LexiconConfig",
    "StatisticalLexicon",
    "ContextPrediction",
    "ContextPredictor",
    "PredictorConfig",
    "DistributionalSemanticEngine",
    "SemanticConfig",
    "SimilarTerm",
    "UCBVocabularyBandit",
    "SelectionConfig",
    "VocabularySelection",
    "VocabularySelector",
    "NgramContextPatternAI",
]
