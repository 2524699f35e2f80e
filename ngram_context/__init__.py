"""
ngram_context

Statistical context engine for Japanese text: an n-gram frequency model with
Kneser-Ney smoothing, context prediction with a tiered cold-start fallback,
distributional vectors with MinHash LSH lookups, and optional UCB bandit
vocabulary selection.
"""

from .core.pattern_ai import NgramContextPatternAI
from .core.context_predictor import ContextPrediction
from .utils.config_manager import EngineConfig, load_config

__all__ = ["NgramContextPatternAI", "ContextPrediction", "EngineConfig", "load_config"]

__version__ = "0.1.0"
