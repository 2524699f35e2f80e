# ngram_context/context/__init__.py
# text cleanup, tokenization and morphological analysis

from .normalizer import clean_text  # strips URLs, paths and symbol runs
from .tokenizer import simple_tokenize, filter_valid_tokens, is_valid_ngram
from .analyzer import FugashiAnalyzer, analyze_terms, analyze_tokens
from .scorers import analyze_morphological_features, morphological_suitability

__all__ = [
    "clean_text",
    "simple_tokenize",
    "filter_valid_tokens",
    "is_valid_ngram",
    "FugashiAnalyzer",
    "analyze_terms",
    "analyze_tokens",
    "analyze_morphological_features",
    "morphological_suitability",
]
