# ngram_context/utils/__init__.py
