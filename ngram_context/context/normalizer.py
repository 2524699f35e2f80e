# ngram_context/context/normalizer.py
# strips urls, paths and code-like noise before learning

import re

_url_re = re.compile(r"https?://[^\s]+")
_www_re = re.compile(r"www\.[^\s]+")
_code_path_re = re.compile(r"[a-zA-Z0-9/\\._-]+\.(?:js|ts|json|md|txt|html|css|py)\b", re.IGNORECASE)
_repo_path_re = re.compile(r"[a-zA-Z0-9_-]+/[a-zA-Z0-9_/-]+")
_long_alnum_re = re.compile(r"[a-zA-Z0-9_-]{8,}")
# kana, kanji, cjk punctuation, whitespace and basic sentence punctuation survive
_non_linguistic_re = re.compile(r"[^\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF\u3000-\u303F\s.,!?:;]")
_space_re = re.compile(r"\s+")


def clean_text(s: str) -> str:
    """Return text with urls, file/repo paths, identifier-like runs and symbols removed."""
    if not s:
        return ""
    s = _url_re.sub(" ", s)
    s = _www_re.sub(" ", s)
    s = _code_path_re.sub(" ", s)
    s = _repo_path_re.sub(" ", s)
    s = _long_alnum_re.sub(" ", s)
    s = _non_linguistic_re.sub("", s)
    # normalize weird whitespace
    return _space_re.sub(" ", s).strip()
