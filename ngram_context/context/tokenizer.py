# ngram_context/context/tokenizer.py
# whitespace tokenizer plus the validity rules applied to tokens and n-grams

import re
from typing import Iterable, List

_japanese_re = re.compile(r"[\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF]")
_url_like_re = re.compile(r"https?://|www\.")
_file_ext_re = re.compile(r"\.(?:js|ts|json|md|txt|html|css|py)\b", re.IGNORECASE)
_symbols_only_re = re.compile(r"^[\s\-_=+*#@$%^&|\\/<>()\[\]{}.,!?:;'\"`~\u3000-\u303F]+$")
_ascii_only_re = re.compile(r"^[\x00-\x7F]+$")


def simple_tokenize(s: str) -> List[str]:
    """Split on whitespace, dropping empty pieces."""
    if not s:
        return []
    return [t for t in s.split() if t.strip()]


def has_japanese(s: str) -> bool:
    return bool(s) and _japanese_re.search(s) is not None


def filter_valid_tokens(tokens: Iterable[str]) -> List[str]:
    """Keep tokens that carry at least one kana or kanji character."""
    out = []
    for t in tokens:
        if not t:
            continue
        t = t.strip()
        if t and has_japanese(t):
            out.append(t)
    return out


def is_valid_ngram(ngram: str, order: int) -> bool:
    """
    Reject n-grams that are noise rather than language:
      - wildcard, urls and file extensions
      - symbol-only or ascii-only strings without Japanese script
      - token count more than one away from the requested order
      - 3+ token n-grams repeating a single token
    """
    if not ngram or ngram == "*":
        return False
    if _url_like_re.search(ngram) or _file_ext_re.search(ngram):
        return False
    if _symbols_only_re.match(ngram):
        return False
    if _ascii_only_re.match(ngram) and not has_japanese(ngram):
        return False
    tokens = ngram.split()
    if abs(len(tokens) - order) > 1:
        return False
    if len(tokens) >= 3 and len(set(tokens)) == 1:
        return False
    return True
