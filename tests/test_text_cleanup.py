# tests/test_text_cleanup.py
from ngram_context.context.normalizer import clean_text
from ngram_context.context.tokenizer import filter_valid_tokens, is_valid_ngram, simple_tokenize


def test_clean_text_strips_urls_and_paths():
    out = clean_text("猫 が https://example.com/x 好き src/app/main.js です")
    assert "http" not in out
    assert "src" not in out
    assert out.split() == ["猫", "が", "好き", "です"]


def test_clean_text_drops_identifier_runs_and_symbols():
    out = clean_text("猫 abcdefgh12345 ★☆ 犬")
    assert out == "猫 犬"


def test_clean_text_empty():
    assert clean_text("") == ""
    assert clean_text("https://example.com") == ""


def test_simple_tokenize_ignores_extra_whitespace():
    assert simple_tokenize("  猫   が\t好き ") == ["猫", "が", "好き"]
    assert simple_tokenize("") == []


def test_filter_valid_tokens_keeps_japanese_only():
    assert filter_valid_tokens(["猫", "。", "abc", "", "カメラ"]) == ["猫", "カメラ"]


def test_is_valid_ngram_rules():
    assert is_valid_ngram("猫 が", 2)
    assert not is_valid_ngram("*", 1)
    assert not is_valid_ngram("hello world", 2)  # ascii only
    assert not is_valid_ngram("README.md 猫", 2)
    assert not is_valid_ngram("猫 が 好き です", 2)  # too far from the order
    assert not is_valid_ngram("猫 猫 猫", 3)


def test_clean_text_keeps_japanese_before_a_path():
    assert clean_text("昨日の作業はsrc/app.py と 設定です") == "昨日の作業は と 設定です"
    assert clean_text("今日はapp.js 。") == "今日は 。"
