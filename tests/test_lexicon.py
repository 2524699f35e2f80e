# tests/test_lexicon.py
from ngram_context.core.lexicon import (
    BOOTSTRAP_CONNECTORS,
    BOOTSTRAP_PARTICLES,
    LexiconConfig,
    StatisticalLexicon,
)
from ngram_context.core.ngram_model import NgramFrequencyModel


def test_cold_start_uses_bootstrap_lists():
    lex = StatisticalLexicon(NgramFrequencyModel())
    assert lex.logical_connectors() == list(BOOTSTRAP_CONNECTORS)
    assert lex.particles() == list(BOOTSTRAP_PARTICLES)


def test_bootstrap_can_be_disabled():
    lex = StatisticalLexicon(NgramFrequencyModel(), LexiconConfig(use_bootstrap_fallbacks=False))
    assert lex.logical_connectors() == []
    assert lex.common_words() == []
    assert lex.particles() == []


def test_common_words_are_discovered():
    model = NgramFrequencyModel()
    for _ in range(3):
        model.learn_tokens(["猫", "が", "好き"])
    model.learn_tokens(["犬", "も"])
    lex = StatisticalLexicon(model)
    words = lex.common_words()
    assert words[0] in ("が", "猫", "好き")
    assert "犬" in words


def test_discover_context_skips_particles():
    lex = StatisticalLexicon(NgramFrequencyModel())
    assert lex.discover_context(["が", "好き", "です"]) == "好き"
    assert lex.discover_context(["は", "猫"]) is None
    assert lex.discover_context([]) is None


def test_maybe_refresh_after_interval():
    model = NgramFrequencyModel()
    lex = StatisticalLexicon(model, LexiconConfig(refresh_interval=2))
    assert lex.common_words()  # bootstrap while empty
    model.learn_tokens(["猫", "が"])
    assert not lex.maybe_refresh()
    model.learn_tokens(["犬", "が"])
    assert lex.maybe_refresh()
    assert "犬" in lex.common_words()
