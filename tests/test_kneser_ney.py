# tests/test_kneser_ney.py
import math

import pytest

from ngram_context.core.kneser_ney import EPSILON, MAX_DISCOUNT, KneserNeySmoother
from ngram_context.core.ngram_model import NgramFrequencyModel


def _smoother(*docs):
    model = NgramFrequencyModel()
    for doc in docs:
        model.learn_tokens(doc.split())
    return KneserNeySmoother(model)


def test_unseen_ngram_on_empty_model_is_epsilon():
    kn = _smoother()
    p = kn.probability("never_seen_ngram_xyz", 2)
    assert p == EPSILON
    assert p > 0 and not math.isnan(p)


def test_discount_on_empty_table():
    assert _smoother().discount() == MAX_DISCOUNT


def test_discount_stays_in_range():
    kn = _smoother("猫 が 好き", "猫 が 好き", "猫 が 好き", "犬 も 好き")
    assert 0.5 <= kn.discount() <= 0.95


def test_bigram_probability_small_table():
    kn = _smoother("猫 が")
    # d = 0.95, main = 0.05, lambda = 0.95, continuation("が") = 1
    assert kn.probability("猫 が", 2) == pytest.approx(1.0)


def test_zero_prefix_backs_off_exactly():
    kn = _smoother("猫 が 好き", "犬 も 好き")
    assert kn.probability("鳥 が", 2) == kn.probability("が", 1)
    assert kn.probability("鳥 猫 が", 3) == kn.probability("猫 が", 2)


def test_order_is_clamped_to_token_count():
    kn = _smoother("猫 が 好き")
    assert kn.probability("猫 が", 5) == kn.probability("猫 が", 2)


@pytest.mark.parametrize("ngram,order", [
    ("猫", 1), ("猫 が", 2), ("猫 が 好き", 3), ("が 好き です", 3), ("", 1), ("未知 の 語", 3),
])
def test_probability_bounds(ngram, order):
    kn = _smoother("猫 が 好き です", "犬 も 好き です", "猫 も 犬 も")
    p = kn.probability(ngram, order)
    assert EPSILON <= p <= 1.0


def test_tfidf():
    kn = _smoother("猫 が", "犬 が")
    assert kn.tfidf("猫", ["猫", "が"]) == pytest.approx(0.5 * math.log(2), rel=1e-4)
    assert kn.tfidf("が", ["猫", "が"]) == 0.0  # in every document
    # df of a multi-token n-gram is the smallest token df
    assert kn.tfidf("猫 が", ["猫", "が"]) == pytest.approx(math.log(2), rel=1e-4)
    assert kn.tfidf("鳥", ["鳥"]) == 0.0
