# tests/test_bandit.py
import asyncio
import json
import math
from unittest.mock import MagicMock

import pytest

from ngram_context.core.bandit import UCBVocabularyBandit
from ngram_context.core.kneser_ney import KneserNeySmoother
from ngram_context.core.ngram_model import NgramFrequencyModel
from ngram_context.core.pattern_ai import NgramContextPatternAI
from ngram_context.core.semantic_engine import DistributionalSemanticEngine
from ngram_context.core.vocabulary_selector import CandidateScore, VocabularySelector, normalize_ucb


def _selector(bandit):
    model = NgramFrequencyModel()
    return VocabularySelector(KneserNeySmoother(model), DistributionalSemanticEngine(), bandit=bandit)


# ---- UCB bandit ----

def test_unseen_arm_is_infinite():
    assert math.isinf(UCBVocabularyBandit().calculate_ucb_value("猫"))


def test_select_prefers_unseen_arms_in_order():
    b = UCBVocabularyBandit()
    assert b.select_vocabulary(["猫", "犬"]) == "猫"
    assert b.select_vocabulary(["猫", "犬"]) == "犬"
    assert b.total_selections == 2
    assert b.select_vocabulary([]) is None


def test_ucb_value_after_rewards():
    b = UCBVocabularyBandit()
    b.select_vocabulary(["猫"])
    b.select_vocabulary(["犬"])
    b.update_rewards("猫", 1.0)
    expected = 1.0 + math.sqrt(2) * math.sqrt(math.log(2) / 1)
    assert b.calculate_ucb_value("猫") == pytest.approx(expected)
    assert b.average_reward("猫") == 1.0
    assert b.average_reward("鳥") == 0.0


def test_rewards_are_clamped():
    b = UCBVocabularyBandit()
    b.select_vocabulary(["猫"])
    b.update_rewards("猫", 5.0)
    b.update_rewards("猫", -3.0)
    assert b.stats["猫"]["rewards"] == 1.0


def test_state_persists(tmp_path):
    path = str(tmp_path / "bandit.json")
    b = UCBVocabularyBandit(path)
    b.select_vocabulary(["猫"])
    b.update_rewards("猫", 0.5)
    with open(path, encoding="utf-8") as fh:
        assert json.load(fh)["version"] == 1
    again = UCBVocabularyBandit(path)
    assert again.stats == {"猫": {"rewards": 0.5, "selections": 1}}
    assert again.total_selections == 1


def test_corrupt_state_starts_fresh(tmp_path):
    path = tmp_path / "bandit.json"
    path.write_text("{", encoding="utf-8")
    b = UCBVocabularyBandit(str(path))
    assert b.stats == {}
    assert b.total_selections == 0


# ---- normalization ----

def test_normalize_replaces_infinity():
    normalized, replacement = normalize_ucb({"猫": math.inf, "犬": 2.0, "鳥": 1.0}, selected="鳥")
    assert replacement == pytest.approx(3.0)
    assert normalized["猫"] == pytest.approx(0.75)
    assert normalized["犬"] == pytest.approx(0.5)
    assert normalized["鳥"] == 1.0


def test_normalize_without_finite_values():
    normalized, replacement = normalize_ucb({"猫": math.inf, "犬": math.nan}, selected=None)
    assert replacement == 1.0
    assert normalized == {"猫": 1.0, "犬": 1.0}


# ---- selector ----

def test_infinite_ucb_candidate_gets_finite_score():
    values = {"猫": math.inf, "犬": 0.8, "鳥": 0.4}
    bandit = MagicMock()
    bandit.calculate_ucb_value.side_effect = lambda term: values[term]
    bandit.select_vocabulary.return_value = "犬"

    result = asyncio.run(_selector(bandit).select(["好き"], ["猫", "犬", "鳥"]))

    assert result.selected_term == "犬"
    scores = {c.term: c for c in result.results}
    max_finite = max(v for v in values.values() if math.isfinite(v))
    for c in result.results:
        assert math.isfinite(c.hybrid_score)
        assert 0.0 <= c.bandit_score <= 1.0
        assert c.hybrid_score <= 1.5 * max_finite
    assert scores["猫"].raw_ucb is None
    assert scores["猫"].bandit_score == pytest.approx(0.75)
    assert result.metadata["ucb_replacement"] == pytest.approx(1.2)
    assert result.metadata["bandit_enabled"] is True


def test_real_bandit_with_untried_arms():
    bandit = UCBVocabularyBandit()
    bandit.stats = {"犬": {"rewards": 0.5, "selections": 2}}
    bandit.total_selections = 2
    result = asyncio.run(_selector(bandit).select(["好き"], ["猫", "犬"]))
    assert result.selected_term == "猫"
    assert all(math.isfinite(c.hybrid_score) for c in result.results)
    assert result.results[0].term == "猫"


def test_weight_override():
    values = {"猫": 0.2, "犬": 0.8}
    bandit = MagicMock()
    bandit.calculate_ucb_value.side_effect = lambda term: values[term]
    bandit.select_vocabulary.return_value = "犬"
    result = asyncio.run(_selector(bandit).select(["好き"], ["猫", "犬"], {"bandit_weight": 1.0}))
    assert result.metadata["weights"]["bandit"] == 1.0
    for c in result.results:
        assert c.hybrid_score == c.bandit_score


def test_bandit_failure_falls_back_to_best_contextual_fit():
    bandit = MagicMock()
    bandit.calculate_ucb_value.return_value = 0.5
    bandit.select_vocabulary.side_effect = RuntimeError("bandit offline")
    result = asyncio.run(_selector(bandit).select(["好き"], ["猫", "犬"]))
    assert result.selected_term in ("猫", "犬")


def test_without_bandit_uses_semantic_ranking():
    result = asyncio.run(_selector(None).select(["好き"], ["猫", "犬"]))
    assert result.metadata["bandit_enabled"] is False
    assert result.selected_term == "猫"
    assert [c.term for c in result.results] == ["猫", "犬"]


def test_debug_contributions():
    c = CandidateScore(term="猫", hybrid_score=0.74, bandit_score=1.0, semantic_score=0.5, contextual_score=0.2)
    parts = VocabularySelector.debug_contributions(c, {"bandit": 0.6, "semantic": 0.4, "semantic_share": 0.5})
    assert parts["bandit"] == pytest.approx(0.6)
    assert parts["semantic"] == pytest.approx(0.1)
    assert parts["contextual"] == pytest.approx(0.04)
    assert parts["final"] == pytest.approx(0.74)


def test_facade_feedback_reaches_bandit():
    bandit = UCBVocabularyBandit()
    ai = NgramContextPatternAI(bandit=bandit)
    selection = asyncio.run(ai.select_optimal_vocabulary_with_bandit(["猫"], ["好き", "嫌い"]))
    ai.record_vocabulary_feedback(selection.selected_term, 1.0)
    assert bandit.average_reward(selection.selected_term) == 1.0
    assert selection.to_dict()["selectedTerm"] == selection.selected_term
