# tests/test_config_manager.py
import json

import pytest

from ngram_context.core.ngram_model import NgramConfig
from ngram_context.utils.config_manager import (
    ConfigError,
    EngineConfig,
    config_from_dict,
    load_config,
    resolve,
    save_config,
)


def test_defaults_are_named_constants():
    cfg = EngineConfig()
    assert cfg.ngram.max_order == 3
    assert cfg.predictor.cache_size == 1000
    assert cfg.selection.infinity_multiplier == 1.5
    assert resolve(cfg) is cfg


def test_overrides_from_dict():
    cfg = config_from_dict({"ngram": {"max_order": 4}, "semantic": {"window_size": "3"}, "seed": 7})
    assert cfg.ngram.max_order == 4
    assert cfg.semantic.window_size == 3
    assert cfg.seed == 7
    assert cfg.lexicon == EngineConfig().lexicon


@pytest.mark.parametrize("data", [
    {"unknown": 1},
    {"ngram": {"nope": 1}},
    {"ngram": 5},
    {"ngram": {"max_order": "many"}},
    {"lexicon": {"use_bootstrap_fallbacks": "yes"}},
    {"ngram": {"connector_weight_range": [1.0]}},
])
def test_bad_config_is_rejected(data):
    with pytest.raises(ConfigError):
        config_from_dict(data)


def test_randomized_weights_are_reproducible():
    cfg = EngineConfig(randomize=True, seed=11)
    a, b = resolve(cfg), resolve(cfg)
    assert a == b
    lo, hi = NgramConfig().connector_weight_range
    assert lo <= a.ngram.connector_weight <= hi
    lo, hi = a.selection.bandit_weight_range
    assert lo <= a.selection.bandit_weight <= hi
    # fields without a range keep their defaults
    assert a.ngram.max_order == 3


def test_save_and_load_round_trip(tmp_path):
    path = str(tmp_path / "config.json")
    cfg = config_from_dict({"predictor": {"affinity_weight": 0.0}, "autosave": False})
    save_config(cfg, path)
    assert load_config(path) == cfg


def test_load_missing_file_gives_defaults(tmp_path):
    assert load_config(str(tmp_path / "absent.json")) == EngineConfig()
    assert load_config(None) == EngineConfig()


def test_load_invalid_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_saved_file_is_plain_json(tmp_path):
    path = tmp_path / "config.json"
    save_config(EngineConfig(), str(path))
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["ngram"]["connector_weight_range"] == [1.0, 1.8]
