# config_manager.py - engine configuration: named defaults, JSON overrides, seeded randomization

from __future__ import annotations

import dataclasses
import json
import logging
import os
import random
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from ngram_context.core.context_predictor import PredictorConfig
from ngram_context.core.lexicon import LexiconConfig
from ngram_context.core.ngram_model import NgramConfig
from ngram_context.core.semantic_engine import SemanticConfig
from ngram_context.core.vocabulary_selector import SelectionConfig

logger = logging.getLogger(__name__)

RANGE_SUFFIX = "_range"


class ConfigError(ValueError):
    """Raised for unknown sections/keys or values of the wrong type."""


@dataclass(frozen=True)
class EngineConfig:
    ngram: NgramConfig = field(default_factory=NgramConfig)
    lexicon: LexiconConfig = field(default_factory=LexiconConfig)
    predictor: PredictorConfig = field(default_factory=PredictorConfig)
    semantic: SemanticConfig = field(default_factory=SemanticConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    seed: int = 42
    randomize: bool = False  # draw *_range governed weights from random.Random(seed)
    autosave: bool = True


SECTIONS = ("ngram", "lexicon", "predictor", "semantic", "selection")


def randomize_section(section: Any, rng: random.Random) -> Any:
    """Replace every field that has a sibling "<name>_range" with a uniform draw inside it."""
    names = [f.name for f in dataclasses.fields(section)]
    updates: Dict[str, float] = {}
    for name in names:
        if name.endswith(RANGE_SUFFIX) or (name + RANGE_SUFFIX) not in names:
            continue
        lo, hi = getattr(section, name + RANGE_SUFFIX)
        updates[name] = round(rng.uniform(float(lo), float(hi)), 6)
    return dataclasses.replace(section, **updates) if updates else section


def resolve(config: EngineConfig) -> EngineConfig:
    """Apply seeded randomization when requested. Same config and seed give the same result."""
    if not config.randomize:
        return config
    rng = random.Random(config.seed)
    # fixed section order keeps draws reproducible
    return dataclasses.replace(
        config,
        **{name: randomize_section(getattr(config, name), rng) for name in SECTIONS},
    )


def _coerce(section_cls: Any, current: Any, key: str, value: Any) -> Any:
    default = getattr(current, key)
    if isinstance(default, tuple):
        if not isinstance(value, (list, tuple)) or len(value) != len(default):
            raise ConfigError(f"{section_cls.__name__}.{key}: expected a {len(default)}-item list")
        return tuple(float(v) for v in value)
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigError(f"{section_cls.__name__}.{key}: expected true/false")
        return value
    try:
        return type(default)(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{section_cls.__name__}.{key}: cannot use {value!r}") from None


def config_from_dict(data: Mapping[str, Any]) -> EngineConfig:
    base = EngineConfig()
    top: Dict[str, Any] = {}
    for key, value in (data or {}).items():
        if key in SECTIONS:
            if not isinstance(value, Mapping):
                raise ConfigError(f"section {key!r} must be an object")
            current = getattr(base, key)
            known = {f.name for f in dataclasses.fields(current)}
            unknown = set(value) - known
            if unknown:
                raise ConfigError(f"unknown keys in {key!r}: {sorted(unknown)}")
            top[key] = dataclasses.replace(
                current, **{k: _coerce(type(current), current, k, v) for k, v in value.items()}
            )
        elif key in ("seed", "randomize", "autosave"):
            top[key] = _coerce(EngineConfig, base, key, value)
        else:
            raise ConfigError(f"unknown config key {key!r}")
    return dataclasses.replace(base, **top)


def config_to_dict(config: EngineConfig) -> Dict[str, Any]:
    out = dataclasses.asdict(config)
    # tuples become lists in JSON anyway; keep the output stable
    for name in SECTIONS:
        out[name] = {k: list(v) if isinstance(v, tuple) else v for k, v in out[name].items()}
    return out


def load_config(path: Optional[str] = None) -> EngineConfig:
    """Defaults overlaid with the JSON file at path (if it exists)."""
    if not path or not os.path.exists(path):
        return EngineConfig()
    try:
        with open(path, "r", encoding="utf8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    config = config_from_dict(data)
    logger.info("[Config] loaded %s", path)
    return config


def save_config(config: EngineConfig, path: str) -> None:
    dirname = os.path.dirname(path) or "."
    os.makedirs(dirname, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix="config_", dir=dirname)
    with os.fdopen(fd, "w", encoding="utf8") as f:
        json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)
    os.replace(tmp, path)
