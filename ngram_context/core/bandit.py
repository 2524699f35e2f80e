# ngram_context/core/bandit.py
"""
UCBVocabularyBandit - UCB1 multi-armed bandit over vocabulary items.

- API used by the vocabulary selector:
    select_vocabulary(candidates) -> term
    calculate_ucb_value(term) -> float (inf for never-selected arms)
    update_rewards(term, reward)
- Arm stats are {rewards, selections}; rewards are clamped to [0, 1]
- Optional atomic JSON persistence of arm stats
"""

from __future__ import annotations

import json
import logging
import math
import os
import threading
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

EXPLORATION = math.sqrt(2)
STATE_VERSION = 1


class UCBVocabularyBandit:
    def __init__(self, path: Optional[str] = None, exploration: float = EXPLORATION):
        self.path = path
        self.exploration = float(exploration)
        self.stats: Dict[str, Dict[str, float]] = {}
        self.total_selections = 0
        self._lock = threading.Lock()
        if path:
            self._load()

    # -------------------------
    # scoring
    # -------------------------
    def calculate_ucb_value(self, term: str) -> float:
        arm = self.stats.get(term)
        if not arm or arm["selections"] <= 0:
            return math.inf
        average = arm["rewards"] / arm["selections"]
        bonus = self.exploration * math.sqrt(math.log(max(1, self.total_selections)) / arm["selections"])
        return average + bonus

    def select_vocabulary(self, candidates: Iterable[str]) -> Optional[str]:
        """Pick the arm with the highest UCB value (first wins ties) and count the pull."""
        cands: List[str] = [c for c in candidates if c]
        if not cands:
            return None
        best, best_value = cands[0], -math.inf
        for term in cands:
            value = self.calculate_ucb_value(term)
            if value > best_value:
                best, best_value = term, value
        with self._lock:
            arm = self.stats.setdefault(best, {"rewards": 0.0, "selections": 0})
            arm["selections"] += 1
            self.total_selections += 1
        return best

    def update_rewards(self, term: str, reward: float) -> None:
        reward = min(1.0, max(0.0, float(reward)))
        with self._lock:
            arm = self.stats.setdefault(term, {"rewards": 0.0, "selections": 0})
            arm["rewards"] += reward
        if self.path:
            self.save()

    def average_reward(self, term: str) -> float:
        arm = self.stats.get(term)
        if not arm or arm["selections"] <= 0:
            return 0.0
        return arm["rewards"] / arm["selections"]

    # -------------------------
    # persistence
    # -------------------------
    def _load(self) -> None:
        if not self.path or not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
            arms = data.get("arms", [])
            self.stats = {
                str(term): {"rewards": float(s.get("rewards", 0.0)), "selections": int(s.get("selections", 0))}
                for term, s in arms
            }
            self.total_selections = int(data.get("total_selections", sum(s["selections"] for s in self.stats.values())))
            logger.info("[UCBVocabularyBandit] loaded %d arms", len(self.stats))
        except Exception as e:
            logger.warning("[UCBVocabularyBandit] failed to load state, starting fresh: %s", e)
            self.stats = {}
            self.total_selections = 0

    def save(self) -> None:
        if not self.path:
            return
        with self._lock:
            try:
                dirname = os.path.dirname(self.path)
                if dirname:
                    os.makedirs(dirname, exist_ok=True)
                payload = {
                    "version": STATE_VERSION,
                    "total_selections": self.total_selections,
                    "arms": [[t, s] for t, s in self.stats.items()],
                }
                tmp_path = self.path + ".tmp"
                with open(tmp_path, "w", encoding="utf-8") as fh:
                    json.dump(payload, fh, ensure_ascii=False, indent=2)
                os.replace(tmp_path, self.path)
            except Exception as e:
                logger.warning("[UCBVocabularyBandit] save failed: %s", e)

    def reset(self) -> None:
        with self._lock:
            self.stats.clear()
            self.total_selections = 0
