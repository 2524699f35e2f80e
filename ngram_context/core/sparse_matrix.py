# ngram_context/core/sparse_matrix.py
# symmetric term x term weight matrix stored sparsely (upper triangle only)

from __future__ import annotations

from typing import Dict, Iterator, List, Tuple

Triple = Tuple[str, str, float]


class SparseCooccurrenceMatrix:
    """
    Terms get integer ids on first sight. A pair is stored once under
    (min(id), max(id)), so get(a, b) == get(b, a).
    """

    def __init__(self) -> None:
        self._term_to_id: Dict[str, int] = {}
        self._id_to_term: List[str] = []
        self._rows: Dict[int, Dict[int, float]] = {}
        self._pairs = 0

    def _id(self, term: str) -> int:
        tid = self._term_to_id.get(term)
        if tid is None:
            tid = len(self._id_to_term)
            self._term_to_id[term] = tid
            self._id_to_term.append(term)
        return tid

    @staticmethod
    def _ordered(a: int, b: int) -> Tuple[int, int]:
        return (a, b) if a <= b else (b, a)

    def set(self, term1: str, term2: str, value: float) -> None:
        r, c = self._ordered(self._id(term1), self._id(term2))
        row = self._rows.setdefault(r, {})
        if c not in row:
            self._pairs += 1
        row[c] = float(value)

    def add(self, term1: str, term2: str, value: float) -> float:
        """Accumulate value into the pair and return the new weight."""
        r, c = self._ordered(self._id(term1), self._id(term2))
        row = self._rows.setdefault(r, {})
        if c not in row:
            self._pairs += 1
            row[c] = 0.0
        row[c] += float(value)
        return row[c]

    def get(self, term1: str, term2: str) -> float:
        a = self._term_to_id.get(term1)
        b = self._term_to_id.get(term2)
        if a is None or b is None:
            return 0.0
        r, c = self._ordered(a, b)
        return self._rows.get(r, {}).get(c, 0.0)

    def terms(self) -> List[str]:
        return list(self._id_to_term)

    def neighbours(self, term: str) -> Dict[str, float]:
        """All co-occurring terms of term, both triangle halves."""
        tid = self._term_to_id.get(term)
        if tid is None:
            return {}
        out = {self._id_to_term[c]: v for c, v in self._rows.get(tid, {}).items()}
        for r, row in self._rows.items():
            if r != tid and tid in row:
                out[self._id_to_term[r]] = row[tid]
        return out

    @property
    def size(self) -> int:
        """Number of stored pairs."""
        return self._pairs

    @property
    def vocabulary_size(self) -> int:
        return len(self._id_to_term)

    def clear(self) -> None:
        self._term_to_id.clear()
        self._id_to_term.clear()
        self._rows.clear()
        self._pairs = 0

    def __iter__(self) -> Iterator[Triple]:
        for r, row in self._rows.items():
            t1 = self._id_to_term[r]
            for c, v in row.items():
                yield t1, self._id_to_term[c], v

    def __len__(self) -> int:
        return self._pairs
