# model_store.py - snapshot schema and JSON persistence for the n-gram tables

# handles saving and loading:
# - the versioned n-gram snapshot {"version", "payload"} (tables as [key, value] pairs)
# - user relationship graphs used to seed the co-occurrence matrix
# - writes are atomic (temp file + os.replace) and never replace a non-empty
#   snapshot with an empty one

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ngram_context.core.ngram_model import NgramTables

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class SnapshotError(ValueError):
    """Raised when a snapshot document is malformed or from an unknown version."""


# Encoding -------------------------------------------------------------------
def encode_tables(tables: NgramTables) -> Dict[str, Any]:
    """Canonical snapshot: every mapping is a list of [key, value] pairs, sets become sorted lists."""
    return {
        "version": SNAPSHOT_VERSION,
        "payload": {
            "ngram_frequencies": [[k, float(v)] for k, v in tables.ngram_frequencies.items()],
            "continuation_counts": [[k, sorted(v)] for k, v in tables.continuation_counts.items()],
            "document_frequencies": [[k, int(v)] for k, v in tables.document_frequencies.items()],
            "context_frequencies": [[k, int(v)] for k, v in tables.context_frequencies.items()],
            "context_terms": [[k, [[t, int(c)] for t, c in v.items()]] for k, v in tables.context_terms.items()],
            "total_ngrams": float(sum(tables.ngram_frequencies.values())),
            "total_documents": int(tables.total_documents),
        },
    }


def is_empty_snapshot(doc: Optional[Mapping[str, Any]]) -> bool:
    if not doc:
        return True
    payload = doc.get("payload", doc)
    if not isinstance(payload, Mapping):
        return True
    return not payload.get("ngram_frequencies")


# Decoding -------------------------------------------------------------------
def _pairs(value: Any, name: str) -> List[Tuple[str, Any]]:
    """Accept [[k, v], ...] or a plain {k: v} object; anything else is a format error."""
    if value is None:
        return []
    if isinstance(value, Mapping):
        return [(str(k), v) for k, v in value.items()]
    if isinstance(value, list):
        out = []
        for item in value:
            if not isinstance(item, (list, tuple)) or len(item) != 2:
                raise SnapshotError(f"{name}: expected [key, value] pairs, got {item!r}")
            out.append((str(item[0]), item[1]))
        return out
    raise SnapshotError(f"{name}: expected pairs or object, got {type(value).__name__}")


def _number(value: Any, name: str, cast=float):
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise SnapshotError(f"{name}: {value!r} is not a number") from None


def decode_tables(doc: Mapping[str, Any]) -> NgramTables:
    """
    Single deserialization routine for snapshots. Accepts the versioned document and
    legacy unversioned payloads (camelCase or snake_case keys). Validates every table.
    """
    if not isinstance(doc, Mapping):
        raise SnapshotError(f"snapshot must be an object, got {type(doc).__name__}")
    if "version" in doc:
        version = doc.get("version")
        if not isinstance(version, int) or version > SNAPSHOT_VERSION or version < 1:
            raise SnapshotError(f"unsupported snapshot version {version!r}")
        payload = doc.get("payload")
        if not isinstance(payload, Mapping):
            raise SnapshotError("snapshot payload must be an object")
    else:
        payload = doc

    def field(*names):
        for n in names:
            if n in payload:
                return payload[n]
        return None

    tables = NgramTables()
    for k, v in _pairs(field("ngram_frequencies", "ngramFrequencies"), "ngram_frequencies"):
        tables.ngram_frequencies[k] = _number(v, f"ngram_frequencies[{k}]")
    for k, v in _pairs(field("continuation_counts", "continuationCounts"), "continuation_counts"):
        if not isinstance(v, (list, tuple, set)):
            raise SnapshotError(f"continuation_counts[{k}]: expected a token list")
        tables.continuation_counts[k] = {str(t) for t in v}
    for k, v in _pairs(field("document_frequencies", "documentFreqs"), "document_frequencies"):
        tables.document_frequencies[k] = _number(v, f"document_frequencies[{k}]", int)
    for k, v in _pairs(field("context_frequencies", "contextFrequencies"), "context_frequencies"):
        tables.context_frequencies[k] = _number(v, f"context_frequencies[{k}]", int)
    for k, v in _pairs(field("context_terms", "contextTerms"), "context_terms"):
        tables.context_terms[k] = Counter({t: _number(c, f"context_terms[{k}]", int) for t, c in _pairs(v, "context_terms")})
    tables.total_documents = _number(field("total_documents", "totalDocuments") or 0, "total_documents", int)
    if tables.total_documents < 0:
        raise SnapshotError("total_documents must not be negative")
    return tables


# File store -----------------------------------------------------------------
def _atomic_write_json(path: str, data: Any) -> None:
    dirname = os.path.dirname(path) or "."
    os.makedirs(dirname, exist_ok=True)
    tmp_fd, tmp_path = tempfile.mkstemp(prefix="ngram_", suffix=".tmp", dir=dirname)
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, ensure_ascii=False)
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def _read_json(path: str) -> Optional[Any]:
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


class JsonNgramStore:
    """File-backed NgramStore. load/save raise on I/O errors; the engine decides how to degrade."""

    def __init__(self, path: str):
        self.path = path

    def load_ngram_data(self) -> Optional[Dict[str, Any]]:
        data = _read_json(self.path)
        if data is not None:
            logger.info("[JsonNgramStore] loaded snapshot from %s", self.path)
        return data

    def save_ngram_data(self, data: Dict[str, Any]) -> bool:
        if is_empty_snapshot(data):
            try:
                existing = _read_json(self.path)
            except (OSError, ValueError):
                existing = None
            if existing is not None and not is_empty_snapshot(existing):
                logger.warning("[JsonNgramStore] refusing to overwrite non-empty %s with an empty snapshot", self.path)
                return False
        _atomic_write_json(self.path, data)
        logger.info("[JsonNgramStore] saved snapshot to %s", self.path)
        return True


class JsonRelationStore:
    """
    RelationshipSource backed by one JSON file:
        {"user": {"keyword": [{"term": "...", "strength": 0.8}, ...]}}
    """

    def __init__(self, path: str):
        self.path = path

    def get_user_specific_relations(self, user: str = "default") -> Dict[str, List[Dict[str, Any]]]:
        data = _read_json(self.path) or {}
        relations = data.get(user, {}) if isinstance(data, Mapping) else {}
        return relations if isinstance(relations, dict) else {}

    def save_user_relations(self, user: str, relations: Mapping[str, Iterable[Mapping[str, Any]]]) -> None:
        data = _read_json(self.path) or {}
        data[user] = {k: [dict(r) for r in v] for k, v in relations.items()}
        _atomic_write_json(self.path, data)
