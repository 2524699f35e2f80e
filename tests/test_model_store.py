# tests/test_model_store.py
from collections import Counter

import pytest

from ngram_context.core.ngram_model import NgramFrequencyModel, NgramTables
from ngram_context.utils.model_store import (
    SNAPSHOT_VERSION,
    JsonNgramStore,
    JsonRelationStore,
    SnapshotError,
    decode_tables,
    encode_tables,
    is_empty_snapshot,
)


def _learned_tables():
    model = NgramFrequencyModel()
    model.learn_tokens(["猫", "が", "好き"], "好き")
    model.learn_tokens(["犬", "も", "好き"], "好き")
    return model.tables


def test_encode_uses_pairs_and_version():
    doc = encode_tables(_learned_tables())
    assert doc["version"] == SNAPSHOT_VERSION
    payload = doc["payload"]
    assert ["猫 が", 1.0] in payload["ngram_frequencies"]
    assert ["猫", ["が"]] in payload["continuation_counts"]
    assert payload["total_documents"] == 2


def test_decode_restores_tables():
    tables = _learned_tables()
    restored = decode_tables(encode_tables(tables))
    assert restored.ngram_frequencies == tables.ngram_frequencies
    assert restored.continuation_counts == tables.continuation_counts
    assert restored.document_frequencies == tables.document_frequencies
    assert restored.context_frequencies == tables.context_frequencies
    assert restored.context_terms == tables.context_terms
    assert restored.total_documents == 2


def test_decode_accepts_legacy_object_payload():
    legacy = {
        "ngramFrequencies": {"猫 が": 2},
        "continuationCounts": {"猫": ["が"]},
        "documentFreqs": {"猫": 1, "が": 1},
        "contextFrequencies": {"猫": 1},
        "contextTerms": {"猫": {"猫": 1, "が": 1}},
        "totalDocuments": 1,
    }
    tables = decode_tables(legacy)
    assert tables.ngram_frequencies == {"猫 が": 2.0}
    assert tables.continuation_counts == {"猫": {"が"}}
    assert tables.context_terms == {"猫": Counter({"猫": 1, "が": 1})}
    assert tables.total_documents == 1


@pytest.mark.parametrize("doc", [
    {"version": 2, "payload": {}},
    {"version": "1", "payload": {}},
    {"version": 1, "payload": []},
    {"version": 1, "payload": {"ngram_frequencies": [["猫"]]}},
    {"version": 1, "payload": {"ngram_frequencies": [["猫", "many"]]}},
    {"version": 1, "payload": {"continuation_counts": [["猫", 3]]}},
    {"version": 1, "payload": {"total_documents": -1}},
    ["not", "an", "object"],
])
def test_decode_rejects_malformed(doc):
    with pytest.raises(SnapshotError):
        decode_tables(doc)


def test_is_empty_snapshot():
    assert is_empty_snapshot(None)
    assert is_empty_snapshot(encode_tables(NgramTables()))
    assert not is_empty_snapshot(encode_tables(_learned_tables()))


def test_store_refuses_empty_overwrite(tmp_path):
    store = JsonNgramStore(str(tmp_path / "ngrams.json"))
    assert store.save_ngram_data(encode_tables(_learned_tables())) is True
    assert store.save_ngram_data(encode_tables(NgramTables())) is False
    assert not is_empty_snapshot(store.load_ngram_data())


def test_store_missing_file(tmp_path):
    store = JsonNgramStore(str(tmp_path / "missing.json"))
    assert store.load_ngram_data() is None
    # nothing to protect yet
    assert store.save_ngram_data(encode_tables(NgramTables())) is True


def test_relation_store_round_trip(tmp_path):
    store = JsonRelationStore(str(tmp_path / "relations.json"))
    assert store.get_user_specific_relations("alice") == {}
    store.save_user_relations("alice", {"子猫": [{"term": "子犬", "strength": 0.5}]})
    assert store.get_user_specific_relations("alice") == {"子猫": [{"term": "子犬", "strength": 0.5}]}
    assert store.get_user_specific_relations("bob") == {}


def test_bundled_collaborators_satisfy_protocols(tmp_path):
    from ngram_context.context.analyzer import FugashiAnalyzer
    from ngram_context.core.bandit import UCBVocabularyBandit
    from ngram_context.core.protocols import MorphologicalAnalyzer, NgramStore, RelationshipSource, VocabularyBandit

    assert isinstance(JsonNgramStore(str(tmp_path / "n.json")), NgramStore)
    assert isinstance(JsonRelationStore(str(tmp_path / "r.json")), RelationshipSource)
    assert isinstance(FugashiAnalyzer(), MorphologicalAnalyzer)
    assert isinstance(UCBVocabularyBandit(), VocabularyBandit)
