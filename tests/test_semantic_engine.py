# tests/test_semantic_engine.py
import asyncio
import itertools

import numpy as np
import pytest

from ngram_context.core.semantic_engine import DistributionalSemanticEngine, SemanticConfig

# "A"/"B" co-occur 10 times, "A"/"C" once; two more strong pairs give PMI room
CORPUS = {"A B": 10.0, "A C": 1.0, "D E": 10.0, "F G": 10.0}


@pytest.fixture
def engine():
    eng = DistributionalSemanticEngine(SemanticConfig(min_cooccurrence_for_pmi=2))
    eng.build_cooccurrence_matrix(CORPUS, window_size=3)
    eng.generate_distributional_vectors()
    return eng


def test_matrix_summary():
    eng = DistributionalSemanticEngine()
    summary = eng.build_cooccurrence_matrix(CORPUS, window_size=3)
    assert summary == {"pair_count": 4, "term_count": 7}
    assert eng.matrix.get("B", "A") == 10.0


def test_window_limits_pairs():
    eng = DistributionalSemanticEngine()
    eng.build_cooccurrence_matrix({"猫 が とても 好き": 1.0}, window_size=2)
    assert eng.matrix.get("猫", "が") == 1.0
    assert eng.matrix.get("猫", "とても") == 0.0


def test_cooccurrence_accumulates():
    eng = DistributionalSemanticEngine()
    eng.build_cooccurrence_matrix({"猫 が": 2.0, "猫 が 好き": 1.0})
    assert eng.matrix.get("猫", "が") == 3.0


def test_strong_pair_ranks_above_weak_pair(engine):
    co_terms = [t for t, _, _ in engine.profiles["A"]]
    assert co_terms[0] == "B"
    assert "C" not in co_terms


def test_ppmi_respects_minimum_support(engine):
    assert engine.ppmi("A", "C", 1.0) == 0.0
    assert engine.ppmi("A", "B", 10.0) > 0.0


def test_one_vector_per_term_with_equal_lengths(engine):
    assert set(engine.vectors) == set(engine.matrix.terms())
    lengths = {v.shape for v in engine.vectors.values()}
    assert lengths == {(engine.dimensions,)}
    assert engine.cfg.min_dimensions <= engine.dimensions <= engine.cfg.max_dimensions


def test_async_generation_matches_sync(engine):
    other = DistributionalSemanticEngine(SemanticConfig(min_cooccurrence_for_pmi=2))
    other.build_cooccurrence_matrix(CORPUS, window_size=3)
    summary = asyncio.run(other.agenerate_distributional_vectors())
    assert summary == {"vector_count": 7, "dimensions": engine.dimensions}
    for term, vec in engine.vectors.items():
        assert np.allclose(vec, other.vectors[term])


def test_similarity_symmetric_and_bounded(engine):
    for a, b in itertools.combinations(sorted(engine.vectors), 2):
        ab = engine.calculate_cosine_similarity(a, b)
        assert ab == engine.calculate_cosine_similarity(b, a)
        assert 0.0 <= ab <= 1.0


def test_similarity_of_unknown_term_is_zero(engine):
    assert engine.calculate_cosine_similarity("A", "Z") == 0.0


def test_similar_terms_exclude_target(engine):
    found = engine.find_semantically_similar_terms("A", ["A", "B", "D", "F"], threshold=0.0)
    terms = [s.term for s in found]
    assert terms
    assert "A" not in terms
    assert set(terms) <= {"B", "D", "F"}
    sims = [s.similarity for s in found]
    assert sims == sorted(sims, reverse=True)


def test_similar_terms_without_index_use_exhaustive_search():
    eng = DistributionalSemanticEngine()
    eng.vectors = {"A": np.array([1.0, 0.0]), "B": np.array([1.0, 0.0]), "C": np.array([0.0, 1.0])}
    found = eng.find_semantically_similar_terms("A", ["B", "C"], threshold=0.5)
    assert [s.term for s in found] == ["B"]
    assert found[0].lsh_hit is False


def test_dynamic_threshold_is_clamped(engine):
    t = engine.dynamic_similarity_threshold(engine.vectors)
    assert 0.3 <= t <= 0.8
    assert engine.dynamic_similarity_threshold([]) == 0.5


def test_vocabulary_without_vectors_is_unscored():
    eng = DistributionalSemanticEngine()
    assert eng.select_semantically_appropriate_vocabulary(["A"], ["B", "C", "B"], 5) == [("B", 0.0), ("C", 0.0)]


def test_relationship_graph_build():
    eng = DistributionalSemanticEngine()
    summary = eng.build_cooccurrence_from_relationships({
        "子猫": [{"term": "子犬", "strength": 0.8}, {"term": "子猫"}, {"term": "鳥"}, {"term": "小鳥", "strength": "x"}],
        "犬": [{"term": "子犬"}],
    })
    assert summary == {"pair_count": 1, "term_count": 2}
    assert eng.matrix.get("子犬", "子猫") == pytest.approx(0.8)


def test_semantic_cache_round_trip(engine, tmp_path):
    path = str(tmp_path / "semantic.pkl")
    assert engine.save_semantic_cache(path) is True
    fresh = DistributionalSemanticEngine()
    assert fresh.load_semantic_cache(path) is True
    assert fresh.dimensions == engine.dimensions
    for term, vec in engine.vectors.items():
        assert np.allclose(vec, fresh.vectors[term])
    assert fresh.calculate_cosine_similarity("A", "B") == engine.calculate_cosine_similarity("A", "B")


def test_corrupt_semantic_cache_is_ignored(tmp_path):
    path = tmp_path / "semantic.pkl"
    path.write_bytes(b"not a pickle")
    eng = DistributionalSemanticEngine()
    assert eng.load_semantic_cache(str(path)) is False
    assert eng.load_semantic_cache(str(tmp_path / "missing.pkl")) is False


def test_similar_terms_outside_lsh_bucket_are_kept(monkeypatch):
    eng = DistributionalSemanticEngine()
    eng.vectors = {"A": np.full(20, 0.5), "B": np.full(20, 0.5), "C": np.full(20, 0.515)}
    monkeypatch.setattr(eng, "lsh_candidates", lambda term: {"A", "B"})
    found = {s.term: s for s in eng.find_semantically_similar_terms("A", ["B", "C"], threshold=0.5)}
    assert set(found) == {"B", "C"}
    assert found["B"].lsh_hit is True
    assert found["C"].lsh_hit is False
    assert found["C"].similarity > 0.9
