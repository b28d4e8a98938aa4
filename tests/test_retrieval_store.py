"""
Unit Tests for the Local Vector Stores

Tests InMemoryVectorStore, FileVectorStore and the backend fallback chain.
Vectors are hand-built so every similarity in these tests is known exactly.
"""

import json
import math

import numpy as np
import pytest

from nutrition_rag.core.errors import BackendUnavailable, DimensionMismatch, StoreWriteError
from nutrition_rag.retrieval.document import Document, DocumentType, Goal, Metadata
from nutrition_rag.retrieval.filters import Equals, Filter, In
from nutrition_rag.retrieval.store import (
    BackendKind,
    FileVectorStore,
    InMemoryVectorStore,
    VectorStoreConfig,
    backend_chain,
    open_vector_store,
    prepare_vector,
    rank_documents,
)


# ---------------------------------------------------------------------------
# FIXTURES
# ---------------------------------------------------------------------------


def make_doc(doc_id, doc_type=DocumentType.FACT, goals=(), content=None, credibility=0.6):
    return Document(
        id=doc_id,
        content=content or f"Content of {doc_id}",
        metadata=Metadata(
            type=doc_type,
            title=doc_id.title(),
            source="test",
            goals=frozenset(goals),
            credibility_score=credibility,
        ),
    )


def unit(*components):
    v = np.zeros(4)
    v[: len(components)] = components
    return v


@pytest.fixture
def store():
    s = InMemoryVectorStore(dimensions=4)
    s.open()
    return s


@pytest.fixture
def populated_store(store):
    store.add(make_doc("recipe_a", DocumentType.RECIPE, goals=[Goal.WEIGHT_LOSS]), unit(1, 0, 0, 0))
    store.add(make_doc("recipe_b", DocumentType.RECIPE, goals=[Goal.MUSCLE_GAIN]), unit(0.8, 0.6, 0, 0))
    store.add(make_doc("fact_c", DocumentType.FACT, goals=[Goal.WEIGHT_LOSS]), unit(0, 1, 0, 0))
    store.add(make_doc("plan_d", DocumentType.PLAN), unit(0, 0, 1, 0))
    return store


# ---------------------------------------------------------------------------
# BOUNDARY RULE TESTS
# ---------------------------------------------------------------------------


class TestPrepareVector:
    def test_normalizes(self):
        v = prepare_vector([3.0, 4.0, 0.0, 0.0], 4)
        np.testing.assert_allclose(v, [0.6, 0.8, 0.0, 0.0], rtol=1e-6)
        assert v.dtype == np.float32

    def test_zero_vector_passes_through(self):
        assert not prepare_vector([0, 0, 0, 0], 4).any()

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatch) as exc_info:
            prepare_vector([1.0, 2.0], 4)
        assert exc_info.value.expected == 4
        assert exc_info.value.actual == 2

    def test_non_finite_rejected(self):
        with pytest.raises(ValueError):
            prepare_vector([1.0, float("nan"), 0, 0], 4)


# ---------------------------------------------------------------------------
# IN-MEMORY STORE TESTS
# ---------------------------------------------------------------------------


class TestInMemoryVectorStore:
    """Test InMemoryVectorStore behavior."""

    def test_round_trip_retrieval(self, populated_store):
        """A document's own vector finds it with similarity ~1.0."""
        results = populated_store.search(unit(0.8, 0.6, 0, 0), top_k=2)

        assert results[0].document.id == "recipe_b"
        assert results[0].similarity == pytest.approx(1.0, abs=1e-6)

    def test_unnormalized_input_same_ranking(self, populated_store):
        scaled = populated_store.search(unit(8, 6, 0, 0), top_k=4)
        plain = populated_store.search(unit(0.8, 0.6, 0, 0), top_k=4)

        assert [r.document.id for r in scaled] == [r.document.id for r in plain]

    def test_results_sorted_with_id_tie_break(self, store):
        store.add(make_doc("zeta"), unit(1, 0, 0, 0))
        store.add(make_doc("alpha"), unit(1, 0, 0, 0))
        store.add(make_doc("mid"), unit(0.6, 0.8, 0, 0))

        results = store.search(unit(1, 0, 0, 0), top_k=3)

        assert [r.document.id for r in results] == ["alpha", "zeta", "mid"]

    def test_top_k_limits_results(self, populated_store):
        assert len(populated_store.search(unit(1, 1, 1, 0), top_k=2)) == 2
        assert populated_store.search(unit(1, 0, 0, 0), top_k=0) == []

    def test_min_similarity_excludes_everything(self, store):
        """Max similarity 0.9 with threshold 0.99 returns nothing."""
        store.add(make_doc("only"), unit(0.9, math.sqrt(1 - 0.81), 0, 0))

        assert store.search(unit(1, 0, 0, 0), top_k=5, min_similarity=0.99) == []
        assert len(store.search(unit(1, 0, 0, 0), top_k=5, min_similarity=0.85)) == 1

    def test_type_filter_has_no_false_positives(self, populated_store):
        results = populated_store.search(
            unit(1, 1, 1, 1), top_k=10, filter=Filter(Equals("type", "recipe"))
        )

        assert {r.document.id for r in results} == {"recipe_a", "recipe_b"}
        assert all(r.document.metadata.type is DocumentType.RECIPE for r in results)

    def test_goals_filter_has_no_false_positives(self, populated_store):
        goals = Filter(In("goals", {Goal.WEIGHT_LOSS}))
        results = populated_store.search(unit(1, 1, 1, 1), top_k=10, filter=goals)

        assert {r.document.id for r in results} == {"recipe_a", "fact_c"}
        assert all(Goal.WEIGHT_LOSS in r.document.metadata.goals for r in results)

    def test_upsert_replaces_document(self, store):
        store.add(make_doc("x", content="first"), unit(1, 0, 0, 0))
        store.add(make_doc("x", content="second"), unit(0, 1, 0, 0))

        assert store.stats().count == 1
        assert store.get("x").content == "second"
        # the old vector is gone too
        assert store.search(unit(1, 0, 0, 0), top_k=1, min_similarity=0.5) == []

    def test_delete_is_idempotent(self, populated_store):
        assert populated_store.delete("recipe_a") is True
        assert populated_store.delete("recipe_a") is False

        results = populated_store.search(unit(1, 0, 0, 0), top_k=10)
        assert "recipe_a" not in {r.document.id for r in results}

    def test_add_batch_is_atomic(self, store):
        docs = [make_doc("good"), make_doc("bad")]
        with pytest.raises(DimensionMismatch):
            store.add_batch(docs, [unit(1, 0, 0, 0), np.ones(3)])

        assert store.stats().count == 0

    def test_add_batch_length_mismatch(self, store):
        with pytest.raises(ValueError):
            store.add_batch([make_doc("a")], [])

    def test_snapshot_unchanged_by_later_write(self, populated_store):
        snapshot = populated_store._snapshot()
        populated_store.add(make_doc("new"), unit(0, 0, 0, 1))

        assert "new" not in snapshot
        assert len(snapshot) == 4

    def test_clear_and_stats(self, populated_store):
        stats = populated_store.stats()
        assert stats.count == 4
        assert stats.backend == "in_process"
        assert stats.collection_name == "in-memory-nutrition-knowledge"

        populated_store.clear()
        assert populated_store.stats().count == 0


class TestRankDocuments:
    def test_filter_applied_before_top_k(self, populated_store):
        """top_k counts only documents that pass the filter."""
        results = rank_documents(
            populated_store._snapshot().values(),
            prepare_vector(unit(0, 0, 1, 0), 4),
            top_k=1,
            filter=Filter(Equals("type", "recipe")),
            min_similarity=-1.0,
        )

        assert len(results) == 1
        assert results[0].document.metadata.type is DocumentType.RECIPE


# ---------------------------------------------------------------------------
# FILE STORE TESTS
# ---------------------------------------------------------------------------


class TestFileVectorStore:
    """Test FileVectorStore persistence."""

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "store.json"
        first = FileVectorStore(path, dimensions=4)
        first.open()
        first.add(make_doc("recipe_a", DocumentType.RECIPE), unit(1, 0, 0, 0))
        first.add(make_doc("fact_b"), unit(0, 1, 0, 0))
        first.delete("fact_b")

        second = FileVectorStore(path, dimensions=4)
        second.open()

        assert second.stats().count == 1
        results = second.search(unit(1, 0, 0, 0), top_k=1)
        assert results[0].document.id == "recipe_a"
        assert results[0].document.metadata.type is DocumentType.RECIPE

    def test_file_is_json_list(self, tmp_path):
        path = tmp_path / "store.json"
        store = FileVectorStore(path, dimensions=4)
        store.open()
        store.add(make_doc("a"), unit(2, 0, 0, 0))

        payload = json.loads(path.read_text())
        assert payload[0]["id"] == "a"
        assert payload[0]["embedding"] == [1.0, 0.0, 0.0, 0.0]

    def test_creates_missing_directory(self, tmp_path):
        store = FileVectorStore(tmp_path / "nested" / "store.json", dimensions=4)
        store.open()
        store.add(make_doc("a"), unit(1, 0, 0, 0))

        assert (tmp_path / "nested" / "store.json").exists()

    def test_corrupt_file_is_unavailable(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json")

        with pytest.raises(BackendUnavailable):
            FileVectorStore(path, dimensions=4).open()

    def test_dimension_change_is_unavailable(self, tmp_path):
        path = tmp_path / "store.json"
        store = FileVectorStore(path, dimensions=4)
        store.open()
        store.add(make_doc("a"), unit(1, 0, 0, 0))

        with pytest.raises(BackendUnavailable):
            FileVectorStore(path, dimensions=8).open()

    def test_failed_persist_keeps_previous_state(self, tmp_path, monkeypatch):
        path = tmp_path / "store.json"
        store = FileVectorStore(path, dimensions=4)
        store.open()
        store.add(make_doc("a"), unit(1, 0, 0, 0))

        def fail(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr("nutrition_rag.retrieval.store.os.replace", fail)

        with pytest.raises(StoreWriteError):
            store.add(make_doc("b"), unit(0, 1, 0, 0))

        assert store.stats().count == 1
        assert [p.name for p in tmp_path.iterdir()] == ["store.json"]


# ---------------------------------------------------------------------------
# FALLBACK CHAIN TESTS
# ---------------------------------------------------------------------------


class TestOpenVectorStore:
    """Test backend selection."""

    def test_chain_order(self):
        assert backend_chain(VectorStoreConfig(backend="auto")) == (
            BackendKind.EXTERNAL,
            BackendKind.FILE,
            BackendKind.IN_PROCESS,
        )
        assert backend_chain(VectorStoreConfig(backend="file")) == (
            BackendKind.FILE,
            BackendKind.IN_PROCESS,
        )
        assert backend_chain(VectorStoreConfig(backend="memory")) == (BackendKind.IN_PROCESS,)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            backend_chain(VectorStoreConfig(backend="redis"))

    def test_skips_external_without_database_url(self, tmp_path):
        config = VectorStoreConfig(
            connection_string=None,
            embedding_dim=4,
            file_path=str(tmp_path / "store.json"),
        )
        store = open_vector_store(config)

        assert store.kind == "file"
        assert store.dimensions == 4

    def test_falls_through_to_memory(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        config = VectorStoreConfig(
            backend="file",
            embedding_dim=4,
            file_path=str(blocker / "store.json"),
        )

        store = open_vector_store(config)

        assert store.kind == "in_process"

    def test_memory_backend_pinned(self):
        store = open_vector_store(VectorStoreConfig(backend="memory", embedding_dim=4))
        assert isinstance(store, InMemoryVectorStore)
        assert not isinstance(store, FileVectorStore)
