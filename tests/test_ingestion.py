"""
Unit Tests for Knowledge Ingestion

Tests credibility scoring, record -> document adapters, the record sources
and the ingestion pipeline. The pipeline runs against a real
InMemoryVectorStore with the deterministic local embedding, so no network
or database is involved.
"""

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from nutrition_rag.config import EngineConfig
from nutrition_rag.core.errors import StoreReadError, StoreWriteError
from nutrition_rag.embeddings import LocalEmbeddings
from nutrition_rag.ingestion.adapters import (
    catalog_to_document,
    fact_to_document,
    meal_plan_to_document,
    recipe_to_document,
    split_tags,
)
from nutrition_rag.ingestion.credibility import (
    CATALOG_SOURCE,
    INTERNAL_FACTS_SOURCE,
    SOURCE_REPUTATION,
    calculate_credibility,
    source_reputation,
)
from nutrition_rag.ingestion.pipeline import IngestionState, KnowledgeIngestion, chunked
from nutrition_rag.ingestion.records import (
    CatalogRecord,
    FactRecord,
    InMemoryRecordSource,
    JsonRecordSource,
    MealPlanRecord,
    MealRecord,
    RecipeRecord,
    RecordSource,
)
from nutrition_rag.retrieval.document import Difficulty, DocumentType, Goal
from nutrition_rag.retrieval.store import InMemoryVectorStore

DIMS = 64


# ---------------------------------------------------------------------------
# FIXTURES
# ---------------------------------------------------------------------------


@pytest.fixture
def fact():
    return FactRecord(
        id="1",
        title="Fiber and Satiety",
        content="Dietary fiber slows digestion and keeps you full longer.",
        tags="fiber, satiety, ",
        updated_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def catalog_item():
    return CatalogRecord(
        id="42",
        name="Chicken Breast",
        calories_per_100g=165,
        protein_per_100g=31,
        carbs_per_100g=0,
        fat_per_100g=3.6,
        tags="poultry, lean protein",
    )


@pytest.fixture
def recipe():
    return RecipeRecord(
        id="7",
        name="Greek Yogurt Parfait",
        category="breakfast",
        ingredients="greek yogurt, berries, granola",
        instructions="Layer and serve.",
        calories=320,
        protein=22,
        carbs=38,
        fat=8,
        prep_time=5,
        dietary_tags="vegetarian, high protein",
        goal_tags="weight_loss, Muscle Gain, bulking",
    )


@pytest.fixture
def meal_plan():
    return MealPlanRecord(
        id="3",
        name="Lean Start",
        type="WEIGHT_LOSS",
        description="A gentle calorie deficit.",
        calories=1600,
        meals_per_day=3,
        duration=28,
        meals=[MealRecord(name="Oats", calories=350, protein=15, carbs=55, fat=8)],
    )


@pytest.fixture
def records(fact, catalog_item, recipe, meal_plan):
    retired = FactRecord(id="2", title="Old Fact", content="Outdated.", is_active=False)
    return InMemoryRecordSource(
        facts=[fact, retired],
        catalog=[catalog_item],
        recipes=[recipe],
        meal_plans=[meal_plan],
    )


@pytest.fixture
def store():
    s = InMemoryVectorStore(dimensions=DIMS)
    s.open()
    return s


@pytest.fixture
def ingestion(store, records):
    return KnowledgeIngestion(store, LocalEmbeddings(DIMS), records, EngineConfig(embedding_dim=DIMS))


# ---------------------------------------------------------------------------
# CREDIBILITY TESTS
# ---------------------------------------------------------------------------


class TestCredibility:
    """Source reputation plus type modifier, clamped."""

    def test_exact_source(self):
        assert source_reputation("Mayo Clinic") == 0.85

    def test_prefix_source(self):
        assert source_reputation("NIH Office of Dietary Supplements") == 0.95
        assert source_reputation(CATALOG_SOURCE) == 0.95

    def test_prefix_needs_word_boundary(self):
        assert source_reputation("WHOLE Foods blog") == 0.6

    def test_unknown_source_default(self):
        assert source_reputation("Some Blog") == 0.6
        assert calculate_credibility("Some Blog", DocumentType.RECIPE) == pytest.approx(0.5)

    def test_type_modifier_clamped_at_top(self):
        assert calculate_credibility(CATALOG_SOURCE, DocumentType.CATALOG_ITEM) == pytest.approx(1.0)

    def test_internal_sources(self):
        assert calculate_credibility(INTERNAL_FACTS_SOURCE, "fact") == pytest.approx(0.8)

    @pytest.mark.parametrize("doc_type", list(DocumentType))
    def test_always_within_bounds(self, doc_type):
        for source in [*SOURCE_REPUTATION, "Unknown Source", ""]:
            score = calculate_credibility(source, doc_type)
            assert 0.3 <= score <= 1.0


# ---------------------------------------------------------------------------
# ADAPTER TESTS
# ---------------------------------------------------------------------------


class TestAdapters:
    """Record -> Document conversion."""

    def test_split_tags(self):
        assert split_tags(" a, b ,,c ") == ["a", "b", "c"]
        assert split_tags(None) == []
        assert split_tags("") == []

    def test_fact(self, fact):
        doc = fact_to_document(fact)

        assert doc.id == "fact_1"
        assert doc.metadata.type is DocumentType.FACT
        assert doc.metadata.tags == frozenset({"fiber", "satiety"})
        assert doc.metadata.last_updated == fact.updated_at
        assert doc.content.startswith("Fiber and Satiety\n\n")

    def test_catalog(self, catalog_item):
        doc = catalog_to_document(catalog_item)

        assert doc.id == "catalog_42"
        assert doc.metadata.calories == 165
        assert doc.metadata.macros.protein == 31
        assert "Fiber: 0g" in doc.content
        assert doc.credibility == pytest.approx(1.0)

    def test_recipe(self, recipe):
        doc = recipe_to_document(recipe)

        assert doc.id == "recipe_7"
        assert doc.metadata.goals == frozenset({Goal.WEIGHT_LOSS, Goal.MUSCLE_GAIN})
        assert {"vegetarian", "high protein", "bulking"} <= doc.metadata.tags
        assert doc.metadata.difficulty is Difficulty.BEGINNER
        assert "Cuisine: Various" in doc.content
        assert doc.credibility == pytest.approx(0.7)

    @pytest.mark.parametrize(
        "value,expected",
        [("advanced", Difficulty.ADVANCED), (" Intermediate ", Difficulty.INTERMEDIATE), ("expert", Difficulty.BEGINNER)],
    )
    def test_recipe_difficulty(self, recipe, value, expected):
        recipe.difficulty = value
        assert recipe_to_document(recipe).metadata.difficulty is expected

    def test_meal_plan(self, meal_plan):
        doc = meal_plan_to_document(meal_plan)

        assert doc.id == "plan_3"
        assert doc.metadata.type is DocumentType.PLAN
        assert doc.metadata.tags == frozenset({"weight loss"})
        assert doc.metadata.goals == frozenset({Goal.WEIGHT_LOSS})
        assert doc.metadata.difficulty is Difficulty.INTERMEDIATE
        assert "Oats (350 cal)" in doc.content

    def test_ids_never_collide_across_sources(self, fact, recipe):
        recipe.id = fact.id
        assert fact_to_document(fact).id != recipe_to_document(recipe).id


# ---------------------------------------------------------------------------
# RECORD SOURCE TESTS
# ---------------------------------------------------------------------------


class TestRecordSources:
    def test_in_memory_source_is_record_source(self, records):
        assert isinstance(records, RecordSource)

    def test_listing_skips_inactive(self, records):
        assert [f.id for f in records.facts()] == ["1"]
        # direct lookup still finds retired records
        assert records.get_fact("2") is not None

    def test_limits(self, records):
        assert records.catalog_items(0) == []
        assert len(records.meal_plans(10)) == 1

    def test_json_source(self, tmp_path):
        path = tmp_path / "export.json"
        path.write_text(json.dumps({
            "facts": [{"id": 1, "title": "Water", "content": "Drink water.",
                       "updated_at": "2024-01-02T03:04:05+00:00"}],
            "meal_plans": [{"id": "p1", "name": "Bulk", "type": "MUSCLE_GAIN", "calories": 3000,
                            "meals": [{"name": "Rice", "calories": 400, "protein": 10,
                                       "carbs": 80, "fat": 2}]}],
        }))

        source = JsonRecordSource(path)

        fact = source.get_fact("1")
        assert fact.title == "Water"
        assert fact.updated_at == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert source.recipes() == []
        assert source.meal_plans(5)[0].meals[0].name == "Rice"

    @pytest.mark.parametrize(
        "stamp", ["2024-01-02T03:04:05.000Z", "2024-01-02T03:04:05Z", "2024-01-02T03:04:05+00:00"]
    )
    def test_utc_timestamp_forms(self, stamp):
        fact = FactRecord.from_dict({"id": 1, "title": "Water", "content": "Drink water.", "updated_at": stamp})

        assert fact.updated_at == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# PIPELINE TESTS
# ---------------------------------------------------------------------------


class TestBatching:
    def test_chunked(self):
        assert [list(c) for c in chunked([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]

    def test_add_documents_batch_writes_fixed_size_batches(self, store, fact, recipe, meal_plan):
        config = EngineConfig(embedding_dim=DIMS, batch_size=2)
        ingestion = KnowledgeIngestion(store, LocalEmbeddings(DIMS), config=config)
        extras = [
            RecipeRecord(
                id=f"extra_{i}", name=f"Extra {i}", category="snack", ingredients="nuts",
                instructions="Eat.", calories=200, protein=6, carbs=8, fat=16,
            )
            for i in range(2)
        ]
        docs = [
            fact_to_document(fact),
            recipe_to_document(recipe),
            meal_plan_to_document(meal_plan),
            *(recipe_to_document(r) for r in extras),
        ]

        with patch.object(store, "add_batch", wraps=store.add_batch) as add_batch:
            written = asyncio.run(ingestion.add_documents_batch(docs))

        assert written == 5
        assert [len(c.args[0]) for c in add_batch.call_args_list] == [2, 2, 1]
        assert store.stats().count == 5


class TestKnowledgeIngestion:
    """Full and per-source runs."""

    def test_seed_library_only_without_records(self, store):
        ingestion = KnowledgeIngestion(store, LocalEmbeddings(DIMS), config=EngineConfig(embedding_dim=DIMS))

        result = asyncio.run(ingestion.ingest_all())

        assert result.success is True
        assert result.total_documents == 7
        assert result.errors == []
        assert store.get("research_protein_requirements") is not None
        assert store.get("supplement_vitamin_d").metadata.type is DocumentType.SUPPLEMENT_INFO

    def test_ingest_all(self, ingestion, store):
        result = asyncio.run(ingestion.ingest_all())

        # 1 active fact + 1 catalog + 1 recipe + 1 plan + 7 seeds
        assert result.total_documents == 11
        assert store.stats().count == 11
        assert ingestion.state is IngestionState.COMPLETED
        assert ingestion.last_ingestion is not None
        assert store.get("fact_2") is None

    def test_ingest_all_is_idempotent(self, ingestion, store):
        asyncio.run(ingestion.ingest_all())
        asyncio.run(ingestion.ingest_all())

        assert store.stats().count == 11

    def test_failing_source_does_not_abort_others(self, ingestion, records, store):
        with patch.object(records, "facts", side_effect=RuntimeError("records offline")):
            result = asyncio.run(ingestion.ingest_all())

        assert result.success is False
        assert result.errors == ["facts ingestion failed: records offline"]
        assert result.total_documents == 10
        assert store.stats().count == 10
        assert ingestion.state is IngestionState.COMPLETED_WITH_ERRORS

    def test_ingest_source(self, ingestion):
        assert ingestion.source_names == [
            "facts", "catalog", "recipes", "references", "supplements", "meal_plans",
        ]
        assert asyncio.run(ingestion.ingest_source("references")) == 4
        assert asyncio.run(ingestion.ingest_source("supplements")) == 3

    def test_ingest_unknown_source(self, ingestion):
        with pytest.raises(ValueError, match="Unknown ingestion source"):
            asyncio.run(ingestion.ingest_source("blogs"))

    def test_catalog_limit(self, store, records):
        config = EngineConfig(embedding_dim=DIMS, catalog_limit=0)
        ingestion = KnowledgeIngestion(store, LocalEmbeddings(DIMS), records, config)

        assert asyncio.run(ingestion.ingest_catalog()) == 0


class TestIncrementalMaintenance:
    def test_update_single_document(self, ingestion, store, records):
        records.get_fact("1").content = "Fiber feeds gut bacteria."

        assert asyncio.run(ingestion.update_single_document("fact", "1")) is True
        assert "gut bacteria" in store.get("fact_1").content

    def test_update_missing_record(self, ingestion):
        assert asyncio.run(ingestion.update_single_document("recipe", "999")) is False

    def test_update_unknown_source(self, ingestion):
        with pytest.raises(ValueError):
            asyncio.run(ingestion.update_single_document("blog", "1"))

    def test_update_write_failure(self, ingestion, store):
        with patch.object(store, "add_batch", side_effect=StoreWriteError("read-only")):
            assert asyncio.run(ingestion.update_single_document("plan", "3")) is False

    def test_delete_document(self, ingestion, store):
        asyncio.run(ingestion.update_single_document("catalog", "42"))

        assert asyncio.run(ingestion.delete_document("catalog_42")) is True
        assert store.get("catalog_42") is None
        # deleting again is not an error
        assert asyncio.run(ingestion.delete_document("catalog_42")) is True

    def test_delete_write_failure(self, ingestion, store):
        with patch.object(store, "delete", side_effect=StoreWriteError("read-only")):
            assert asyncio.run(ingestion.delete_document("fact_1")) is False


class TestStatus:
    def test_before_ingestion(self, ingestion):
        status = ingestion.status()

        assert status.total_documents == 0
        assert status.is_healthy is False
        assert status.last_ingestion is None
        assert status.state is IngestionState.IDLE

    def test_after_ingestion(self, ingestion):
        asyncio.run(ingestion.ingest_all())
        status = ingestion.status()

        assert status.total_documents == 11
        assert status.is_healthy is True
        assert status.last_ingestion == ingestion.last_ingestion

    def test_backend_failure(self, ingestion, store):
        with patch.object(store, "stats", side_effect=StoreReadError("down")):
            status = ingestion.status()

        assert status.total_documents == 0
        assert status.is_healthy is False
