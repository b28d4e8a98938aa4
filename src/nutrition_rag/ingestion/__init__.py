"""
Ingestion module - records in, indexed documents out.

- records: source record types and the RecordSource protocol
- credibility: source reputation x document type scoring
- adapters: record -> Document conversion
- pipeline: KnowledgeIngestion (batching, fan-out, incremental updates)
"""

from nutrition_rag.ingestion.credibility import (
    SOURCE_REPUTATION,
    TYPE_MODIFIER,
    calculate_credibility,
)
from nutrition_rag.ingestion.pipeline import (
    IngestionResult,
    IngestionState,
    IngestionStatus,
    KnowledgeIngestion,
)
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

__all__ = [
    # Records
    "FactRecord",
    "CatalogRecord",
    "RecipeRecord",
    "MealPlanRecord",
    "MealRecord",
    "RecordSource",
    "InMemoryRecordSource",
    "JsonRecordSource",
    # Credibility
    "SOURCE_REPUTATION",
    "TYPE_MODIFIER",
    "calculate_credibility",
    # Pipeline
    "KnowledgeIngestion",
    "IngestionResult",
    "IngestionState",
    "IngestionStatus",
]
