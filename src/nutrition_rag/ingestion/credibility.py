"""
Credibility scoring for ingested documents.

score = clamp(SOURCE_REPUTATION[source] + TYPE_MODIFIER[type], 0.3, 1.0)
"""

from __future__ import annotations

from nutrition_rag.retrieval.document import DocumentType, clamp_credibility

DEFAULT_REPUTATION = 0.6

# Names the adapters use for the application's own curated data
INTERNAL_FACTS_SOURCE = "Nutrition Knowledge Database"
INTERNAL_RECIPES_SOURCE = "Nutrition Recipe Database"
INTERNAL_PLANS_SOURCE = "Nutrition Meal Plans"
CATALOG_SOURCE = "USDA Food Database"

SOURCE_REPUTATION: dict[str, float] = {
    "USDA": 0.95,
    "NIH": 0.95,
    "WHO": 0.95,
    "American Heart Association": 0.9,
    "American Journal of Clinical Nutrition": 0.9,
    "International Journal of Sport Nutrition": 0.9,
    "Mayo Clinic": 0.85,
    "Harvard Health": 0.85,
    "International Society of Sports Nutrition": 0.85,
    INTERNAL_FACTS_SOURCE: 0.8,
    INTERNAL_RECIPES_SOURCE: 0.8,
    INTERNAL_PLANS_SOURCE: 0.8,
    "database": 0.7,
}

TYPE_MODIFIER: dict[DocumentType, float] = {
    DocumentType.REFERENCE: 0.0,
    DocumentType.CATALOG_ITEM: 0.05,
    DocumentType.FACT: 0.0,
    DocumentType.SUPPLEMENT_INFO: -0.05,
    DocumentType.RECIPE: -0.1,
    DocumentType.PLAN: -0.1,
}


def source_reputation(source: str) -> float:
    """Reputation of a source: exact name first, then a known-source prefix."""
    if source in SOURCE_REPUTATION:
        return SOURCE_REPUTATION[source]

    # Longest prefix wins ("NIH Office of Dietary Supplements" -> "NIH")
    for known in sorted(SOURCE_REPUTATION, key=len, reverse=True):
        if source.startswith(known + " "):
            return SOURCE_REPUTATION[known]
    return DEFAULT_REPUTATION


def calculate_credibility(source: str, doc_type: DocumentType | str) -> float:
    """Credibility score for a document, always within [0.3, 1.0]."""
    modifier = TYPE_MODIFIER.get(DocumentType(doc_type), 0.0)
    return clamp_credibility(source_reputation(source) + modifier)
