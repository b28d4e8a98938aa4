"""
Context assembly - turns one user query into a token-bounded knowledge block.

Several searches run concurrently (general, goal-filtered, keyword-typed),
their results are merged, ranked by credibility and packed greedily into
the caller's token budget.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

from nutrition_rag.config import EngineConfig, get_config
from nutrition_rag.core.errors import StoreReadError
from nutrition_rag.observability import (
    CONTEXT_DOCUMENT_COUNT,
    CONTEXT_MAX_TOKENS,
    CONTEXT_SEARCH_COUNT,
    CONTEXT_TOKENS_USED,
    CONTEXT_TRUNCATED,
    get_tracer,
)
from nutrition_rag.retrieval.document import Document, DocumentType, Goal
from nutrition_rag.retrieval.filters import goals_filter

if TYPE_CHECKING:
    from nutrition_rag.core.protocols import SearchResult
    from nutrition_rag.retrieval.search import SimilaritySearch

logger = logging.getLogger(__name__)

ELLIPSIS = "..."
CHARS_PER_TOKEN = 4

# (keywords, document type, top_k); substring match on the lower-cased query
KEYWORD_SEARCHES: tuple[tuple[tuple[str, ...], DocumentType, int], ...] = (
    (("recipe", "meal", "cook"), DocumentType.RECIPE, 2),
    (("supplement", "vitamin", "mineral"), DocumentType.SUPPLEMENT_INFO, 2),
    (("calories", "nutrition", "macro"), DocumentType.CATALOG_ITEM, 2),
    (("research", "study", "evidence"), DocumentType.REFERENCE, 1),
)

NUTRITION_TERMS = ("calories", "protein", "nutrition")


@dataclass
class UserContextHints:
    """What the caller knows about the user; only goals steer retrieval."""
    goals: Sequence[str] = ()
    enrolled_plan: str | None = None
    activity_level: str | None = None
    dietary_restrictions: Sequence[str] = ()

    def resolved_goals(self) -> frozenset[Goal]:
        """Known goals from `goals` plus the enrolled plan, unknown values dropped."""
        candidates = list(self.goals)
        if self.enrolled_plan:
            candidates.append(self.enrolled_plan)
        return frozenset(g for g in (Goal.parse(c) for c in candidates) if g is not None)


@dataclass
class RetrievedContext:
    """Packed context plus the bookkeeping a response generator needs."""
    text: str = ""
    document_ids: list[str] = field(default_factory=list)
    confidence: float = 0.3
    rag_used: bool = False
    search_time_ms: float = 0.0

    @property
    def documents_found(self) -> int:
        return len(self.document_ids)


@dataclass
class PackedContext:
    text: str
    document_ids: list[str]
    tokens_used: int
    truncated: bool


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four UTF-8 bytes, rounded up."""
    return math.ceil(len(text.encode("utf-8")) / CHARS_PER_TOKEN)


def truncate_utf8(text: str, max_bytes: int) -> str:
    """Cut text to at most max_bytes of UTF-8 without splitting a code point."""
    return text.encode("utf-8")[:max_bytes].decode("utf-8", errors="ignore")


def format_block(doc: Document) -> str:
    return f"{doc.title} ({doc.metadata.type.value}):\n{doc.content}\n\n"


def pack_documents(
    documents: Sequence[Document],
    max_tokens: int,
    min_truncation_chars: int = 100,
) -> PackedContext:
    """
    Greedily pack documents into a token budget, in the given order.

    A block that does not fit is truncated (with an ellipsis) only when the
    remaining budget exceeds min_truncation_chars; packing stops after it.
    """
    parts: list[str] = []
    ids: list[str] = []
    used = 0
    truncated = False

    for doc in documents:
        block = format_block(doc)
        block_tokens = estimate_tokens(block)

        if used + block_tokens <= max_tokens:
            parts.append(block)
            ids.append(doc.id)
            used += block_tokens
            continue

        remaining_chars = (max_tokens - used) * CHARS_PER_TOKEN
        if remaining_chars > min_truncation_chars:
            # Budget counts the ellipsis too
            cut = truncate_utf8(block, remaining_chars - len(ELLIPSIS))
            parts.append(cut + ELLIPSIS)
            ids.append(doc.id)
            used += estimate_tokens(cut + ELLIPSIS)
            truncated = True
        break

    return PackedContext(
        text="".join(parts).rstrip(),
        document_ids=ids,
        tokens_used=used,
        truncated=truncated,
    )


def merge_results(results: Sequence[SearchResult]) -> list[Document]:
    """Concatenate result lists in order, keeping the first copy of each id."""
    seen: set[str] = set()
    merged: list[Document] = []
    for result in results:
        for doc in result.documents:
            if doc.id not in seen:
                seen.add(doc.id)
                merged.append(doc)
    return merged


def rank_by_credibility(documents: list[Document], limit: int) -> list[Document]:
    return sorted(documents, key=lambda d: (-d.credibility, d.id))[:limit]


def calculate_confidence(query: str, context: str) -> float:
    """Heuristic confidence that the packed context answers the query."""
    if not context:
        return 0.3

    confidence = 0.5
    if len(context) > 500:
        confidence += 0.2
    if len(context) > 1000:
        confidence += 0.1
    if any(term in context for term in NUTRITION_TERMS):
        confidence += 0.1
    if "calorie" in query.lower() and "calorie" in context:
        confidence += 0.1
    return min(confidence, 1.0)


class ContextAssembler:
    """Builds LLM-ready context blocks from a SimilaritySearch."""

    def __init__(self, search: SimilaritySearch, config: EngineConfig | None = None):
        self.search = search
        self.config = config or get_config()

    def _planned_searches(self, query: str, hints: UserContextHints | None) -> list:
        cfg = self.config
        searches = [
            self.search.search_similar(
                query,
                top_k=cfg.general_top_k,
                min_similarity=cfg.general_min_similarity,
            )
        ]

        goals = hints.resolved_goals() if hints else frozenset()
        if goals:
            searches.append(
                self.search.search_similar(query, top_k=cfg.goal_top_k, filter=goals_filter(goals))
            )

        lowered = query.lower()
        for keywords, doc_type, top_k in KEYWORD_SEARCHES:
            if any(k in lowered for k in keywords):
                searches.append(self.search.search_by_type(query, doc_type, top_k=top_k))

        return searches

    async def _assemble(
        self,
        query: str,
        hints: UserContextHints | None,
        max_tokens: int,
    ) -> PackedContext:
        searches = self._planned_searches(query, hints)

        with get_tracer().start_span(
            "retrieval.assemble_context",
            attributes={CONTEXT_SEARCH_COUNT: len(searches), CONTEXT_MAX_TOKENS: max_tokens},
        ) as span:
            outcomes = await asyncio.gather(*searches, return_exceptions=True)
            failures = [o for o in outcomes if isinstance(o, BaseException)]
            if failures:
                raise failures[0]
            results = list(outcomes)

            merged = merge_results(results)
            ranked = rank_by_credibility(merged, self.config.max_documents)
            packed = pack_documents(ranked, max_tokens, self.config.min_truncation_chars)

            span.set_attribute(CONTEXT_DOCUMENT_COUNT, len(packed.document_ids))
            span.set_attribute(CONTEXT_TOKENS_USED, packed.tokens_used)
            span.set_attribute(CONTEXT_TRUNCATED, packed.truncated)

        logger.debug(
            f"Assembled context from {len(searches)} searches: "
            f"{len(merged)} candidates, {len(packed.document_ids)} packed, "
            f"{packed.tokens_used}/{max_tokens} tokens"
        )
        return packed

    async def get_relevant_context(
        self,
        query: str,
        hints: UserContextHints | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """
        Return a knowledge block for the query, or "" when nothing qualified.

        Raises:
            StoreReadError: if any underlying search fails
        """
        if max_tokens is None:
            max_tokens = self.config.default_max_tokens
        packed = await self._assemble(query, hints, max_tokens)
        return packed.text

    async def retrieve(
        self,
        query: str,
        hints: UserContextHints | None = None,
        max_tokens: int | None = None,
    ) -> RetrievedContext:
        """
        Like get_relevant_context, with confidence and document bookkeeping.

        Never raises on backend failure: a read error yields an empty
        context with confidence 0.2 so the caller can use its fallback path.
        """
        if max_tokens is None:
            max_tokens = self.config.default_max_tokens

        start = time.perf_counter()
        try:
            packed = await self._assemble(query, hints, max_tokens)
        except StoreReadError as e:
            logger.error(f"Context retrieval failed, using fallback: {e}")
            return RetrievedContext(
                confidence=0.2,
                search_time_ms=(time.perf_counter() - start) * 1000,
            )

        elapsed_ms = (time.perf_counter() - start) * 1000
        if not packed.text:
            return RetrievedContext(confidence=0.3, search_time_ms=elapsed_ms)

        return RetrievedContext(
            text=packed.text,
            document_ids=packed.document_ids,
            confidence=calculate_confidence(query, packed.text),
            rag_used=True,
            search_time_ms=elapsed_ms,
        )
