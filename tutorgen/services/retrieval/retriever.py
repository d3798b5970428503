"""
Context Retriever

Tiers, in order:
1. indexed corpus search
2. in-memory fallback index
3. EMPTY_CONTEXT
Retrieval never fails a generation request.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from tutorgen.services.corpus_indexer import Embedder
from .db_search import DatabaseChunkSearch
from .fallback_index import FallbackIndex
from .vector_store import RankedChunk

logger = logging.getLogger(__name__)

EMPTY_CONTEXT = "(no reference material available for this topic)"

SOURCE_INDEX = "index"
SOURCE_FALLBACK = "fallback"
SOURCE_NONE = "none"


@dataclass
class RetrievalResult:
    chunks: List[RankedChunk] = field(default_factory=list)
    context: str = EMPTY_CONTEXT
    source: str = SOURCE_NONE

    @property
    def is_empty(self) -> bool:
        return not self.chunks

    @property
    def citations(self) -> List[str]:
        refs = []
        for ranked in self.chunks:
            ref = ranked.chunk.source.get("url") or ranked.chunk.source.get("title")
            if ref and ref not in refs:
                refs.append(ref)
        return refs


def format_context(chunks: Sequence[RankedChunk]) -> str:
    lines = []
    for ranked in chunks:
        chunk = ranked.chunk
        title = chunk.source.get("title")
        url = chunk.source.get("url")
        cite = " - ".join(part for part in (title, url) if part)
        lines.append(f"• {chunk.text_summary} (source: {cite})" if cite else f"• {chunk.text_summary}")
    return "\n".join(lines)


class ContextRetriever:
    def __init__(
        self,
        embedder: Embedder,
        index_search: Optional[DatabaseChunkSearch] = None,
        fallback_index: Optional[FallbackIndex] = None,
        min_score: float = 0.0,
    ):
        self.embedder = embedder
        self.index_search = index_search
        self.fallback_index = fallback_index
        self.min_score = min_score

    async def retrieve(self, query: str, k: int, topic_filter: Optional[str] = None) -> RetrievalResult:
        try:
            vectors = await self.embedder.embed([query])
            query_vector = vectors[0]
        except Exception as e:
            logger.warning(f"Query embedding failed, using empty context: {e}")
            return RetrievalResult()

        if self.index_search is not None:
            try:
                chunks = await self.index_search.search(query_vector, k, topic_filter)
                if chunks:
                    return RetrievalResult(chunks, format_context(chunks), SOURCE_INDEX)
                logger.info(f"Indexed search returned no chunks for {query!r}, trying fallback index")
            except Exception as e:
                logger.warning(f"Indexed search failed, trying fallback index: {e}")

        if self.fallback_index is not None:
            try:
                store = await self.fallback_index.get()
                wanted = topic_filter.lower() if topic_filter else None
                chunks = store.search(
                    query_vector,
                    k,
                    where=(lambda c: c.topic.lower() == wanted) if wanted else None,
                    min_score=self.min_score,
                )
                if chunks:
                    return RetrievalResult(chunks, format_context(chunks), SOURCE_FALLBACK)
            except Exception as e:
                logger.warning(f"Fallback index unavailable: {e}")

        logger.info(f"No context found for {query!r}, using empty context")
        return RetrievalResult()
