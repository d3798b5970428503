"""
Retrieval: indexed corpus search with in-memory and empty-context fallbacks
"""

from .vector_store import InMemoryVectorStore, RankedChunk, StoredChunk, cosine
from .fallback_index import FallbackIndex, build_store_from_seed_packs, seed_pack_index
from .db_search import DatabaseChunkSearch
from .retriever import EMPTY_CONTEXT, ContextRetriever, RetrievalResult, format_context

__all__ = [
    "InMemoryVectorStore",
    "RankedChunk",
    "StoredChunk",
    "cosine",
    "FallbackIndex",
    "build_store_from_seed_packs",
    "seed_pack_index",
    "DatabaseChunkSearch",
    "EMPTY_CONTEXT",
    "ContextRetriever",
    "RetrievalResult",
    "format_context",
]
