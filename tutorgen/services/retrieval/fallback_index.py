"""
Fallback retrieval index

Built at most once per process from the seed topic packs, then read-only,
even when callers on different event loops each hold their own FallbackIndex.
There is no refresh: a failed build stays failed until restart.
"""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Tuple, Union

from tutorgen.services.corpus_indexer import Embedder, embed_in_batches, load_topic_packs, source_ref
from .vector_store import InMemoryVectorStore, StoredChunk

logger = logging.getLogger(__name__)

StoreLoader = Callable[[], Awaitable[InMemoryVectorStore]]


class FallbackIndex:
    """Lazily built, shared in-memory index"""

    def __init__(self, loader: StoreLoader):
        self._loader = loader
        self._build: Optional[asyncio.Future] = None

    @property
    def started(self) -> bool:
        return self._build is not None

    async def get(self) -> InMemoryVectorStore:
        """Concurrent first callers share one build"""
        if self._build is None:
            self._build = asyncio.ensure_future(self._loader())
        return await asyncio.shield(self._build)


async def build_store_from_seed_packs(
    seed_dir: Union[str, Path],
    embedder: Embedder,
    dim: int,
) -> InMemoryVectorStore:
    store = InMemoryVectorStore(dim)
    packs = load_topic_packs(seed_dir)
    chunks = [chunk for pack in packs for chunk in pack.chunks]
    if not chunks:
        logger.warning(f"No seed chunks found in {seed_dir}; fallback index is empty")
        return store

    vectors = await embed_in_batches(embedder, [c.text_summary for c in chunks])
    for chunk, vector in zip(chunks, vectors):
        store.upsert(
            StoredChunk(
                id=chunk.id,
                topic=chunk.topic,
                subtopic=chunk.subtopic,
                text_summary=chunk.text_summary,
                tags=list(chunk.tags),
                source=source_ref(chunk),
            ),
            vector,
        )
    logger.info(f"Fallback index built with {len(store)} chunks from {len(packs)} packs")
    return store


# Keyed by (resolved seed dir, dim); entries outlive the event loop that built them
_seed_stores: Dict[Tuple[str, int], InMemoryVectorStore] = {}
_seed_failures: Dict[Tuple[str, int], Exception] = {}


async def load_seed_store(seed_dir: Union[str, Path], embedder: Embedder, dim: int) -> InMemoryVectorStore:
    """Build the seed store once per process; later loaders reuse the result or the failure"""
    key = (str(Path(seed_dir).resolve()), dim)
    if key in _seed_failures:
        raise _seed_failures[key]
    store = _seed_stores.get(key)
    if store is None:
        try:
            store = await build_store_from_seed_packs(seed_dir, embedder, dim)
        except Exception as e:
            _seed_failures[key] = e
            raise
        _seed_stores[key] = store
    return store


def seed_pack_index(seed_dir: Union[str, Path], embedder: Embedder, dim: int) -> FallbackIndex:
    return FallbackIndex(lambda: load_seed_store(seed_dir, embedder, dim))
