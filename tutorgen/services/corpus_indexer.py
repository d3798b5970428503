"""
Corpus Indexer
Loads topic packs from JSON and imports them into the retrieval corpus
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Protocol, Sequence, Union

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutorgen.models.database import CorpusChunk, CorpusPack
from tutorgen.schemas.corpus import TopicPack
from .retry import RetryPolicy, with_retries

logger = logging.getLogger(__name__)

EMBED_BATCH_SIZE = 64


class Embedder(Protocol):
    async def embed(self, texts: List[str], model: Optional[str] = None) -> List[List[float]]:
        ...


def load_topic_packs(seed_dir: Union[str, Path]) -> List[TopicPack]:
    """Read every *.json pack in name order; invalid files are skipped with an error log"""
    path = Path(seed_dir)
    if not path.is_dir():
        logger.warning(f"Topic pack directory not found: {path}")
        return []

    packs = []
    for file in sorted(path.glob("*.json")):
        try:
            data = json.loads(file.read_text(encoding="utf-8"))
            packs.append(TopicPack.model_validate(data))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Skipping invalid topic pack {file.name}: {e}")
    return packs


async def embed_in_batches(
    embedder: Embedder,
    texts: Sequence[str],
    batch_size: int = EMBED_BATCH_SIZE,
    policy: Optional[RetryPolicy] = None,
) -> List[List[float]]:
    vectors: List[List[float]] = []
    for start in range(0, len(texts), batch_size):
        batch = list(texts[start:start + batch_size])
        vectors.extend(await with_retries(lambda: embedder.embed(batch), policy))
    return vectors


def source_ref(chunk: Any) -> dict:
    return chunk.source.model_dump(exclude_none=True)


async def import_topic_pack(
    session_factory: async_sessionmaker[AsyncSession],
    embedder: Embedder,
    pack: TopicPack,
    batch_size: int = EMBED_BATCH_SIZE,
    policy: Optional[RetryPolicy] = None,
) -> int:
    """
    Embed and insert a pack's chunks. Chunks are immutable: ids already
    present are skipped, never updated. Returns the number inserted.
    """
    async with session_factory() as session:
        existing = set(
            (await session.execute(
                select(CorpusChunk.id).where(CorpusChunk.id.in_([c.id for c in pack.chunks]))
            )).scalars().all()
        )
        new_chunks = [c for c in pack.chunks if c.id not in existing]
        if not new_chunks:
            logger.info(f"Pack {pack.id}: all {len(pack.chunks)} chunks already indexed")
            return 0

        vectors = await embed_in_batches(
            embedder, [c.text_summary for c in new_chunks], batch_size, policy
        )

        if await session.get(CorpusPack, pack.id) is None:
            session.add(CorpusPack(
                id=pack.id,
                topic=pack.topic,
                subtopic=pack.subtopic,
                version=pack.version,
                locale=pack.locale,
            ))

        for chunk, vector in zip(new_chunks, vectors):
            session.add(CorpusChunk(
                id=chunk.id,
                pack_id=pack.id,
                topic=chunk.topic,
                subtopic=chunk.subtopic,
                text_summary=chunk.text_summary,
                tags=chunk.tags,
                source_ref=source_ref(chunk),
                embedding=vector,
            ))
        await session.commit()

    logger.info(f"Pack {pack.id}: inserted {len(new_chunks)} chunks, skipped {len(existing)}")
    return len(new_chunks)
