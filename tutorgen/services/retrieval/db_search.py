"""
Indexed corpus search (pgvector)
"""

import logging
from typing import List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutorgen.services.errors import RetrievalFailure
from .vector_store import RankedChunk, StoredChunk

logger = logging.getLogger(__name__)

MATCH_CHUNKS_SQL = """
SELECT id, topic, subtopic, text_summary, tags, source_ref,
       1 - (embedding <=> CAST(:query AS vector)) AS similarity
FROM corpus_chunks
{where}
ORDER BY embedding <=> CAST(:query AS vector)
LIMIT :k
"""


def _vector_literal(vector: Sequence[float]) -> str:
    return "[" + ",".join(repr(float(x)) for x in vector) + "]"


class DatabaseChunkSearch:
    """Cosine search over corpus_chunks; only available on PostgreSQL"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def search(
        self,
        query_vector: Sequence[float],
        k: int,
        topic_filter: Optional[str] = None,
    ) -> List[RankedChunk]:
        params = {"query": _vector_literal(query_vector), "k": k}
        where = ""
        if topic_filter:
            where = "WHERE lower(topic) = lower(:topic)"
            params["topic"] = topic_filter

        try:
            async with self.session_factory() as session:
                dialect = session.get_bind().dialect.name
                if dialect != "postgresql":
                    raise RetrievalFailure(f"Vector search is not available on {dialect}")
                result = await session.execute(text(MATCH_CHUNKS_SQL.format(where=where)), params)
                rows = result.mappings().all()
        except SQLAlchemyError as e:
            raise RetrievalFailure(f"Corpus search failed: {e}")

        return [
            RankedChunk(
                StoredChunk(
                    id=row["id"],
                    topic=row["topic"],
                    subtopic=row["subtopic"],
                    text_summary=row["text_summary"],
                    tags=list(row["tags"] or []),
                    source=dict(row["source_ref"] or {}),
                ),
                float(row["similarity"]),
            )
            for row in rows
        ]
