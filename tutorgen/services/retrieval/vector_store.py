"""
In-process brute-force vector store
"""

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| |b|); 0.0 when either norm is zero"""
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


@dataclass(frozen=True)
class StoredChunk:
    id: str
    topic: str
    text_summary: str
    subtopic: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    source: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RankedChunk:
    chunk: StoredChunk
    score: float


class InMemoryVectorStore:
    """Read-only once built; safe to share across concurrent readers"""

    def __init__(self, dim: int):
        self.dim = dim
        self._items: List[tuple] = []

    def __len__(self) -> int:
        return len(self._items)

    def upsert(self, chunk: StoredChunk, embedding: Sequence[float]) -> None:
        if len(embedding) != self.dim:
            raise ValueError(f"Embedding for {chunk.id} has dim {len(embedding)}, expected {self.dim}")
        vector = [float(x) for x in embedding]
        for i, (existing, _) in enumerate(self._items):
            if existing.id == chunk.id:
                self._items[i] = (chunk, vector)
                return
        self._items.append((chunk, vector))

    def search(
        self,
        query: Sequence[float],
        k: int,
        where: Optional[Callable[[StoredChunk], bool]] = None,
        min_score: float = float("-inf"),
    ) -> List[RankedChunk]:
        """Top-k by cosine similarity; equal scores keep insertion order"""
        if k <= 0:
            return []
        scored = [
            RankedChunk(chunk, cosine(query, vector))
            for chunk, vector in self._items
            if where is None or where(chunk)
        ]
        scored = [r for r in scored if r.score >= min_score]
        # sorted() is stable
        scored = sorted(scored, key=lambda r: -r.score)
        return scored[:k]
