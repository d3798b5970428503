"""
Topic Pack Schemas
Seed corpus format for the retrieval index
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class Source(BaseModel):
    url: str
    title: str
    author: Optional[str] = None
    published_at: Optional[str] = None
    license: Optional[str] = None


class Chunk(BaseModel):
    id: str = Field(..., min_length=1, max_length=128)
    topic: str
    subtopic: Optional[str] = None
    text_summary: str = Field(..., min_length=1)
    tags: List[str] = []
    source: Source


class TopicPack(BaseModel):
    """A versioned group of chunks for one topic"""
    id: str = Field(..., min_length=1, max_length=128)
    topic: str
    subtopic: Optional[str] = None
    version: str = "1"
    locale: str = "en"
    chunks: List[Chunk] = Field(..., min_length=4)
    created_at: Optional[str] = None
