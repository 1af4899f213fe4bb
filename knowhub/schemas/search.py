"""
Schemas for the /search pipeline.

SearchFilters + pagination go in, Snippets come out of the Retriever,
AnswerPayload comes out of the AnswerSynthesizer, and SearchResponse
is what the endpoint returns (and what QueryCache stores).
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SortMode = Literal["relevance", "date"]


class SearchFilters(BaseModel):
    """
    Constraints on the metadata of returned snippets; an absent field
    imposes nothing.  An exact ``year`` takes precedence over the
    inclusive ``year_from`` / ``year_to`` range.
    """
    topic: str | None = None
    country: str | None = None
    year: int | None = None
    year_from: int | None = None
    year_to: int | None = None

    def active(self) -> dict[str, str | int]:
        """Only the fields that constrain the search, in sorted key order."""
        return {
            key: value
            for key, value in sorted(self.model_dump().items())
            if value is not None and value != ""
        }


class Snippet(BaseModel):
    """One ranked passage from the indexed corpus."""
    model_config = ConfigDict(frozen=True)

    title: str
    url: str
    text: str = ""
    relevance_score: float = 0.0
    source_id: str
    type: str | None = None
    country: str | None = None
    year: int | None = None

    @property
    def has_text(self) -> bool:
        return bool(self.text and self.text.strip())


class RetrievalPage(BaseModel):
    """A page of ranked snippets plus whether more exist past it."""
    snippets: list[Snippet] = Field(default_factory=list)
    has_more: bool = False


class Citation(BaseModel):
    title: str
    url: str


class AnswerBullet(BaseModel):
    text: str
    cites: list[Citation] = Field(default_factory=list)


class AnswerPayload(BaseModel):
    """
    Synthesized answer.  Every cite URL is one of the snippet URLs that
    were handed to synthesis; an empty list is the no-evidence fallback.
    """
    answer: list[AnswerBullet] = Field(default_factory=list)

    @property
    def citation_count(self) -> int:
        return sum(len(b.cites) for b in self.answer)


class ResultItem(BaseModel):
    id: str
    title: str
    type: str | None = None
    summary: str
    country: str | None = None
    year: int | None = None
    url: str
    score: float = 0.0


class SearchResponse(BaseModel):
    query: str
    answer: list[AnswerBullet] | None = None
    items: list[ResultItem] = Field(default_factory=list)
    limit: int
    offset: int
    sort_by: SortMode = "relevance"
    has_more: bool = False
    cached: bool = False
