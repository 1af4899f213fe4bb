"""
ChromaDB access and the Retriever.

The corpus is indexed by an external ingestion job into one collection.
Each record carries the passage text as its document and these metadata
fields: ``title``, ``url``, ``type``, ``country``, ``year``, and
optionally ``source_id`` and ``corpus_index`` (insertion order).
"""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Any

import chromadb

from knowhub.core.config import Settings
from knowhub.core.errors import UpstreamError
from knowhub.schemas.search import RetrievalPage, SearchFilters, Snippet, SortMode
from knowhub.utils.logging import get_logger

logger = get_logger("knowhub.services.vector_store")

# SearchFilters field -> metadata key, for the exact string matches pushed
# into the ChromaDB where clause.  Year constraints are checked after the
# query (see matches_filters) because the index stores years as int or str.
WHERE_FIELDS = {"topic": "type", "country": "country"}

MAX_CANDIDATES = 1000
FILTERED_POOL_FACTOR = 10


def _persist_directory(config: Settings) -> str:
    if config.chromadb_persist_directory:
        return config.chromadb_persist_directory
    return str(Path.cwd() / "vector_db" / "chroma_db")


_chroma_lock = threading.Lock()
_chroma_clients: dict[str, chromadb.ClientAPI] = {}


def get_chroma_client(config: Settings) -> chromadb.ClientAPI:
    """One PersistentClient per persist path for the whole process."""
    path = _persist_directory(config)
    with _chroma_lock:
        if path not in _chroma_clients:
            _chroma_clients[path] = chromadb.PersistentClient(
                path=path,
                settings=chromadb.Settings(anonymized_telemetry=False),
            )
            logger.info("ChromaDB client opened at %s", path)
        return _chroma_clients[path]


def open_collection(config: Settings) -> Any:
    return get_chroma_client(config).get_or_create_collection(
        name=config.chroma_collection,
        metadata={"hnsw:space": "cosine"},
    )


def build_where(filters: SearchFilters) -> dict[str, Any] | None:
    """Translate the active topic/country filters into a ChromaDB ``where`` clause."""
    clauses = [
        {WHERE_FIELDS[field]: value}
        for field, value in filters.active().items()
        if field in WHERE_FIELDS
    ]
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _as_year(value: Any) -> int | None:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def matches_filters(metadata: dict[str, Any], filters: SearchFilters) -> bool:
    for field, key in WHERE_FIELDS.items():
        expected = getattr(filters, field)
        if expected and metadata.get(key) != expected:
            return False

    if filters.year is None and filters.year_from is None and filters.year_to is None:
        return True
    year = _as_year(metadata.get("year"))
    if year is None:
        return False
    if filters.year is not None:
        return year == filters.year
    if filters.year_from is not None and year < filters.year_from:
        return False
    if filters.year_to is not None and year > filters.year_to:
        return False
    return True


def sort_by_date(snippets: list[Snippet]) -> list[Snippet]:
    """Newest first, undated last; relevance order is kept within a year."""
    return sorted(snippets, key=lambda s: (s.year is None, -(s.year or 0)))


def snippet_from_record(
    record_id: str,
    document: str | None,
    metadata: dict[str, Any] | None,
    score: float = 0.0,
) -> Snippet:
    meta = metadata or {}
    url = meta.get("url") or ""
    return Snippet(
        title=meta.get("title") or url or record_id,
        url=url,
        text=document or "",
        relevance_score=score,
        source_id=str(meta.get("source_id") or record_id),
        type=meta.get("type"),
        country=meta.get("country"),
        year=_as_year(meta.get("year")),
    )


class Retriever:
    """Similarity search over the indexed corpus."""

    def __init__(self, collection: Any):
        self._collection = collection

    async def search(
        self,
        embedding: list[float],
        filters: SearchFilters | None = None,
        limit: int = 10,
        offset: int = 0,
        sort_by: SortMode = "relevance",
    ) -> RetrievalPage:
        """
        Rank by descending cosine similarity (or, with ``sort_by="date"``,
        newest first over the same candidates), then slice
        ``[offset, offset+limit)``.

        Ties keep corpus insertion order.  Every returned snippet satisfies
        all active filters.
        """
        filters = filters or SearchFilters()
        where = build_where(filters)

        pool = offset + limit + 1
        if filters.active():
            pool *= FILTERED_POOL_FACTOR
        pool = min(pool, MAX_CANDIDATES)

        def _sync_query() -> dict[str, Any]:
            kwargs: dict[str, Any] = {
                "query_embeddings": [embedding],
                "n_results": pool,
                "include": ["documents", "metadatas", "distances"],
            }
            if where is not None:
                kwargs["where"] = where
            return self._collection.query(**kwargs)

        loop = asyncio.get_running_loop()
        try:
            results = await loop.run_in_executor(None, _sync_query)
        except Exception as e:
            raise UpstreamError("retrieval", str(e)) from e

        ranked = self._rank(results, filters)
        if sort_by == "date":
            ranked = sort_by_date(ranked)
        page = ranked[offset:offset + limit]
        logger.debug(
            "[RETRIEVE] %d candidates, %d after filters, returning %d",
            len((results.get("ids") or [[]])[0]),
            len(ranked),
            len(page),
        )
        return RetrievalPage(snippets=page, has_more=len(ranked) > offset + limit)

    @staticmethod
    def _rank(results: dict[str, Any], filters: SearchFilters) -> list[Snippet]:
        ids = (results.get("ids") or [[]])[0]
        documents = (results.get("documents") or [[]])[0] or [None] * len(ids)
        metadatas = (results.get("metadatas") or [[]])[0] or [None] * len(ids)
        distances = (results.get("distances") or [[]])[0] or [1.0] * len(ids)

        scored: list[tuple[float, int, Snippet]] = []
        for position, record_id in enumerate(ids):
            meta = metadatas[position] or {}
            if not matches_filters(meta, filters):
                continue
            score = 1.0 - float(distances[position])
            order = meta.get("corpus_index")
            if not isinstance(order, int):
                order = position
            snippet = snippet_from_record(record_id, documents[position], meta, score)
            scored.append((score, order, snippet))

        scored.sort(key=lambda t: (-t[0], t[1]))
        return [s for _, _, s in scored]

    async def sample(self, n: int) -> list[Snippet]:
        """Up to ``n`` corpus records in index order, unscored."""

        def _sync_get() -> dict[str, Any]:
            return self._collection.get(limit=n, include=["documents", "metadatas"])

        loop = asyncio.get_running_loop()
        try:
            results = await loop.run_in_executor(None, _sync_get)
        except Exception as e:
            raise UpstreamError("retrieval", str(e)) from e

        ids = results.get("ids") or []
        documents = results.get("documents") or [None] * len(ids)
        metadatas = results.get("metadatas") or [None] * len(ids)
        return [
            snippet_from_record(record_id, documents[i], metadatas[i])
            for i, record_id in enumerate(ids)
        ]
