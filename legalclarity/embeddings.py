"""Chunk embeddings: remote embedding client, per-document store and similarity search.

Records are appended to a Redis list ``embeddings:{document_id}`` when a
Redis client is available, otherwise kept in process memory.
"""
from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import httpx
import numpy as np
import redis
from redis.exceptions import RedisError

from .config import CacheSettings, EmbeddingSettings
from .retry import with_retry

logger = logging.getLogger(__name__)

EMBEDDING_KEY_PREFIX = "embeddings:"


class EmbeddingError(RuntimeError):
    """The embedding service returned no usable vector."""


@dataclass
class EmbeddingRecord:
    document_id: str
    chunk_id: str
    embedding: List[float]
    text: str

    def to_json(self) -> str:
        return json.dumps(
            {"chunkId": self.chunk_id, "embedding": self.embedding, "text": self.text}
        )

    @classmethod
    def from_json(cls, document_id: str, raw: str) -> "EmbeddingRecord":
        data = json.loads(raw)
        return cls(
            document_id=document_id,
            chunk_id=data["chunkId"],
            embedding=[float(v) for v in data["embedding"]],
            text=data.get("text", ""),
        )


@dataclass
class ScoredChunk:
    record: EmbeddingRecord
    score: float

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self.record)
        data.pop("embedding")
        data["score"] = self.score
        return data


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors; 0.0 if either is all zeros."""
    a_vec = np.asarray(a, dtype=float)
    b_vec = np.asarray(b, dtype=float)
    if a_vec.shape != b_vec.shape:
        raise ValueError("Embedding vectors must be same length")
    norm = np.linalg.norm(a_vec) * np.linalg.norm(b_vec)
    if norm == 0:
        return 0.0
    return float(np.dot(a_vec, b_vec) / norm)


class EmbeddingClient:
    """HTTP client for a text embedding endpoint.

    ``POST {api_url}`` with ``{"text": ...}`` returns ``{"embedding": [...]}``;
    ``POST {api_url}/batch`` with ``{"texts": [...]}`` returns
    ``{"embeddings": [[...], ...]}``. Transient failures are retried.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        *,
        timeout: float = 30.0,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_url or not api_key:
            raise EmbeddingError("Embedding API config missing")
        self._api_url = api_url.rstrip("/")
        self._headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: EmbeddingSettings) -> "EmbeddingClient":
        if not settings.is_configured():
            raise EmbeddingError("Embedding API config missing")
        return cls(
            settings.api_url or "",
            settings.api_key.get_secret_value() if settings.api_key else "",
            timeout=settings.timeout,
        )

    async def embed(self, text: str) -> List[float]:
        data = await self._post(self._api_url, {"text": text})
        embedding = data.get("embedding")
        if not embedding:
            raise EmbeddingError("No embedding returned")
        return [float(v) for v in embedding]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        data = await self._post(f"{self._api_url}/batch", {"texts": list(texts)})
        embeddings = data.get("embeddings")
        if not embeddings:
            raise EmbeddingError("No embeddings returned")
        return [[float(v) for v in vector] for vector in embeddings]

    async def _post(self, url: str, body: dict) -> dict:
        async def call() -> dict:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, json=body, headers=self._headers)
                response.raise_for_status()
                return response.json()

        return await with_retry(call, max_attempts=self._max_attempts, base_delay=self._base_delay)


class EmbeddingStore:
    """Append-only per-document store of chunk embeddings."""

    def __init__(self, client: Optional[redis.Redis] = None, *, key_prefix: str = EMBEDDING_KEY_PREFIX) -> None:
        self._client = client
        self._prefix = key_prefix
        self._memory: Dict[str, List[EmbeddingRecord]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> "EmbeddingStore":
        client = None
        if settings.redis_url:
            client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        return cls(client)

    def _key(self, document_id: str) -> str:
        return f"{self._prefix}{document_id}"

    async def store(self, record: EmbeddingRecord) -> None:
        if self._client is not None:
            try:
                await asyncio.to_thread(self._client.rpush, self._key(record.document_id), record.to_json())
                return
            except RedisError as exc:
                logger.warning("Redis embedding store failed; using in-process store", extra={"error": str(exc)})
        with self._lock:
            self._memory.setdefault(record.document_id, []).append(record)

    async def get(self, document_id: str) -> List[EmbeddingRecord]:
        if self._client is not None:
            try:
                values = await asyncio.to_thread(self._client.lrange, self._key(document_id), 0, -1)
                return [
                    EmbeddingRecord.from_json(document_id, v.decode("utf-8") if isinstance(v, bytes) else v)
                    for v in values
                ]
            except RedisError as exc:
                logger.warning("Redis embedding read failed; using in-process store", extra={"error": str(exc)})
        with self._lock:
            return list(self._memory.get(document_id, []))

    async def clear(self, document_id: str) -> None:
        if self._client is not None:
            try:
                await asyncio.to_thread(self._client.delete, self._key(document_id))
            except RedisError as exc:
                logger.warning("Redis embedding clear failed", extra={"error": str(exc)})
        with self._lock:
            self._memory.pop(document_id, None)


def chunk_id_for(document_id: str, index: int) -> str:
    return f"{document_id}:chunk:{index}"


async def embed_and_store_chunks(
    document_id: str,
    chunks: Iterable[str],
    *,
    embedder: EmbeddingClient,
    store: EmbeddingStore,
) -> int:
    """Embed each chunk and store it; failed chunks are logged and skipped.

    Returns the number of chunks stored.
    """
    stored = 0
    for index, text in enumerate(chunks):
        chunk_id = chunk_id_for(document_id, index)
        try:
            embedding = await embedder.embed(text)
        except Exception as exc:
            logger.error("Embedding failed for chunk", extra={"chunk_id": chunk_id, "error": str(exc)})
            continue
        await store.store(EmbeddingRecord(document_id, chunk_id, embedding, text))
        stored += 1
    logger.info("Stored chunk embeddings", extra={"document_id": document_id, "stored": stored})
    return stored


async def find_similar_chunks(
    document_id: str,
    query: str,
    *,
    embedder: EmbeddingClient,
    store: EmbeddingStore,
    top_k: int = 5,
) -> List[ScoredChunk]:
    """Rank a document's stored chunks by similarity to ``query``."""
    records = await store.get(document_id)
    if not records:
        return []
    query_vector = np.asarray(await embedder.embed(query), dtype=float)
    candidates = [record for record in records if len(record.embedding) == query_vector.shape[0]]
    if not candidates:
        return []

    matrix = np.vstack([np.asarray(record.embedding, dtype=float) for record in candidates])
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vector)
    dots = matrix @ query_vector
    # Zero-norm rows score 0.0.
    scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0)
    order = np.argsort(-scores, kind="stable")[:top_k]
    return [ScoredChunk(record=candidates[i], score=float(scores[i])) for i in order]
