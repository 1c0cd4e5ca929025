"""
Client for the hosted embedding endpoint (OpenAI-compatible /embeddings).
One request per text; failures are raised to the caller, never retried.
"""
from typing import List, Optional, Sequence

import aiohttp

from .config import (
    EMBEDDING_API_URL,
    EMBEDDING_DIMENSIONS,
    EMBEDDING_MODEL,
    EMBEDDING_TIMEOUT_SECONDS,
    OPENROUTER_API_KEY,
)
from .errors import EmbeddingError
from .logging_config import logger


def _headers() -> dict:
    return {
        "Authorization": f"Bearer {OPENROUTER_API_KEY}",
        "Content-Type": "application/json",
    }


def _parse_embedding(data) -> List[float]:
    try:
        vector = data["data"][0]["embedding"]
    except (KeyError, IndexError, TypeError):
        vector = None
    if not vector:
        raise EmbeddingError(f"Unexpected embedding response: {str(data)[:200]}")
    if len(vector) != EMBEDDING_DIMENSIONS:
        raise EmbeddingError(
            f"Embedding has {len(vector)} dimensions, expected {EMBEDDING_DIMENSIONS}"
        )
    return [float(x) for x in vector]


async def _post(session: aiohttp.ClientSession, text: str) -> List[float]:
    async with session.post(
        EMBEDDING_API_URL,
        json={
            "model": EMBEDDING_MODEL,
            "input": text,
            "dimensions": EMBEDDING_DIMENSIONS,
        },
        headers=_headers(),
    ) as resp:
        if resp.status >= 400:
            body = await resp.text()
            logger.error("Embedding API error", status=resp.status, body=body[:200])
            raise EmbeddingError(f"Embedding API error ({resp.status}): {body[:200]}")
        try:
            data = await resp.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError) as e:
            body = await resp.text()
            logger.error("Embedding API returned non-JSON", body=body[:200])
            raise EmbeddingError(f"Unexpected embedding response: {body[:200]}") from e
    return _parse_embedding(data)


async def embed_text(text: str, session: Optional[aiohttp.ClientSession] = None) -> List[float]:
    """
    Embed a single string.

    Args:
        text: Input text
        session: Optional shared aiohttp session; a short-lived one is opened otherwise

    Returns:
        The embedding vector (EMBEDDING_DIMENSIONS floats)

    Raises:
        EmbeddingError: On a non-success status or a malformed payload
    """
    if session is not None:
        return await _post(session, text)

    timeout = aiohttp.ClientTimeout(total=EMBEDDING_TIMEOUT_SECONDS)
    async with aiohttp.ClientSession(timeout=timeout) as own_session:
        return await _post(own_session, text)


def to_vector_literal(vec: Sequence[float]) -> str:
    """Format a vector as a pgvector literal, e.g. '[0.1,0.2]'."""
    return "[" + ",".join(str(float(x)) for x in vec) + "]"
