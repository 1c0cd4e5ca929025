from typing import Any, Dict, List, Optional
from time import perf_counter
import json

from sqlalchemy import text as sa_text

from .config import TOP_K
from .db import engine
from .embedding import embed_text, to_vector_literal
from .logging_config import logger
from .schemas import ChunkMetadata, SearchResult

UNNAMED_SOURCE = "Unnamed document"
NOT_AVAILABLE = "N/A"
EMPTY_QUERY_ERROR = (
    "The query is empty. Infer a topic from the user's question "
    "(for example: 'document summary') and try again."
)


def query_nearest(vector: List[float], chat_id: Optional[str], top_k: int = TOP_K) -> List[Dict]:
    """
    Fetch the top_k chunks closest to vector by cosine distance.

    Parameters:
    vector (List[float]): The query embedding.
    chat_id (Optional[str]): Restrict to one chat's chunks; None searches all.
    top_k (int): Number of rows to return.

    Returns:
    List[Dict]: Rows with id, content, metadata and similarity (1 - distance),
    closest first.
    """
    scope = 'AND chat_id = :chat_id' if chat_id is not None else ''
    sql = sa_text(f"""
        SELECT
            id,
            content,
            metadata,
            1 - (embedding <=> CAST(:qv AS vector)) AS similarity
        FROM documents
        WHERE embedding IS NOT NULL
          {scope}
        ORDER BY embedding <=> CAST(:qv AS vector) ASC
        LIMIT :k
    """)
    params = {"qv": to_vector_literal(vector), "k": top_k}
    if chat_id is not None:
        params["chat_id"] = chat_id

    t = perf_counter()
    with engine.begin() as conn:
        rows = conn.execute(sql, params).mappings().all()
    logger.info("Vector search finished", rows=len(rows), time_ms=round((perf_counter() - t) * 1000, 2))
    return [dict(r) for r in rows]


def similarity_percent(similarity) -> float:
    """Rescale a 1 - distance similarity into a percentage in [0, 100], 2 decimals."""
    value = float(similarity)
    value = max(0.0, min(1.0, value))
    return round(value * 100, 2)


def format_result(rank: int, row: Dict[str, Any]) -> Dict[str, Any]:
    metadata = row.get("metadata") or {}
    if isinstance(metadata, str):
        metadata = json.loads(metadata)
    content = row.get("content") or ""

    chunk_index = metadata.get("chunkIndex")
    total_chunks = metadata.get("totalChunks")
    result = SearchResult(
        rank=rank,
        source=metadata.get("fileName") or UNNAMED_SOURCE,
        content=content,
        similarityScore=similarity_percent(row.get("similarity") or 0),
        chunkMetadata=ChunkMetadata(
            chunkIndex=chunk_index if chunk_index is not None else NOT_AVAILABLE,
            totalChunks=total_chunks if total_chunks is not None else NOT_AVAILABLE,
            chunkLength=metadata.get("chunkLength") or len(content),
            uploadedAt=metadata.get("uploadedAt") or NOT_AVAILABLE,
        ),
        documentId=str(row["id"]) if row.get("id") is not None else None,
    )
    return result.model_dump()


async def search_in_rag(query: str, chat_id: Optional[str]) -> Dict[str, Any]:
    """
    Retrieval tool body: top-k chunks for a natural-language query.

    Never raises. Failures come back as {"results": [], "error": message} so
    the agent loop can tell the user what went wrong.
    """
    if not query or not query.strip():
        logger.warning("Empty RAG query", chat_id=chat_id)
        return {"results": [], "error": EMPTY_QUERY_ERROR}

    try:
        logger.info("RAG search", query=query, chat_id=chat_id)
        vector = await embed_text(query)
        rows = query_nearest(vector, chat_id)
        results = [format_result(i, row) for i, row in enumerate(rows, start=1)]
        return {"query": query, "totalResults": len(results), "results": results}
    except Exception as e:
        logger.error("RAG search failed", query=query, error=str(e))
        return {"results": [], "error": f"RAG search error: {e}"}
