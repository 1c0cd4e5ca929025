"""
Document ingestion service.
Extracts text from an upload, chunks it, embeds each chunk and stores one
documents row per chunk. Chunk failures are collected, not fatal.
"""
from datetime import datetime, timezone
from time import perf_counter
from typing import Dict, List

import aiohttp

from ..config import EMBEDDING_TIMEOUT_SECONDS, MIN_TEXT_CHARS
from ..db import SessionLocal
from ..embedding import embed_text
from ..errors import EmptyDocumentError, IngestionError
from ..logging_config import logger
from ..models import Document
from ..text_extraction import extract_text, chunk_text
from .conversation_service import ensure_chat


def _store_chunk(chat_id: str, content: str, vector: List[float], metadata: Dict) -> str:
    with SessionLocal() as db, db.begin():
        doc = Document(chat_id=chat_id, content=content, embedding=vector, meta=metadata)
        db.add(doc)
        db.flush()
        return doc.id


async def ingest_file(file_path: str, file_name: str, chat_id: str) -> Dict:
    """
    Index one uploaded file into a chat.

    Args:
        file_path: Where the upload was saved
        file_name: Original file name (decides the format and is stored as source)
        chat_id: Chat the chunks belong to

    Returns:
        Dict with fileName, chunks (indexed), totalChunks, errors, textLength

    Raises:
        UnsupportedFormatError: Extension is not supported
        EmptyDocumentError: Extracted text is empty or near-empty
        IngestionError: No chunk could be indexed
    """
    start = perf_counter()
    text = extract_text(file_path, file_name)
    if not text or len(text.strip()) < MIN_TEXT_CHARS:
        raise EmptyDocumentError(file_name)

    logger.info("Extracted text", filename=file_name, text_length=len(text))

    chunks = chunk_text(text)
    total = len(chunks)
    logger.info("Created chunks", filename=file_name, chunk_count=total)

    ensure_chat(chat_id)

    uploaded_at = datetime.now(timezone.utc).isoformat()
    processed = 0
    errors: List[str] = []

    timeout = aiohttp.ClientTimeout(total=EMBEDDING_TIMEOUT_SECONDS)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        for index, chunk in enumerate(chunks):
            try:
                vector = await embed_text(chunk, session=session)
                _store_chunk(
                    chat_id,
                    chunk,
                    vector,
                    {
                        "fileName": file_name,
                        "chunkIndex": index,
                        "totalChunks": total,
                        "chunkLength": len(chunk),
                        "uploadedAt": uploaded_at,
                    },
                )
                processed += 1
                logger.debug("Chunk indexed", filename=file_name, chunk=index + 1, total=total)
            except Exception as e:
                logger.error("Chunk failed", filename=file_name, chunk=index + 1, error=str(e))
                errors.append(f"Chunk {index + 1}: {e}")

    if processed == 0:
        raise IngestionError(file_name, errors)

    logger.info(
        "Document indexed",
        filename=file_name,
        chat_id=chat_id,
        chunks=processed,
        errors=len(errors),
        time_ms=round((perf_counter() - start) * 1000, 2),
    )
    return {
        "fileName": file_name,
        "chunks": processed,
        "totalChunks": total,
        "errors": errors,
        "textLength": len(text),
    }


def list_documents(chat_id: str) -> List[Dict]:
    """
    Files uploaded to a chat, grouped by file name.

    Returns:
        List of {fileName, chunks, uploadedAt}, most recent upload first
    """
    with SessionLocal() as db:
        rows = db.query(Document.meta).filter(Document.chat_id == chat_id).all()

    grouped: Dict[str, Dict] = {}
    for (meta,) in rows:
        meta = meta or {}
        name = meta.get("fileName") or "Unnamed document"
        entry = grouped.setdefault(name, {"fileName": name, "chunks": 0, "uploadedAt": None})
        entry["chunks"] += 1
        uploaded = meta.get("uploadedAt")
        if uploaded and (entry["uploadedAt"] is None or uploaded > entry["uploadedAt"]):
            entry["uploadedAt"] = uploaded

    return sorted(grouped.values(), key=lambda d: d["uploadedAt"] or "", reverse=True)
