"""
Document management API routes.
Handles document upload and listing per chat.
"""
import os
import shutil
import tempfile
from typing import Optional

from fastapi import APIRouter, UploadFile, File, Form, HTTPException
from fastapi.responses import JSONResponse

from ..config import DEFAULT_CHAT_ID, MAX_UPLOAD_BYTES
from ..errors import EmptyDocumentError, IngestionError, UnsupportedFormatError
from ..schemas import UploadResponse
from ..services.ingestion_service import ingest_file, list_documents
from ..text_extraction import validate_extension
from ..logging_config import logger

router = APIRouter(prefix="/api", tags=["documents"])


def _upload_size(f: UploadFile) -> int:
    f.file.seek(0, os.SEEK_END)
    size_bytes = f.file.tell()
    f.file.seek(0)  # reset for later reading
    return size_bytes


# ==================== Document Upload ====================

@router.post("/upload")
async def upload_document(
    file: UploadFile = File(...),
    chat_id: Optional[str] = Form(None),
):
    """
    Upload one document into a chat.

    Supported formats: PDF, TXT, MD, DOCX (max 20 MB)

    Process:
    1. Check the extension and size
    2. Save the upload to a temp file
    3. Extract text and split it into chunks
    4. Embed and store each chunk (failed chunks are reported, not fatal)

    Returns:
        Upload summary with indexed and total chunk counts
    """
    file_name = file.filename or "unnamed_document"
    chat_id = chat_id or DEFAULT_CHAT_ID

    try:
        ext = validate_extension(file_name)
    except UnsupportedFormatError as e:
        logger.warning("Unsupported upload", filename=file_name)
        return JSONResponse({"error": e.message}, status_code=400)

    size_bytes = _upload_size(file)
    if size_bytes > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=(
                f"File '{file_name}' is too large. "
                f"Max size is {MAX_UPLOAD_BYTES // (1024 * 1024)} MB."
            ),
        )

    logger.info("Processing file", filename=file_name, size_bytes=size_bytes, chat_id=chat_id)

    with tempfile.NamedTemporaryFile(delete=False, suffix=ext) as tmp:
        shutil.copyfileobj(file.file, tmp)
        tmp_path = tmp.name

    try:
        summary = await ingest_file(tmp_path, file_name, chat_id)
    except (UnsupportedFormatError, EmptyDocumentError) as e:
        return JSONResponse({"error": e.message}, status_code=400)
    except IngestionError as e:
        return JSONResponse(
            {"error": "No chunk could be indexed", "details": e.errors},
            status_code=500,
        )
    except Exception as e:
        logger.error("Error processing document", filename=file_name, exc_info=e)
        return JSONResponse(
            {"error": "Error processing the document", "details": str(e)},
            status_code=500,
        )
    finally:
        try:
            os.remove(tmp_path)
        except OSError:
            pass

    return UploadResponse(
        message="Document indexed successfully",
        fileName=summary["fileName"],
        chunks=summary["chunks"],
        totalChunks=summary["totalChunks"],
        errors=summary["errors"] or None,
        textLength=summary["textLength"],
    ).model_dump(exclude_none=True)


# ==================== Document Listing ====================

@router.get("/chats/{chat_id}/documents")
async def get_documents(chat_id: str):
    """
    Returns the files indexed into a chat with chunk counts.
    """
    documents = list_documents(chat_id)
    logger.info("Listed documents", chat_id=chat_id, count=len(documents))
    return documents
