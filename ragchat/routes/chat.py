"""
Chat-related API routes.
Handles the streaming RAG chat and chat management.
"""
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse

from ..config import DEFAULT_CHAT_ID
from ..errors import ChatNotFoundError
from ..schemas import ChatBody, CreateChatBody
from ..services.conversation_service import (
    create_chat,
    delete_chat,
    get_messages,
    list_chats,
)
from ..services.rag_service import handle_chat
from ..logging_config import logger

router = APIRouter(prefix="/api", tags=["chat"])


@router.get("/chat")
async def get_chat_messages(chat_id: Optional[str] = None):
    """
    Messages of a chat in chronological order, tool invocations normalized.
    Without chat_id the configured default chat is used.
    """
    try:
        return get_messages(chat_id or DEFAULT_CHAT_ID)
    except Exception as e:
        logger.error("Error fetching messages", exc_info=e)
        return JSONResponse([], status_code=500)


@router.post("/chat")
async def chat_stream(payload: ChatBody):
    """
    Streaming RAG endpoint using Server-Sent Events (SSE).

    Workflow:
    1. Create the chat on first use
    2. Store the user message
    3. Let the model call searchInRAG as needed (up to the step limit)
    4. Stream text deltas and tool activity
    5. Store the assistant message with its tool invocations
    """
    chat_id = payload.chat_id or DEFAULT_CHAT_ID
    if payload.messages[-1].role != "user":
        raise HTTPException(status_code=400, detail="Last message must come from the user")

    return StreamingResponse(
        handle_chat(payload, chat_id),
        media_type="text/event-stream",
    )


@router.get("/chats")
async def get_chats():
    """All chats, newest first."""
    try:
        return list_chats()
    except Exception as e:
        logger.error("Error listing chats", exc_info=e)
        return JSONResponse([], status_code=500)


@router.post("/chats")
async def post_chat(body: Optional[CreateChatBody] = None):
    try:
        return create_chat(body.title if body else None)
    except Exception as e:
        logger.error("Error creating chat", exc_info=e)
        raise HTTPException(status_code=500, detail="Could not create chat")


@router.delete("/chats/{chat_id}")
async def remove_chat(chat_id: str):
    """Delete a chat with its messages and indexed documents."""
    try:
        delete_chat(chat_id)
    except ChatNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except Exception as e:
        logger.error("Error deleting chat", chat_id=chat_id, exc_info=e)
        raise HTTPException(status_code=500, detail="Could not delete chat")
    return {"success": True}
