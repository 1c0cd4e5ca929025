"""
Conversation management service.
Handles CRUD operations for chats and their messages.
"""
from typing import Any, Dict, List, Optional

from ..config import DEFAULT_CHAT_ID, DEFAULT_CHAT_TITLE, NEW_CHAT_TITLE
from ..db import SessionLocal
from ..errors import ChatNotFoundError
from ..logging_config import logger
from ..models import Chat, Message
from ..schemas import ToolInvocation


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _chat_to_dict(chat: Chat) -> Dict[str, Any]:
    return {"id": chat.id, "title": chat.title, "created_at": _iso(chat.created_at)}


def normalize_tool_invocation(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a stored tool call onto the canonical invocation record.

    Older rows keep the call arguments under "input" and the tool output under
    "output"; newer rows use "args" and "result".

    Example:
        >>> normalize_tool_invocation({"toolCallId": "1", "toolName": "searchInRAG",
        ...                            "input": {"query": "x"}, "output": {"results": []}})
        {'toolCallId': '1', 'toolName': 'searchInRAG', 'args': {'query': 'x'}, 'result': {'results': []}}
    """
    args = raw.get("args")
    if args is None:
        args = raw.get("input")
    result = raw.get("result")
    if result is None:
        result = raw.get("output")
    return ToolInvocation(
        toolCallId=raw.get("toolCallId"),
        toolName=raw.get("toolName"),
        args=args if isinstance(args, dict) else {},
        result=result,
    ).model_dump()


def ensure_chat(chat_id: str, title: Optional[str] = None) -> Dict[str, Any]:
    """
    Return the chat with chat_id, creating it on first use.

    Args:
        chat_id: Chat identifier
        title: Title for a newly created chat; the default chat gets
               DEFAULT_CHAT_TITLE, any other NEW_CHAT_TITLE
    """
    with SessionLocal() as db, db.begin():
        chat = db.get(Chat, chat_id)
        if chat is None:
            if title is None:
                title = DEFAULT_CHAT_TITLE if chat_id == DEFAULT_CHAT_ID else NEW_CHAT_TITLE
            chat = Chat(id=chat_id, title=title)
            db.add(chat)
            db.flush()
            logger.info("Created chat on first use", chat_id=chat_id)
        return _chat_to_dict(chat)


def create_chat(title: Optional[str] = None) -> Dict[str, Any]:
    with SessionLocal() as db, db.begin():
        chat = Chat(title=title or NEW_CHAT_TITLE)
        db.add(chat)
        db.flush()
        db.refresh(chat)
        logger.info("Created new chat", chat_id=chat.id)
        return _chat_to_dict(chat)


def list_chats() -> List[Dict[str, Any]]:
    """All chats, newest first."""
    with SessionLocal() as db:
        chats = db.query(Chat).order_by(Chat.created_at.desc()).all()
        return [_chat_to_dict(c) for c in chats]


def delete_chat(chat_id: str) -> None:
    """
    Delete a chat together with its messages and indexed documents.

    Raises:
        ChatNotFoundError: If the chat does not exist
    """
    with SessionLocal() as db, db.begin():
        chat = db.get(Chat, chat_id)
        if chat is None:
            raise ChatNotFoundError(chat_id)
        db.delete(chat)
    logger.info("Deleted chat", chat_id=chat_id)


def store_message(
    chat_id: str,
    role: str,
    content: str,
    tool_invocations: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """
    Append a message to a chat.

    Args:
        chat_id: The chat ID (must exist, see ensure_chat)
        role: "user" or "assistant"
        content: The message text
        tool_invocations: Optional tool calls made while producing the message

    Returns:
        The stored message as a dict
    """
    calls = [normalize_tool_invocation(tc) for tc in tool_invocations] if tool_invocations else None
    with SessionLocal() as db, db.begin():
        message = Message(chat_id=chat_id, role=role, content=content or "", tool_calls=calls)
        db.add(message)
        db.flush()
        db.refresh(message)
        logger.debug("Stored message", chat_id=chat_id, role=role)
        return _message_to_dict(message)


def _message_to_dict(message: Message) -> Dict[str, Any]:
    out = {
        "id": message.id,
        "role": message.role,
        "content": message.content,
        "created_at": _iso(message.created_at),
    }
    if message.tool_calls:
        out["toolInvocations"] = [normalize_tool_invocation(tc) for tc in message.tool_calls]
    return out


def get_messages(chat_id: str) -> List[Dict[str, Any]]:
    """
    Messages of a chat in chronological order.

    An unknown chat simply has no messages.
    """
    with SessionLocal() as db:
        messages = (
            db.query(Message)
            .filter(Message.chat_id == chat_id)
            .order_by(Message.created_at.asc())
            .all()
        )
        return [_message_to_dict(m) for m in messages]
