"""
Tools exposed to the chat model.
"""
import json
from typing import Any, Dict, List

from ..logging_config import logger
from ..retrieval import search_in_rag

SEARCH_TOOL_NAME = "searchInRAG"

SEARCH_TOOL = {
    "type": "function",
    "function": {
        "name": SEARCH_TOOL_NAME,
        "description": (
            "Searches the vector database (PostgreSQL + pgvector) for passages of the "
            "documents uploaded to this chat. ALWAYS use it when the user asks about "
            "uploaded documents or needs context from them. "
            "CRITICAL: 'query' must never be empty; it must hold keywords, phrases or "
            "the main topic you are looking for."
        ),
        "parameters": {
            "type": "object",
            "properties": {"query": {"type": "string"}},
            "required": ["query"],
            "additionalProperties": False,
        },
    },
}


def tool_definitions() -> List[Dict[str, Any]]:
    return [SEARCH_TOOL]


def parse_arguments(arguments: str) -> Dict[str, Any]:
    """Decode a tool call's JSON arguments; blank means no arguments."""
    if not arguments or not arguments.strip():
        return {}
    parsed = json.loads(arguments)
    if not isinstance(parsed, dict):
        raise ValueError("tool arguments must be a JSON object")
    return parsed


async def run_tool(name: str, arguments: str, chat_id: str) -> Dict[str, Any]:
    """
    Execute a tool call from the model, scoped to chat_id.

    Returns the tool's structured result; bad calls become {"error": ...}.
    """
    if name != SEARCH_TOOL_NAME:
        logger.warning("Unknown tool requested", tool=name)
        return {"error": f"Unknown tool: {name}"}

    try:
        args = parse_arguments(arguments)
    except ValueError as e:
        logger.warning("Malformed tool arguments", tool=name, error=str(e))
        return {"results": [], "error": f"Malformed arguments: {e}"}

    query = args.get("query")
    if not isinstance(query, str):
        query = ""
    return await search_in_rag(query, chat_id)
