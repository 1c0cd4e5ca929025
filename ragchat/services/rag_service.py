"""
RAG (Retrieval-Augmented Generation) chat service.
Runs the tool-calling agent loop against the chat model and streams the
answer as Server-Sent Events.
"""
import json
import time
from typing import Any, AsyncGenerator, Dict, List, Tuple

from ..config import MAX_AGENT_STEPS
from ..openai_client import MODEL, get_client
from ..logging_config import logger
from ..schemas import ChatBody
from .conversation_service import ensure_chat, store_message
from .tools import run_tool, parse_arguments, tool_definitions
from ..utils.helpers import dedupe_sources

SYSTEM_PROMPT = """
You are an expert AI assistant with access to a vector database (RAG - Retrieval Augmented Generation).

## Instructions:
1. Whenever the user asks about documents, specific information, or anything that may be in the indexed documents, ALWAYS use the 'searchInRAG' tool.
2. When presenting RAG results, ALWAYS show:
   - The source document name
   - The relevant passage, quoted verbatim
   - The similarity score (percentage)
   - The chunk metadata (index, total chunks)
3. If you find no relevant results or the tool fails, SAY SO CLEARLY. NEVER invent document names or content that is not in the search results.
4. Be detailed and helpful. Cite your RAG sources clearly.

## Citation format:
When citing a RAG passage, use this format:
 **Source**: [file name]
 **Similarity**: [percentage]%
 **Passage**: "[quoted text]"
"""


def _sse(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event)}\n\n"


def build_messages(payload: ChatBody) -> List[Dict[str, Any]]:
    """System prompt followed by the client's conversation (client system turns dropped)."""
    messages: List[Dict[str, Any]] = [{"role": "system", "content": SYSTEM_PROMPT}]
    for turn in payload.messages:
        if turn.role == "system":
            continue
        messages.append({"role": turn.role, "content": turn.content})
    return messages


def _merge_tool_call_delta(pending: Dict[int, Dict[str, str]], tool_call_delta) -> None:
    """Accumulate a streamed tool call fragment into pending, keyed by index."""
    slot = pending.setdefault(tool_call_delta.index, {"id": "", "name": "", "arguments": ""})
    if tool_call_delta.id:
        slot["id"] = tool_call_delta.id
    fn = tool_call_delta.function
    if fn is not None:
        if fn.name and not slot["name"]:
            slot["name"] = fn.name
        if fn.arguments:
            slot["arguments"] += fn.arguments


async def _stream_step(messages: List[Dict[str, Any]]) -> AsyncGenerator[Tuple[str, Any], None]:
    """
    One model step.

    Yields ("delta", text) for each text fragment, then a single
    ("tool_calls", [...]) with the completed tool calls (possibly empty).
    """
    stream_response = get_client().chat.completions.create(
        model=MODEL,
        messages=messages,
        tools=tool_definitions(),
        temperature=0.2,
        stream=True,
    )

    pending: Dict[int, Dict[str, str]] = {}
    for chunk in stream_response:
        if not chunk.choices:
            continue
        delta = chunk.choices[0].delta
        if delta.content:
            yield "delta", delta.content
        for tc in delta.tool_calls or []:
            _merge_tool_call_delta(pending, tc)

    yield "tool_calls", [pending[i] for i in sorted(pending)]


async def run_agent(messages: List[Dict[str, Any]], chat_id: str) -> AsyncGenerator[Dict[str, Any], None]:
    """
    Drive the model through up to MAX_AGENT_STEPS steps, executing tool calls
    between steps.

    Yields event dicts: delta, tool-call, tool-result. The last event is
    {"type": "agent-finished", "text": ..., "toolInvocations": [...]}.
    """
    full_text = ""
    invocations: List[Dict[str, Any]] = []

    for _ in range(MAX_AGENT_STEPS):
        step_text = ""
        tool_calls: List[Dict[str, str]] = []

        async for kind, value in _stream_step(messages):
            if kind == "delta":
                step_text += value
                yield {"type": "delta", "text": value}
            else:
                tool_calls = value

        full_text += step_text
        if not tool_calls:
            break

        messages.append({
            "role": "assistant",
            "content": step_text or None,
            "tool_calls": [
                {
                    "id": tc["id"],
                    "type": "function",
                    "function": {"name": tc["name"], "arguments": tc["arguments"]},
                }
                for tc in tool_calls
            ],
        })

        for tc in tool_calls:
            try:
                args = parse_arguments(tc["arguments"])
            except ValueError:
                args = {}
            yield {"type": "tool-call", "toolCallId": tc["id"], "toolName": tc["name"], "args": args}

            result = await run_tool(tc["name"], tc["arguments"], chat_id)
            invocations.append({
                "toolCallId": tc["id"],
                "toolName": tc["name"],
                "args": args,
                "result": result,
            })
            yield {
                "type": "tool-result",
                "toolCallId": tc["id"],
                "toolName": tc["name"],
                "args": args,
                "result": result,
            }
            messages.append({
                "role": "tool",
                "tool_call_id": tc["id"],
                "content": json.dumps(result),
            })
    else:
        logger.warning("Agent stopped at step limit", chat_id=chat_id, max_steps=MAX_AGENT_STEPS)

    yield {"type": "agent-finished", "text": full_text, "toolInvocations": invocations}


async def handle_chat(payload: ChatBody, chat_id: str) -> AsyncGenerator[str, None]:
    """
    Main chat handler that orchestrates the entire flow.

    Args:
        payload: The request payload with the conversation so far
        chat_id: The chat this exchange belongs to

    Yields:
        SSE-formatted strings for streaming to client
    """
    start_time = time.time()
    last_user = payload.messages[-1]

    ensure_chat(chat_id)
    store_message(chat_id, "user", last_user.content)
    logger.info("Processing chat turn", chat_id=chat_id, model=MODEL, turns=len(payload.messages))

    text = ""
    invocations: List[Dict[str, Any]] = []
    failed = False
    try:
        async for event in run_agent(build_messages(payload), chat_id):
            if event["type"] == "agent-finished":
                text = event["text"]
                invocations = event["toolInvocations"]
                continue
            yield _sse(event)
    except Exception as e:
        logger.error("Chat model error", chat_id=chat_id, exc_info=e)
        failed = True
        yield _sse({"type": "error", "error": str(e)})

    message = None
    if not failed:
        try:
            message = store_message(chat_id, "assistant", text.strip(), tool_invocations=invocations)
        except Exception as e:
            logger.error("Failed to persist assistant message", chat_id=chat_id, exc_info=e)

    yield _sse({
        "type": "final",
        "text": text.strip(),
        "toolInvocations": invocations,
        "sources": dedupe_sources(invocations),
        "chat_id": chat_id,
        "timestamp": message["created_at"] if message else None,
    })
    yield 'data: {"type":"done"}\n\n'

    elapsed_ms = round((time.time() - start_time) * 1000, 2)
    logger.info("Chat turn completed", chat_id=chat_id, tool_calls=len(invocations), time_ms=elapsed_ms)
