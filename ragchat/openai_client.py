from openai import OpenAI

from .config import OPENROUTER_API_KEY, LLM_BASE_URL, CHAT_MODEL

_client = None

MODEL = CHAT_MODEL


def get_client() -> OpenAI:
    """OpenAI SDK client pointed at the configured OpenAI-compatible endpoint."""
    global _client
    if _client is None:
        if not OPENROUTER_API_KEY:
            raise RuntimeError("OPENROUTER_API_KEY is not set. Put it in env or .env (server-side only).")
        _client = OpenAI(api_key=OPENROUTER_API_KEY, base_url=LLM_BASE_URL)
    return _client
