"""
Environment-driven configuration.
Values are read once at import time; .env is loaded for local development.
"""
import os
from dotenv import load_dotenv

load_dotenv()  # no effect in Docker if env vars are provided


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL", "postgresql+psycopg2://rag_user:rag_pass@db:5432/rag_db"
)

# Chat model (OpenAI-compatible endpoint, OpenRouter by default)
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://openrouter.ai/api/v1")
CHAT_MODEL = os.getenv("CHAT_MODEL", "openai/gpt-4o-mini")
MAX_AGENT_STEPS = int(os.getenv("MAX_AGENT_STEPS", "5"))

# Embeddings
EMBEDDING_API_URL = os.getenv(
    "EMBEDDING_API_URL", "https://openrouter.ai/api/v1/embeddings"
)
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "openai/text-embedding-3-small")
EMBEDDING_DIMENSIONS = int(os.getenv("EMBEDDING_DIMENSIONS", "768"))
EMBEDDING_TIMEOUT_SECONDS = float(os.getenv("EMBEDDING_TIMEOUT_SECONDS", "30"))

# Ingestion / retrieval
CHUNK_MAX_CHARS = int(os.getenv("CHUNK_MAX_CHARS", "800"))
MIN_TEXT_CHARS = 10
TOP_K = int(os.getenv("TOP_K", "5"))
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(20 * 1024 * 1024)))  # 20 MB
ALLOWED_EXTENSIONS = (".pdf", ".txt", ".md", ".docx")

# Chat scope used when a client does not name one
DEFAULT_CHAT_ID = os.getenv("DEFAULT_CHAT_ID", "chat-default")
DEFAULT_CHAT_TITLE = os.getenv("DEFAULT_CHAT_TITLE", "Main RAG chat")
NEW_CHAT_TITLE = "New chat"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = _env_bool("LOG_JSON", False)
