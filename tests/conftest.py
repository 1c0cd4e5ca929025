"""
Pytest configuration and fixtures for the test suite.
"""
import os
import tempfile
from typing import Generator, List

import pytest

# Point the app at a throwaway SQLite database before it is imported
_DB_FILE = os.path.join(tempfile.gettempdir(), "ragchat_test.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ.setdefault("OPENROUTER_API_KEY", "test-key")

from fastapi.testclient import TestClient  # noqa: E402

from ragchat.config import EMBEDDING_DIMENSIONS  # noqa: E402
from ragchat.db import engine  # noqa: E402
from ragchat.models import Base  # noqa: E402


def make_vector(hot: int = 0, value: float = 1.0) -> List[float]:
    """A vector of EMBEDDING_DIMENSIONS zeros with one non-zero component."""
    vec = [0.0] * EMBEDDING_DIMENSIONS
    vec[hot % EMBEDDING_DIMENSIONS] = value
    return vec


@pytest.fixture(scope="function", autouse=True)
def db() -> Generator[None, None, None]:
    """Create a fresh schema for each test."""
    Base.metadata.create_all(bind=engine)
    try:
        yield
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    from ragchat.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def fake_embed(monkeypatch):
    """
    Replace the embedding provider everywhere it is used.

    Returns the list of texts the provider was called with.
    """
    calls: List[str] = []

    async def _embed(text, session=None):
        calls.append(text)
        return make_vector(len(calls))

    monkeypatch.setattr("ragchat.services.ingestion_service.embed_text", _embed)
    monkeypatch.setattr("ragchat.retrieval.embed_text", _embed)
    return calls
