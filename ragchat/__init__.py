"""RAG chat backend: document ingestion, vector retrieval and a streaming tool-calling chat."""
