"""
Domain exceptions raised by the ingestion and chat services.
Routes translate these into HTTP responses; retrieval turns them into soft errors.
"""
from typing import List, Optional


class RagChatError(Exception):
    """Base application exception."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class UnsupportedFormatError(RagChatError):
    """Uploaded file extension is not one of the supported formats."""

    status_code = 400

    def __init__(self, extension: str, allowed):
        self.extension = extension
        self.allowed = tuple(allowed)
        shown = extension or "(none)"
        super().__init__(
            f"Unsupported format: {shown}. Use one of: {', '.join(self.allowed)}"
        )


class EmptyDocumentError(RagChatError):
    """No usable text could be extracted from a document."""

    status_code = 400

    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(
            f"Could not extract text from {file_name}. "
            "Check that the file is not empty or an image-only PDF."
        )


class EmbeddingError(RagChatError):
    """Embedding provider returned an error status or an unusable payload."""

    status_code = 502


class IngestionError(RagChatError):
    """Not a single chunk of a document could be indexed."""

    def __init__(self, file_name: str, errors: Optional[List[str]] = None):
        self.file_name = file_name
        self.errors = list(errors or [])
        super().__init__(f"No chunk of {file_name} could be indexed")


class ChatNotFoundError(RagChatError):
    status_code = 404

    def __init__(self, chat_id: str):
        self.chat_id = chat_id
        super().__init__(f"Chat {chat_id} not found")
