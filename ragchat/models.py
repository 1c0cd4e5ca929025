import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, ForeignKey, TIMESTAMP, JSON, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship
from pgvector.sqlalchemy import Vector

from .config import EMBEDDING_DIMENSIONS

Base = declarative_base()

JsonType = JSON().with_variant(JSONB(), "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Chat(Base):
    __tablename__ = "chats"
    id = Column(String, primary_key=True, default=_new_id)
    title = Column(Text, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    messages = relationship(
        "Message", back_populates="chat", cascade="all, delete-orphan",
        order_by="Message.created_at",
    )
    documents = relationship("Document", back_populates="chat", cascade="all, delete-orphan")


class Message(Base):
    __tablename__ = "messages"
    id = Column(String, primary_key=True, default=_new_id)
    chat_id = Column(String, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False, default="")
    tool_calls = Column(JsonType)
    created_at = Column(TIMESTAMP(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    chat = relationship("Chat", back_populates="messages")


class Document(Base):
    """One embedded chunk of an uploaded file."""
    __tablename__ = "documents"
    id = Column(String, primary_key=True, default=_new_id)
    chat_id = Column(String, ForeignKey("chats.id", ondelete="CASCADE"), index=True)
    content = Column(Text, nullable=False)
    embedding = Column(Vector(EMBEDDING_DIMENSIONS))
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JsonType, nullable=False, default=dict)

    chat = relationship("Chat", back_populates="documents")
