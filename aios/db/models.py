"""SQLAlchemy ORM models for the AIOS database.

Uses SQLAlchemy 2.0 style with Mapped and mapped_column. Timestamps are
ISO8601 UTC strings.
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class User(Base):
    """Application user, looked up by the database tool.

    Attributes:
        id: UUID primary key.
        email: Email on file, may be empty.
        created_at: ISO8601 account creation timestamp.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, unique=True)
    created_at: Mapped[str] = mapped_column(String(50), nullable=False, default=utc_now_iso)


class ChatMessage(Base):
    """Archived WhatsApp message.

    Attributes:
        id: UUID primary key.
        phone_number: Sender's WhatsApp number.
        role: 'user' or 'assistant'.
        content: Message text.
        created_at: ISO8601 creation timestamp.
    """

    __tablename__ = "chat_messages"
    __table_args__ = (Index("ix_chat_messages_phone_created", "phone_number", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[str] = mapped_column(String(50), nullable=False, default=utc_now_iso)
