import enum
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ContentCategory(str, enum.Enum):
    DOCUMENT = "Document"
    IMAGE = "Image"
    AUDIO = "Audio"
    VIDEO = "Video"
    CODE = "Code"
    OTHER = "Other"


class ProcessingStatus(str, enum.Enum):
    UNPROCESSED = "unprocessed"
    CLAIMED = "claimed"
    PROCESSED = "processed"


def generate_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp; every stored datetime is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ContentItem(Base):
    __tablename__ = "content_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String, index=True)
    name: Mapped[str] = mapped_column(String)
    path: Mapped[str] = mapped_column(String)
    mime_type: Mapped[str] = mapped_column(String, default="application/octet-stream")
    size: Mapped[int] = mapped_column(Integer, default=0)
    category: Mapped[str] = mapped_column(String(16), default=ContentCategory.OTHER.value, index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    tags: Mapped[List[str]] = mapped_column(JSON, default=list)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)

    # written by the processing pipeline only
    extracted_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    embedding: Mapped[Optional[List[float]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processing_status: Mapped[str] = mapped_column(
        String(16), default=ProcessingStatus.UNPROCESSED.value, index=True
    )
    is_processed: Mapped[bool] = mapped_column(Boolean, default=False)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    text_extraction_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    embedding_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    image_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_objects: Mapped[Optional[List[str]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    image_scene: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    image_colors: Mapped[Optional[List[str]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    image_mood: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    image_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    audio_transcript: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    video_transcript: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    video_scenes: Mapped[Optional[List[str]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    video_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class Folder(Base):
    __tablename__ = "folders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String, index=True)
    name: Mapped[str] = mapped_column(String)
    path: Mapped[str] = mapped_column(String, default="/")
    description: Mapped[str] = mapped_column(Text, default="")
    tags: Mapped[List[str]] = mapped_column(JSON, default=list)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
