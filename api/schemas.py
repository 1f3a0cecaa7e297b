from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from content_search.src.search.schemas import SearchResult


class SmartSearchRequest(BaseModel):
    user_id: str
    query: str
    limit: int = Field(20, ge=1, le=200)
    min_score: float = Field(0.2, ge=0.0, le=1.0)
    category: Optional[str] = None
    date_range: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class TextSearchRequest(BaseModel):
    user_id: str
    query: str
    limit: int = Field(20, ge=1, le=200)


class TagSearchRequest(BaseModel):
    user_id: str
    tag: str
    limit: int = Field(20, ge=1, le=200)


class BatchProcessRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)
    batch_size: Optional[int] = Field(None, ge=1)
    delay: Optional[float] = Field(None, ge=0)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_item(item) -> Dict[str, Any]:
    """Public view of a content item; the embedding vector is never returned."""
    return {
        "id": item.id,
        "name": item.name,
        "path": item.path,
        "mime_type": item.mime_type,
        "size": item.size,
        "category": item.category,
        "description": item.description,
        "tags": item.tags or [],
        "summary": item.summary,
        "is_processed": item.is_processed,
        "processing_status": item.processing_status,
        "processed_at": _iso(item.processed_at),
        "has_embedding": bool(item.embedding),
        "text_extraction_error": item.text_extraction_error,
        "embedding_error": item.embedding_error,
        "image_description": item.image_description,
        "audio_transcript": item.audio_transcript,
        "video_description": item.video_description,
        "created_at": _iso(item.created_at),
    }


def serialize_folder(folder) -> Dict[str, Any]:
    return {
        "id": folder.id,
        "name": folder.name,
        "path": folder.path,
        "description": folder.description,
        "tags": folder.tags or [],
        "created_at": _iso(folder.created_at),
    }


def serialize_result(result: SearchResult) -> Dict[str, Any]:
    body = serialize_folder(result.item) if result.type == "folder" else serialize_item(result.item)
    body.update(
        {
            "type": result.type,
            "relevance_score": round(result.score, 2),
            "search_type": result.search_type,
        }
    )
    return body
