from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Union

SEARCH_TYPES = ("text", "ai", "filename", "tags", "content")


@dataclass
class DateRange:
    preset: str
    start: Optional[Union[date, datetime, str]] = None
    end: Optional[Union[date, datetime, str]] = None


@dataclass
class SearchOptions:
    limit: int = 20
    min_score: float = 0.2
    category: Optional[str] = None
    date_range: Optional[DateRange] = None


@dataclass
class SearchResult:
    item: Any
    score: float
    search_type: str
    type: str = "file"

    def __post_init__(self):
        if self.search_type not in SEARCH_TYPES:
            raise ValueError(f"Unknown search type '{self.search_type}', expected one of {SEARCH_TYPES}")

    @property
    def id(self) -> str:
        return self.item.id
