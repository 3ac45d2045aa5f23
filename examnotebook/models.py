"""
Pydantic models for the documents and filters flowing through search.

Documents arrive from the file-ingestion collaborator as plain JSON records
using camelCase keys (uploadDate, examInfo). Both the camelCase aliases and
the snake_case field names are accepted.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


# ============================================================
# Document Models
# ============================================================

class DocumentMetadata(BaseModel):
    """Metadata attached to an ingested document."""
    exam_info: Optional[Dict[str, Any]] = Field(
        default=None,
        alias="examInfo",
        description="Exam details extracted at ingestion (examType, year, ...)"
    )

    model_config = {"populate_by_name": True, "extra": "allow"}


class Document(BaseModel):
    """A single uploaded exam document."""
    name: str = Field(description="File name")
    content: Optional[str] = Field(default=None, description="Extracted text content")
    subject: Optional[str] = Field(default=None, description="Subject code, e.g. toanHoc")
    type: Optional[str] = Field(default=None, description="File type, e.g. pdf")
    upload_date: Optional[datetime] = Field(default=None, alias="uploadDate")
    metadata: Optional[DocumentMetadata] = None

    model_config = {"populate_by_name": True, "extra": "allow"}

    @property
    def exam_info(self) -> Dict[str, Any]:
        if self.metadata is None or self.metadata.exam_info is None:
            return {}
        return self.metadata.exam_info


# ============================================================
# Filter Models
# ============================================================

class DateRange(BaseModel):
    """Inclusive upload-date bounds. A missing bound is unbounded."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class SearchFilters(BaseModel):
    """Attribute filters applied after text matching."""
    subject: Optional[str] = None
    date_range: Optional[DateRange] = Field(default=None, alias="dateRange")
    file_type: Optional[str] = Field(default=None, alias="fileType")
    exam_type: Optional[str] = Field(default=None, alias="examType")

    model_config = {"populate_by_name": True}

    def is_empty(self) -> bool:
        """True when no filter is set."""
        return not (self.subject or self.date_range or self.file_type or self.exam_type)


class AvailableFilters(BaseModel):
    """Filter options present in a corpus."""
    subjects: List[str] = Field(default_factory=list)
    file_types: List[str] = Field(default_factory=list)
    exam_types: List[str] = Field(default_factory=list)
    years: List[Union[int, str]] = Field(default_factory=list)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
