# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Analysis table, its metadata blob, and the status lifecycle.

Status moves forward only: pending → processing → completed.  ``failed`` can
be entered from any state that is not yet terminal.
"""

from datetime import datetime
from typing import Literal, Optional

import sqlalchemy as sa
from pydantic import AliasChoices, BaseModel, Field

from database import metadata

AnalysisStatus = Literal["pending", "processing", "completed", "failed"]

_ALLOWED_TRANSITIONS = {
    "pending": {"pending", "processing", "completed", "failed"},
    "processing": {"processing", "completed", "failed"},
    "completed": {"completed"},
    "failed": {"failed"},
}

analyses = sa.Table(
    "analyses",
    metadata,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column(
        "user_id",
        sa.String(36),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    ),
    sa.Column("url", sa.String(2048), nullable=False),
    sa.Column("page_title", sa.Text(), nullable=True),
    sa.Column("analysis", sa.Text(), nullable=True),
    sa.Column("pdf_path", sa.Text(), nullable=True),
    # JSON text, see AnalysisMetadata
    sa.Column("metadata", sa.Text(), nullable=False),
    sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
    sa.Column("error_message", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    sa.Index("idx_analyses_user_id", "user_id"),
    sa.Index("idx_analyses_status", "status"),
    sa.Index("idx_analyses_created_at", "created_at"),
    sa.Index("idx_analyses_url", "url", mysql_length=255),
)


class InvalidStatusTransition(ValueError):
    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move analysis from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


def check_transition(current: str, requested: str) -> None:
    if requested not in _ALLOWED_TRANSITIONS.get(current, ()):
        raise InvalidStatusTransition(current, requested)


class AnalysisMetadata(BaseModel):
    # Rows written by older deployments use camelCase keys
    word_count: int = Field(0, validation_alias=AliasChoices("word_count", "wordCount"))
    analysis_tokens: int = Field(0, validation_alias=AliasChoices("analysis_tokens", "analysisTokens"))
    page_size: int = Field(0, validation_alias=AliasChoices("page_size", "pageSize"))
    load_time: Optional[float] = Field(None, validation_alias=AliasChoices("load_time", "loadTime"))
    screenshot_path: Optional[str] = Field(
        None, validation_alias=AliasChoices("screenshot_path", "screenshotPath")
    )


class MetadataPatch(BaseModel):
    word_count: Optional[int] = None
    analysis_tokens: Optional[int] = None
    page_size: Optional[int] = None
    load_time: Optional[float] = None
    screenshot_path: Optional[str] = None


class AnalysisRecord(BaseModel):
    id: str
    user_id: Optional[str] = None
    url: str
    page_title: Optional[str] = None
    analysis: str = ""
    pdf_path: Optional[str] = None
    metadata: AnalysisMetadata
    status: AnalysisStatus
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AnalysisCreate(BaseModel):
    user_id: str
    url: str
    page_title: Optional[str] = None
    metadata: Optional[MetadataPatch] = None
    status: AnalysisStatus = "pending"


class AnalysisUpdate(BaseModel):
    """Only the fields that are explicitly set get written."""

    page_title: Optional[str] = None
    analysis: Optional[str] = None
    pdf_path: Optional[str] = None
    metadata: Optional[MetadataPatch] = None
    status: Optional[AnalysisStatus] = None
    error_message: Optional[str] = None


class AnalysisFilters(BaseModel):
    user_id: Optional[str] = None
    status: Optional[AnalysisStatus] = None
    url: Optional[str] = None  # substring match
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: Optional[int] = None
    offset: Optional[int] = None


class AnalysisStats(BaseModel):
    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    # seconds between creation and completion, completed rows only
    average_processing_time: float = 0.0
