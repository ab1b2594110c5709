"""Domain entities for brief projects and their image work items."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

QUEUED = "queued"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

TERMINAL_STATUSES = frozenset({COMPLETED, FAILED})

PROJECT_UPLOADING = "uploading"
PROJECT_PARSING = "parsing_brief"
PROJECT_PROCESSING = "processing_images"
PROJECT_COMPLETED = "completed"
PROJECT_FAILED = "failed"

MAX_RETRIES = 2


@dataclass(slots=True)
class ImageWorkItem:
    """One uploaded image, its matched text and its render/verify state."""

    id: str
    project_id: str
    image_number: int
    original_url: str
    original_filename: str
    title: str = ""
    subtitle: str = ""
    asset_name: str = ""
    variant: str = "default"
    render_prompt: str = ""
    status: str = QUEUED
    edited_url: str | None = None
    processing_time_ms: int | None = None
    ocr_extracted_text: str | None = None
    text_accuracy_score: float | None = None
    needs_review: bool = False
    retry_count: int = 0
    retry_history: list[dict[str, Any]] = field(default_factory=list)
    error_message: str | None = None
    approved_version: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(slots=True)
class ProjectRecord:
    """Aggregate owning a set of work items."""

    id: str
    name: str
    status: str = PROJECT_UPLOADING
    brief_filename: str | None = None
    brief_url: str | None = None
    brand_settings: dict[str, Any] = field(default_factory=dict)
    total_images: int = 0
    completed_images: int = 0
    created_at: str | None = None
