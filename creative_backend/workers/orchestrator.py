"""Render → upload → OCR → score → decide loop for a single work item.

Every item gets at most ``MAX_RETRIES + 1`` render attempts. An attempt whose
OCR accuracy is excellent ends the loop early; a poor one is re-rendered while
attempts remain; anything in between is accepted and flagged for review.
Hard failures (render, upload) consume an attempt and only become terminal on
the last one. A failing OCR call is not a reason to block completion: the
rendered image is accepted unverified.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar

from creative_backend.core.config import ServiceConfig
from creative_backend.core.errors import OCRUnavailableError
from creative_backend.core.prompts import build_ocr_instruction, build_render_instruction
from creative_backend.core.schema import RetryHistoryEntry
from creative_backend.core.verification import ACCEPT_THRESHOLD, RETRY_THRESHOLD, AccuracyScore, score_accuracy
from creative_backend.domain import ImageWorkItem
from creative_backend.domain.projects import COMPLETED, FAILED, MAX_RETRIES, PROCESSING
from creative_backend.infrastructure import ImageRenderer, ObjectStorage, ProjectRepository, TextExtractor
from creative_backend.infrastructure.storage import EDITED_BUCKET, edited_image_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class ProcessOutcome:
    item_id: str
    status: str
    retry_count: int
    accuracy: float | None = None
    verified: bool = False
    error: str | None = None


@dataclass(slots=True)
class _AttemptResult:
    edited_url: str
    score: AccuracyScore | None
    extracted_text: str | None


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class RenderOrchestrator:
    """Drives one work item through its bounded render/verify attempts."""

    def __init__(
        self,
        repository: ProjectRepository,
        storage: ObjectStorage,
        renderer: ImageRenderer,
        extractor: TextExtractor,
        config: ServiceConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._repository = repository
        self._storage = storage
        self._renderer = renderer
        self._extractor = extractor
        self._config = config
        self._clock = clock

    async def _bounded(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self._config.call_timeout)

    async def _attempt(
        self,
        item: ImageWorkItem,
        retry_count: int,
        previous_accuracy: float | None,
    ) -> _AttemptResult:
        instruction = build_render_instruction(
            item.title,
            item.subtitle,
            item.render_prompt,
            retry_count=retry_count,
            previous_accuracy=previous_accuracy,
        )
        rendered = await self._bounded(self._renderer.render_image(instruction, item.original_url))

        key = edited_image_key(item.project_id, item.id, retry_count + 1)
        edited_url = await self._bounded(
            self._storage.upload(EDITED_BUCKET, key, rendered.data, rendered.content_type)
        )
        logger.info("Image %s uploaded as %s", item.image_number, key)

        try:
            extracted = await self._bounded(
                self._extractor.extract_text(
                    rendered.data_url or edited_url,
                    build_ocr_instruction(item.title, item.subtitle),
                )
            )
        except (OCRUnavailableError, asyncio.TimeoutError) as exc:
            logger.warning("OCR validation failed for image %s, skipping validation: %s", item.image_number, exc)
            return _AttemptResult(edited_url=edited_url, score=None, extracted_text=None)

        score = score_accuracy(item.title, item.subtitle, extracted)
        logger.info(
            "Image %s OCR match: title %.1f%%, subtitle %.1f%%, overall %.1f%%",
            item.image_number,
            score.title,
            score.subtitle,
            score.overall,
        )
        return _AttemptResult(edited_url=edited_url, score=score, extracted_text=extracted)

    def _complete(
        self,
        item: ImageWorkItem,
        result: _AttemptResult,
        retry_count: int,
        started: float,
    ) -> ProcessOutcome:
        elapsed_ms = int((self._clock() - started) * 1000)
        fields: dict[str, Any] = {
            "status": COMPLETED,
            "edited_url": result.edited_url,
            "processing_time_ms": elapsed_ms,
            "retry_count": retry_count,
            "error_message": None,
        }
        if result.score is None:
            # Unverified result: no score, so nothing to review.
            fields.update(ocr_extracted_text=None, text_accuracy_score=None, needs_review=False)
        else:
            fields.update(
                ocr_extracted_text=result.extracted_text,
                text_accuracy_score=result.score.overall,
                needs_review=result.score.needs_review,
            )
        self._repository.update_work_item(item.id, **fields)

        accuracy = result.score.overall if result.score else None
        if accuracy is None:
            logger.info("Image %s completed without verification after %d attempt(s)", item.image_number, retry_count + 1)
        else:
            logger.info(
                "Image %s completed with %.1f%% accuracy after %d attempt(s)",
                item.image_number,
                accuracy,
                retry_count + 1,
            )
        return ProcessOutcome(
            item_id=item.id,
            status=COMPLETED,
            retry_count=retry_count,
            accuracy=accuracy,
            verified=result.score is not None,
        )

    async def process(self, item: ImageWorkItem) -> ProcessOutcome:
        retry_count = item.retry_count
        history = [dict(entry) for entry in item.retry_history]
        previous_accuracy: float | None = None
        started = self._clock()

        while True:
            logger.info(
                "Processing image %s (attempt %d): %s",
                item.image_number,
                retry_count + 1,
                item.original_filename,
            )
            try:
                self._repository.update_work_item(item.id, status=PROCESSING, retry_count=retry_count)
                result = await self._attempt(item, retry_count, previous_accuracy)
                if result.score is not None:
                    entry = RetryHistoryEntry(
                        attempt=retry_count + 1,
                        accuracy=result.score.overall,
                        timestamp=_timestamp(),
                    )
                    history.append(entry.model_dump())
                    self._repository.update_work_item(
                        item.id,
                        ocr_extracted_text=result.extracted_text,
                        text_accuracy_score=result.score.overall,
                        retry_history=history,
                    )
            except Exception as exc:
                logger.error("Error on attempt %d for image %s: %s", retry_count + 1, item.id, exc)
                if retry_count >= MAX_RETRIES:
                    message = str(exc) or type(exc).__name__
                    self._repository.update_work_item(
                        item.id,
                        status=FAILED,
                        error_message=message,
                        retry_count=retry_count,
                    )
                    return ProcessOutcome(item_id=item.id, status=FAILED, retry_count=retry_count, error=message)
                retry_count += 1
                continue

            if result.score is None:
                return self._complete(item, result, retry_count, started)

            overall = result.score.overall
            previous_accuracy = overall
            if overall >= ACCEPT_THRESHOLD:
                logger.info("Excellent accuracy (%.1f%%), skipping retries", overall)
            elif overall < RETRY_THRESHOLD and retry_count < MAX_RETRIES:
                logger.info("Low accuracy (%.1f%%), retrying image %s", overall, item.image_number)
                retry_count += 1
                continue
            return self._complete(item, result, retry_count, started)


__all__ = ["ProcessOutcome", "RenderOrchestrator"]
