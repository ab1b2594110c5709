from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterator, Sequence

from creative_backend.core.config import ServiceConfig
from creative_backend.core.errors import ConfigurationError
from creative_backend.domain import ImageWorkItem
from creative_backend.domain.projects import (
    COMPLETED,
    FAILED,
    PROJECT_COMPLETED,
    PROJECT_FAILED,
    PROJECT_PROCESSING,
    QUEUED,
)
from creative_backend.infrastructure import ProjectRepository

from .orchestrator import ProcessOutcome, RenderOrchestrator

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "AI service not configured. Please contact support."


@dataclass(slots=True)
class BatchRunReport:
    project_id: str
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    batches: int = 0
    completed_images: int = 0
    project_status: str | None = None
    errors: list[str] = field(default_factory=list)


def chunked(items: Sequence[ImageWorkItem], size: int) -> Iterator[Sequence[ImageWorkItem]]:
    if size < 1:
        raise ValueError("batch size must be positive")
    for start in range(0, len(items), size):
        yield items[start : start + size]


class BatchCoordinator:
    """Drains a project's queued work items one fixed-size batch at a time."""

    def __init__(
        self,
        repository: ProjectRepository,
        orchestrator: RenderOrchestrator,
        config: ServiceConfig,
    ) -> None:
        self._repository = repository
        self._orchestrator = orchestrator
        self._config = config

    def _fail_unconfigured(self, project_id: str, queued: Sequence[ImageWorkItem]) -> None:
        logger.error("AI gateway credential not configured; failing project %s", project_id)
        self._repository.update_project(project_id, status=PROJECT_FAILED)
        for item in queued:
            self._repository.update_work_item(item.id, status=FAILED, error_message=NOT_CONFIGURED_MESSAGE)

    def _update_progress(self, project_id: str, processed_ids: list[str], baseline: int) -> tuple[int, str]:
        terminal = 0
        for item_id in processed_ids:
            item = self._repository.get_work_item(item_id)
            if item is not None and item.is_terminal:
                terminal += 1

        project = self._repository.get_project(project_id)
        if project is None:
            raise KeyError(f"project {project_id} not found")

        completed = max(baseline + terminal, project.completed_images)
        status = PROJECT_COMPLETED if completed >= project.total_images else PROJECT_PROCESSING
        self._repository.update_project(project_id, completed_images=completed, status=status)
        return completed, status

    async def run(self, project_id: str) -> BatchRunReport:
        project = self._repository.get_project(project_id)
        if project is None:
            raise KeyError(f"project {project_id} not found")

        report = BatchRunReport(project_id=project_id, completed_images=project.completed_images)
        all_items = self._repository.list_work_items(project_id)
        queued = [item for item in all_items if item.status == QUEUED]
        if not queued:
            logger.info("No queued images found for project %s", project_id)
            status = project.status
            if status == PROJECT_PROCESSING and project.completed_images >= project.total_images:
                status = PROJECT_COMPLETED
                self._repository.update_project(project_id, status=status)
            report.project_status = status
            return report

        if not self._config.is_configured:
            self._fail_unconfigured(project_id, queued)
            raise ConfigurationError(NOT_CONFIGURED_MESSAGE)

        baseline = sum(1 for item in all_items if item.is_terminal)
        self._repository.update_project(project_id, status=PROJECT_PROCESSING)

        batches = list(chunked(queued, self._config.batch_size))
        processed_ids: list[str] = []
        logger.info("Found %d images to process in %d batch(es)", len(queued), len(batches))

        for number, batch in enumerate(batches, start=1):
            logger.info("Processing batch %d/%d (%d images)", number, len(batches), len(batch))
            results = await asyncio.gather(
                *(self._orchestrator.process(item) for item in batch),
                return_exceptions=True,
            )
            for item, result in zip(batch, results):
                report.processed += 1
                if isinstance(result, BaseException):
                    logger.error("Image %s raised outside the retry loop: %r", item.id, result)
                    report.failed += 1
                    report.errors.append(f"{item.id}: {result}")
                elif isinstance(result, ProcessOutcome) and result.status == COMPLETED:
                    report.succeeded += 1
                else:
                    report.failed += 1
                    if result.error:
                        report.errors.append(f"{item.id}: {result.error}")

            processed_ids.extend(item.id for item in batch)
            report.batches += 1
            report.completed_images, report.project_status = self._update_progress(
                project_id, processed_ids, baseline
            )

        logger.info(
            "Project %s processing completed: %d succeeded, %d failed",
            project_id,
            report.succeeded,
            report.failed,
        )
        return report


__all__ = ["BatchCoordinator", "BatchRunReport", "chunked"]
