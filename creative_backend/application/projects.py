"""Application service layer for brief projects."""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Sequence

from creative_backend.core.config import ServiceConfig
from creative_backend.core.errors import AIGatewayError, BriefParseError
from creative_backend.core.matching import UploadedAsset, build_work_item_fields, find_best_specification
from creative_backend.core.prompts import UNCHANGED_PROMPT, enhance_prompt
from creative_backend.core.schema import BrandSettings, SpecificationRecord
from creative_backend.domain import ImageWorkItem, ProjectRecord
from creative_backend.domain.projects import (
    COMPLETED,
    FAILED,
    PROJECT_FAILED,
    PROJECT_PARSING,
    PROJECT_PROCESSING,
    QUEUED,
)
from creative_backend.extractors.briefs import detect_brief_kind, extract_brief_text, extract_docx_images
from creative_backend.infrastructure import (
    AIClient,
    InMemoryObjectStorage,
    InMemoryProjectRepository,
    ObjectStorage,
    ProjectRepository,
    get_ai_client,
)
from creative_backend.infrastructure.storage import BRIEFS_BUCKET, ORIGINALS_BUCKET
from creative_backend.workers.batches import BatchCoordinator, BatchRunReport
from creative_backend.workers.orchestrator import RenderOrchestrator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ImageUpload:
    filename: str
    data: bytes
    content_type: str = "image/jpeg"


def _safe_name(filename: str) -> str:
    return PurePosixPath(filename.replace("\\", "/")).name


def _original_key(project_id: str, position: int, filename: str) -> str:
    # position keeps same-named uploads and extracted images apart
    return f"{project_id}/{position}_{filename}"


class ProjectService:
    """Coordinates project ingestion, matching and processing use cases."""

    def __init__(
        self,
        repository: ProjectRepository,
        *,
        storage: ObjectStorage | None = None,
        config: ServiceConfig | None = None,
        ai_client: AIClient | None = None,
    ) -> None:
        self._repository = repository
        self._storage: ObjectStorage = storage or InMemoryObjectStorage()
        self._config = config or ServiceConfig()
        self._ai_client = ai_client

    def configure(
        self,
        *,
        storage: ObjectStorage | None = None,
        config: ServiceConfig | None = None,
        ai_client: AIClient | None = None,
    ) -> None:
        if storage is not None:
            self._storage = storage
        if config is not None:
            self._config = config
        if ai_client is not None:
            self._ai_client = ai_client

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def ai_client(self) -> AIClient:
        return self._ai_client or get_ai_client()

    # ------------------------------------------------------------------
    # ingestion
    # ------------------------------------------------------------------
    async def create_project(
        self,
        brief_filename: str,
        brief_data: bytes,
        images: Sequence[ImageUpload],
        brand: BrandSettings,
        *,
        name: str | None = None,
    ) -> ProjectRecord:
        """Store the uploads, parse the brief and queue one work item per image."""

        brief_name = _safe_name(brief_filename)
        kind = detect_brief_kind(brief_name)

        project = self._repository.create_project(
            name or f"Project {datetime.now(timezone.utc).date().isoformat()}",
            brief_filename=brief_name,
            brand_settings=brand.model_dump(),
        )
        logger.info("Project created: %s", project.id)

        try:
            brief_url = await self._storage.upload(
                BRIEFS_BUCKET,
                f"{project.id}/{brief_name}",
                brief_data,
                "application/pdf" if kind == "pdf" else "application/octet-stream",
            )
            self._repository.update_project(project.id, brief_url=brief_url, status=PROJECT_PARSING)

            assets: list[UploadedAsset] = []
            for upload in images:
                filename = _safe_name(upload.filename)
                key = _original_key(project.id, len(assets) + 1, filename)
                url = await self._storage.upload(ORIGINALS_BUCKET, key, upload.data, upload.content_type)
                assets.append(UploadedAsset(filename=filename, url=url))

            text = extract_brief_text(brief_name, brief_data)
            expected_images: int | None = None
            if kind == "docx":
                embedded = extract_docx_images(brief_data)
                for image in embedded:
                    url = await self._storage.upload(
                        ORIGINALS_BUCKET,
                        _original_key(project.id, len(assets) + 1, image.filename),
                        image.data,
                        image.content_type,
                    )
                    assets.append(
                        UploadedAsset(filename=image.filename, url=url, document_order=image.document_order)
                    )
                expected_images = len(embedded) or None

            specs = await self.ai_client.parse_brief(text, brand, expected_images=expected_images)
            logger.info("Document parsed, found %d image specs", len(specs))

            self.register_assets(project.id, assets, specs, brand)
            if self._config.analyze_placement:
                await self.enhance_prompts(project.id)
        except Exception:
            self._repository.update_project(project.id, status=PROJECT_FAILED)
            raise

        self._repository.update_project(project.id, status=PROJECT_PROCESSING)
        return self._require_project(project.id)

    def register_assets(
        self,
        project_id: str,
        assets: Sequence[UploadedAsset],
        specs: Sequence[SpecificationRecord],
        brand: BrandSettings,
    ) -> list[ImageWorkItem]:
        """Create exactly one queued work item per asset, matched or not."""

        items: list[ImageWorkItem] = []
        for position, asset in enumerate(assets, start=1):
            match = find_best_specification(asset, specs)
            fields = build_work_item_fields(asset, match, brand)
            items.append(
                self._repository.create_work_item(
                    project_id,
                    position,
                    original_url=asset.url,
                    original_filename=asset.filename,
                    status=QUEUED,
                    **fields,
                )
            )
        unmatched = sum(1 for item in items if item.title.startswith("[UNMATCHED:"))
        logger.info("Created %d image records (%d unmatched)", len(items), unmatched)
        self._repository.update_project(project_id, total_images=len(assets))
        return items

    async def enhance_prompts(self, project_id: str) -> int:
        """Append placement guidance to queued prompts; returns how many changed."""

        enhanced = 0
        for item in self._repository.list_work_items(project_id, status=QUEUED):
            if item.render_prompt == UNCHANGED_PROMPT:
                continue
            try:
                analysis = await self.ai_client.analyze_placement(item.original_url, item.title, item.subtitle)
            except AIGatewayError as exc:
                logger.warning("Placement analysis failed for image %s: %s", item.id, exc)
                continue
            if analysis is None:
                continue
            self._repository.update_work_item(item.id, render_prompt=enhance_prompt(item.render_prompt, analysis))
            enhanced += 1
        return enhanced

    # ------------------------------------------------------------------
    # processing
    # ------------------------------------------------------------------
    def build_coordinator(self) -> BatchCoordinator:
        client = self.ai_client
        orchestrator = RenderOrchestrator(self._repository, self._storage, client, client, self._config)
        return BatchCoordinator(self._repository, orchestrator, self._config)

    async def process_project(self, project_id: str) -> BatchRunReport:
        self._require_project(project_id)
        return await self.build_coordinator().run(project_id)

    # ------------------------------------------------------------------
    # review actions
    # ------------------------------------------------------------------
    def approve_image(self, item_id: str) -> ImageWorkItem:
        item = self._require_item(item_id)
        if item.status != COMPLETED:
            raise ValueError("only completed images can be approved")
        self._repository.update_work_item(item_id, needs_review=False, approved_version=item.retry_count + 1)
        return self._require_item(item_id)

    def regenerate_image(self, item_id: str) -> ImageWorkItem:
        """Re-queue an image; its retry history is kept."""

        item = self._require_item(item_id)
        if item.status not in {COMPLETED, FAILED}:
            raise ValueError("only finished images can be regenerated")
        self._repository.update_work_item(
            item_id,
            status=QUEUED,
            needs_review=False,
            retry_count=0,
            error_message=None,
        )
        return self._require_item(item_id)

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    def _require_project(self, project_id: str) -> ProjectRecord:
        project = self._repository.get_project(project_id)
        if project is None:
            raise KeyError(f"project {project_id} not found")
        return project

    def _require_item(self, item_id: str) -> ImageWorkItem:
        item = self._repository.get_work_item(item_id)
        if item is None:
            raise KeyError(f"image {item_id} not found")
        return item

    def get_image(self, item_id: str) -> ImageWorkItem | None:
        return self._repository.get_work_item(item_id)

    def list_images(self, project_id: str, status: str | None = None) -> list[ImageWorkItem]:
        return self._repository.list_work_items(project_id, status=status)

    def list_review_queue(self, project_id: str) -> list[ImageWorkItem]:
        return [item for item in self.list_images(project_id, COMPLETED) if item.needs_review]

    def list_projects(self) -> list[dict[str, object]]:
        return [asdict(project) for project in self._repository.list_projects()]

    def get_project_overview(self, project_id: str) -> dict[str, object] | None:
        project = self._repository.get_project(project_id)
        if project is None:
            return None
        items = self._repository.list_work_items(project_id)
        by_status = Counter(item.status for item in items)
        scores = [item.text_accuracy_score for item in items if item.text_accuracy_score is not None]
        return {
            **asdict(project),
            "summary": {
                "by_status": dict(by_status),
                "needs_review": sum(1 for item in items if item.needs_review),
                "average_accuracy": round(sum(scores) / len(scores), 1) if scores else None,
            },
            "images": [asdict(item) for item in items],
        }

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self._repository.reset()


_repository = InMemoryProjectRepository()
_service = ProjectService(_repository)


def get_project_service() -> ProjectService:
    """Return the singleton project service for the process."""

    return _service


def reset_project_state() -> None:
    """Reset the in-memory store (used in tests)."""

    _service.reset()
