"""Infrastructure layer for project and work-item persistence."""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Protocol

from creative_backend.domain import ImageWorkItem, ProjectRecord


class ProjectRepository(Protocol):
    """Persistence contract for projects and their work items.

    Reads return snapshots; mutations go through the ``update_*`` methods with
    the changed fields only.
    """

    def create_project(
        self,
        name: str,
        *,
        brief_filename: str | None = None,
        brand_settings: dict[str, Any] | None = None,
    ) -> ProjectRecord: ...

    def get_project(self, project_id: str) -> ProjectRecord | None: ...

    def update_project(self, project_id: str, **fields: Any) -> None: ...

    def list_projects(self) -> list[ProjectRecord]: ...

    def create_work_item(self, project_id: str, image_number: int, **fields: Any) -> ImageWorkItem: ...

    def get_work_item(self, item_id: str) -> ImageWorkItem | None: ...

    def update_work_item(self, item_id: str, **fields: Any) -> None: ...

    def list_work_items(self, project_id: str, *, status: str | None = None) -> list[ImageWorkItem]: ...

    def reset(self) -> None: ...


def _snapshot(item: ImageWorkItem) -> ImageWorkItem:
    return replace(item, retry_history=[dict(entry) for entry in item.retry_history])


class InMemoryProjectRepository:
    """Simple in-memory repository for fast iteration and tests."""

    def __init__(self) -> None:
        self._projects: dict[str, ProjectRecord] = {}
        self._items: dict[str, ImageWorkItem] = {}
        self._project_counter = 0
        self._item_counter = 0

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    def _require_project(self, project_id: str) -> ProjectRecord:
        project = self._projects.get(project_id)
        if project is None:
            raise KeyError(f"project {project_id} not found")
        return project

    def _require_item(self, item_id: str) -> ImageWorkItem:
        item = self._items.get(item_id)
        if item is None:
            raise KeyError(f"image {item_id} not found")
        return item

    @staticmethod
    def _apply(record: object, fields: dict[str, Any]) -> None:
        for key, value in fields.items():
            if not hasattr(record, key):
                raise AttributeError(f"{type(record).__name__} has no field {key!r}")
            setattr(record, key, value)

    # ------------------------------------------------------------------
    # projects
    # ------------------------------------------------------------------
    def create_project(
        self,
        name: str,
        *,
        brief_filename: str | None = None,
        brand_settings: dict[str, Any] | None = None,
    ) -> ProjectRecord:
        self._project_counter += 1
        project = ProjectRecord(
            id=f"prj-{self._project_counter:05d}",
            name=name,
            brief_filename=brief_filename,
            brand_settings=dict(brand_settings or {}),
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._projects[project.id] = project
        return replace(project)

    def get_project(self, project_id: str) -> ProjectRecord | None:
        project = self._projects.get(project_id)
        return replace(project) if project else None

    def update_project(self, project_id: str, **fields: Any) -> None:
        self._apply(self._require_project(project_id), fields)

    def list_projects(self) -> list[ProjectRecord]:
        projects = [replace(project) for project in self._projects.values()]
        projects.sort(key=lambda item: item.created_at or "", reverse=True)
        return projects

    # ------------------------------------------------------------------
    # work items
    # ------------------------------------------------------------------
    def create_work_item(self, project_id: str, image_number: int, **fields: Any) -> ImageWorkItem:
        self._require_project(project_id)
        self._item_counter += 1
        item = ImageWorkItem(
            id=f"img-{self._item_counter:05d}",
            project_id=project_id,
            image_number=image_number,
            original_url=str(fields.pop("original_url", "")),
            original_filename=str(fields.pop("original_filename", "")),
        )
        self._apply(item, fields)
        self._items[item.id] = item
        return _snapshot(item)

    def get_work_item(self, item_id: str) -> ImageWorkItem | None:
        item = self._items.get(item_id)
        return _snapshot(item) if item else None

    def update_work_item(self, item_id: str, **fields: Any) -> None:
        item = self._require_item(item_id)
        if "retry_history" in fields:
            fields["retry_history"] = [dict(entry) for entry in fields["retry_history"]]
        self._apply(item, fields)

    def list_work_items(self, project_id: str, *, status: str | None = None) -> list[ImageWorkItem]:
        items = [
            _snapshot(item)
            for item in self._items.values()
            if item.project_id == project_id and (status is None or item.status == status)
        ]
        items.sort(key=lambda item: item.image_number)
        return items

    def reset(self) -> None:
        self._projects.clear()
        self._items.clear()
        self._project_counter = 0
        self._item_counter = 0
