"""Application services."""

from .projects import ImageUpload, ProjectService, get_project_service, reset_project_state

__all__ = [
    "ImageUpload",
    "ProjectService",
    "get_project_service",
    "reset_project_state",
]
