"""Domain layer definitions."""

from .projects import ImageWorkItem, ProjectRecord

__all__ = [
    "ImageWorkItem",
    "ProjectRecord",
]
