"""Infrastructure layer exports."""

from .ai import (
    AIClient,
    BriefParser,
    ImageRenderer,
    PlacementAnalyzer,
    RenderedImage,
    TextExtractor,
    configure_ai_client,
    get_ai_client,
)
from .ai_gateway import AIGatewayClient
from .projects import InMemoryProjectRepository, ProjectRepository
from .storage import InMemoryObjectStorage, LocalObjectStorage, ObjectStorage

__all__ = [
    "AIClient",
    "AIGatewayClient",
    "BriefParser",
    "ImageRenderer",
    "InMemoryObjectStorage",
    "InMemoryProjectRepository",
    "LocalObjectStorage",
    "ObjectStorage",
    "PlacementAnalyzer",
    "ProjectRepository",
    "RenderedImage",
    "TextExtractor",
    "configure_ai_client",
    "get_ai_client",
]
