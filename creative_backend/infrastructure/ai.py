"""Contracts for the AI collaborators and the process-wide client hook.

The renderer, OCR check, brief parser and placement analyzer are external
services. This module defines the minimal interfaces the workers depend on so
tests can install deterministic fakes. The application installs the real
gateway client via ``configure_ai_client`` during start-up.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from creative_backend.core.errors import ConfigurationError
from creative_backend.core.schema import BrandSettings, PlacementAnalysis, SpecificationRecord


@dataclass(slots=True)
class RenderedImage:
    """Edited image returned by :class:`ImageRenderer` implementations."""

    data: bytes
    content_type: str = "image/jpeg"
    data_url: str | None = None


class ImageRenderer(Protocol):
    async def render_image(self, instruction: str, source_url: str) -> RenderedImage:
        """Return the source image edited according to ``instruction``."""


class TextExtractor(Protocol):
    async def extract_text(self, image_ref: str, instruction: str) -> str:
        """Return all text visible in the referenced image."""


class BriefParser(Protocol):
    async def parse_brief(
        self,
        text: str,
        brand: BrandSettings,
        *,
        expected_images: int | None = None,
    ) -> list[SpecificationRecord]:
        """Extract ordered specification records from brief text."""


class PlacementAnalyzer(Protocol):
    async def analyze_placement(self, image_url: str, title: str, subtitle: str) -> PlacementAnalysis | None:
        """Suggest where and how large the overlay text should be."""


class AIClient(ImageRenderer, TextExtractor, BriefParser, PlacementAnalyzer, Protocol):
    """All AI capabilities behind one gateway."""


class UnconfiguredAIClient:
    """Fallback installed when no gateway credential is available."""

    _MESSAGE = "AI service not configured. Please contact support."

    async def render_image(self, instruction: str, source_url: str) -> RenderedImage:
        raise ConfigurationError(self._MESSAGE)

    async def extract_text(self, image_ref: str, instruction: str) -> str:
        raise ConfigurationError(self._MESSAGE)

    async def parse_brief(
        self,
        text: str,
        brand: BrandSettings,
        *,
        expected_images: int | None = None,
    ) -> list[SpecificationRecord]:
        raise ConfigurationError(self._MESSAGE)

    async def analyze_placement(self, image_url: str, title: str, subtitle: str) -> PlacementAnalysis | None:
        return None


_client: AIClient = UnconfiguredAIClient()


def configure_ai_client(client: AIClient) -> None:
    """Install the AI client used by the ingestion and processing workers."""

    global _client
    _client = client


def get_ai_client() -> AIClient:
    """Return the currently configured AI client."""

    return _client
