from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised when a required external-service setting is missing."""


class AIGatewayError(RuntimeError):
    """Raised when the AI gateway returns an error or an unusable response."""


class RenderError(AIGatewayError):
    """The image model did not return an edited image."""


class OCRUnavailableError(AIGatewayError):
    """The text-extraction call itself failed (as opposed to reading poorly)."""


class BriefParseError(AIGatewayError):
    """The brief parser response did not contain usable specifications."""


class StorageError(RuntimeError):
    """Raised when an object cannot be written to storage."""


class UnsupportedBriefError(ValueError):
    """Raised for brief files that are neither PDF nor DOCX."""
