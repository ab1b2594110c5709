from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

DEFAULT_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1/chat/completions"
DEFAULT_RENDER_MODEL = "google/gemini-2.5-flash-image-preview"
DEFAULT_TEXT_MODEL = "google/gemini-2.5-flash"
DEFAULT_BATCH_SIZE = 10
DEFAULT_CALL_TIMEOUT = 120.0

_FALLBACK_PLATFORMS = {
    "amazon": (
        "Amazon requirements: Main image must be on pure white background, text must be clear "
        "and readable at thumbnail size, ensure high contrast. Product should occupy 85% of frame."
    ),
}


def _load_platform_requirements() -> dict[str, str]:
    path = CONFIG_DIR / "platforms.yaml"
    if not path.exists():
        return dict(_FALLBACK_PLATFORMS)
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    return {str(key): str(value).strip() for key, value in (data.get("platforms") or {}).items()}


PLATFORM_REQUIREMENTS = _load_platform_requirements()


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(slots=True)
class ServiceConfig:
    """Endpoints, credential and limits used by the AI collaborators.

    Built once at start-up and handed to the clients and workers; nothing
    downstream reads the environment directly.
    """

    render_endpoint: str = DEFAULT_GATEWAY_URL
    ocr_endpoint: str = DEFAULT_GATEWAY_URL
    parser_endpoint: str = DEFAULT_GATEWAY_URL
    credential: str | None = None
    render_model: str = DEFAULT_RENDER_MODEL
    text_model: str = DEFAULT_TEXT_MODEL
    batch_size: int = DEFAULT_BATCH_SIZE
    call_timeout: float = DEFAULT_CALL_TIMEOUT
    analyze_placement: bool = True
    platform_requirements: dict[str, str] = field(default_factory=lambda: dict(PLATFORM_REQUIREMENTS))

    @property
    def is_configured(self) -> bool:
        return bool(self.credential and self.credential.strip())

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        gateway = os.getenv("AI_GATEWAY_URL") or DEFAULT_GATEWAY_URL
        return cls(
            render_endpoint=os.getenv("AI_RENDER_ENDPOINT") or gateway,
            ocr_endpoint=os.getenv("AI_OCR_ENDPOINT") or gateway,
            parser_endpoint=os.getenv("AI_PARSER_ENDPOINT") or gateway,
            credential=os.getenv("AI_GATEWAY_API_KEY") or None,
            render_model=os.getenv("AI_RENDER_MODEL") or DEFAULT_RENDER_MODEL,
            text_model=os.getenv("AI_TEXT_MODEL") or DEFAULT_TEXT_MODEL,
            batch_size=int(os.getenv("PROCESS_BATCH_SIZE") or DEFAULT_BATCH_SIZE),
            call_timeout=float(os.getenv("AI_CALL_TIMEOUT") or DEFAULT_CALL_TIMEOUT),
            analyze_placement=_env_flag("ANALYZE_PLACEMENT", True),
        )
