from __future__ import annotations

import asyncio
import struct
import sys
import zlib
from pathlib import Path
from typing import Callable

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from creative_backend.core.config import ServiceConfig
from creative_backend.core.errors import OCRUnavailableError, RenderError
from creative_backend.domain import ImageWorkItem
from creative_backend.infrastructure import InMemoryObjectStorage, InMemoryProjectRepository, RenderedImage


def make_png(rgb: tuple[int, int, int] = (255, 255, 255)) -> bytes:
    """Return a valid 1x1 RGB PNG; distinct colours give distinct files."""

    def chunk(kind: bytes, data: bytes) -> bytes:
        crc = zlib.crc32(kind + data) & 0xFFFFFFFF
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", crc)

    header = struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0)
    pixels = zlib.compress(b"\x00" + bytes(rgb))
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", header) + chunk(b"IDAT", pixels) + chunk(b"IEND", b"")


class FakeRenderer:
    """Returns a fixed JPEG payload, failing for chosen sources or attempts."""

    def __init__(
        self,
        *,
        failing_sources: set[str] | None = None,
        fail_attempts: set[int] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.failing_sources = failing_sources or set()
        self.fail_attempts = fail_attempts or set()
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.active = 0
        self.max_active = 0

    async def render_image(self, instruction: str, source_url: str) -> RenderedImage:
        self.calls.append((instruction, source_url))
        attempt = sum(1 for _, source in self.calls if source == source_url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        if source_url in self.failing_sources or attempt in self.fail_attempts:
            raise RenderError("No image returned from AI gateway")
        return RenderedImage(data=b"\xff\xd8\xff-edited", content_type="image/jpeg", data_url="data:image/jpeg;base64,/9j/")


class ScriptedExtractor:
    """Plays back OCR responses; an exception instance is raised instead of returned."""

    def __init__(self, responses: list[str | Exception] | None = None, default: Callable[[str], str] | None = None) -> None:
        self.responses = list(responses or [])
        self.default = default
        self.calls: list[tuple[str, str]] = []

    async def extract_text(self, image_ref: str, instruction: str) -> str:
        self.calls.append((image_ref, instruction))
        if self.responses:
            response = self.responses.pop(0)
        elif self.default is not None:
            response = self.default(instruction)
        else:
            raise OCRUnavailableError("OCR request failed")
        if isinstance(response, Exception):
            raise response
        return response


def echo_expected_text(instruction: str) -> str:
    """OCR stub that 'reads' exactly the title and subtitle it was told to expect."""

    lines = [line for line in instruction.splitlines() if line.startswith(("- Title: ", "- Subtitle: "))]
    return "\n".join(line.split(": ", 1)[1].strip('"') for line in lines)


@pytest.fixture()
def repository() -> InMemoryProjectRepository:
    return InMemoryProjectRepository()


@pytest.fixture()
def storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest.fixture()
def config() -> ServiceConfig:
    return ServiceConfig(credential="test-key", call_timeout=5.0, analyze_placement=False)


@pytest.fixture()
def make_item(repository: InMemoryProjectRepository) -> Callable[..., ImageWorkItem]:
    state: dict[str, str] = {}

    def factory(project_id: str | None = None, **fields) -> ImageWorkItem:
        if project_id is None:
            if "project_id" not in state:
                state["project_id"] = repository.create_project("Test project").id
            project_id = state["project_id"]
        number = len(repository.list_work_items(project_id)) + 1
        fields.setdefault("original_url", f"memory://original-images/{project_id}/photo_{number}.jpg")
        fields.setdefault("original_filename", f"photo_{number}.jpg")
        fields.setdefault("title", "CORSAIR ONE I600")
        fields.setdefault("subtitle", "A Compact PC packed with cutting-edge components.")
        fields.setdefault("render_prompt", "Add a dark gradient overlay to the top portion of this image.")
        return repository.create_work_item(project_id, number, **fields)

    return factory
