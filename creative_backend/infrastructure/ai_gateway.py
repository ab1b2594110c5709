"""Integration with an OpenAI-compatible chat-completions AI gateway."""
from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import mimetypes
import re
from pathlib import Path
from typing import Any
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx
from pydantic import ValidationError

from creative_backend.core.config import ServiceConfig
from creative_backend.core.errors import (
    AIGatewayError,
    BriefParseError,
    OCRUnavailableError,
    RenderError,
)
from creative_backend.core.prompts import build_brief_prompt, build_placement_prompt
from creative_backend.core.schema import BrandSettings, PlacementAnalysis, SpecificationRecord

from .ai import RenderedImage

logger = logging.getLogger(__name__)

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(?:;[\w=-]+)*;base64,(?P<data>.*)$", re.DOTALL)


class AIGatewayClient:
    """Client for the image, text and vision models behind one gateway."""

    def __init__(
        self,
        config: ServiceConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._client = http_client or httpx.AsyncClient(timeout=config.call_timeout)
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.credential or ''}",
            "Content-Type": "application/json",
        }

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._client.post(endpoint, headers=self._headers(), json=payload)
        if response.is_error:
            logger.error("AI gateway error (%s): %s", response.status_code, response.text[:500])
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _message(data: dict[str, Any]) -> dict[str, Any]:
        choices = data.get("choices") or []
        if not choices:
            return {}
        return (choices[0] or {}).get("message") or {}

    @staticmethod
    def _user_content(text: str, image_url: str) -> list[dict[str, Any]]:
        return [
            {"type": "text", "text": text},
            {"type": "image_url", "image_url": {"url": image_url}},
        ]

    @staticmethod
    def _decode_data_url(url: str) -> tuple[bytes, str]:
        match = _DATA_URL.match(url)
        if match is None:
            raise RenderError("Image payload is not a base64 data URL")
        try:
            payload = base64.b64decode(match.group("data"), validate=False)
        except (binascii.Error, ValueError) as exc:
            raise RenderError("Image payload could not be decoded") from exc
        return payload, match.group("mime") or "image/jpeg"

    @staticmethod
    async def _reachable(url: str, error: type[AIGatewayError]) -> str:
        """Inline ``file://`` images as data URLs; the gateway cannot fetch them."""

        if not url.startswith("file:"):
            return url
        path = Path(url2pathname(urlparse(url).path))
        try:
            payload = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise error(f"Cannot read local image {path.name}: {exc}") from exc
        mime = mimetypes.guess_type(path.name)[0] or "image/jpeg"
        return f"data:{mime};base64,{base64.b64encode(payload).decode('ascii')}"

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def render_image(self, instruction: str, source_url: str) -> RenderedImage:
        source_url = await self._reachable(source_url, RenderError)
        payload = {
            "model": self._config.render_model,
            "messages": [{"role": "user", "content": self._user_content(instruction, source_url)}],
            "modalities": ["image", "text"],
        }
        try:
            data = await self._post(self._config.render_endpoint, payload)
        except httpx.HTTPStatusError as exc:
            raise RenderError(f"AI render error: {exc.response.status_code} {exc.response.reason_phrase}") from exc
        except httpx.HTTPError as exc:
            raise RenderError(f"AI render request failed: {exc}") from exc

        images = self._message(data).get("images") or []
        image_url = ((images[0] or {}).get("image_url") or {}).get("url") if images else None
        if not image_url:
            raise RenderError("No image returned from AI gateway")

        if image_url.startswith("data:"):
            content, content_type = self._decode_data_url(image_url)
            return RenderedImage(data=content, content_type=content_type, data_url=image_url)

        try:
            response = await self._client.get(image_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise RenderError(f"Failed to download rendered image: {exc}") from exc
        content_type = response.headers.get("content-type", "image/jpeg").split(";")[0]
        return RenderedImage(data=response.content, content_type=content_type, data_url=image_url)

    async def extract_text(self, image_ref: str, instruction: str) -> str:
        image_ref = await self._reachable(image_ref, OCRUnavailableError)
        payload = {
            "model": self._config.text_model,
            "messages": [{"role": "user", "content": self._user_content(instruction, image_ref)}],
        }
        try:
            data = await self._post(self._config.ocr_endpoint, payload)
        except httpx.HTTPError as exc:
            raise OCRUnavailableError(f"OCR request failed: {exc}") from exc
        except ValueError as exc:
            raise OCRUnavailableError("OCR response was not valid JSON") from exc
        content = self._message(data).get("content")
        return content if isinstance(content, str) else ""

    async def parse_brief(
        self,
        text: str,
        brand: BrandSettings,
        *,
        expected_images: int | None = None,
    ) -> list[SpecificationRecord]:
        prompt = build_brief_prompt(
            brand,
            self._config.platform_requirements,
            expected_images=expected_images,
        )
        payload = {
            "model": self._config.text_model,
            "messages": [
                {"role": "system", "content": prompt},
                {"role": "user", "content": text},
            ],
            "temperature": 0.3,
        }
        try:
            data = await self._post(self._config.parser_endpoint, payload)
        except httpx.HTTPError as exc:
            raise AIGatewayError(f"Brief parsing request failed: {exc}") from exc

        content = self._message(data).get("content")
        if not content:
            raise BriefParseError("No response from AI")
        logger.debug("Brief parser response: %s", content[:500])

        match = _JSON_ARRAY.search(content)
        if match is None:
            raise BriefParseError("No JSON array found in AI response")
        try:
            rows = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            raise BriefParseError(f"AI response JSON is invalid: {exc}") from exc
        if not isinstance(rows, list):
            raise BriefParseError("AI response JSON is not an array")

        try:
            specs = [SpecificationRecord.model_validate(row) for row in rows]
        except ValidationError as exc:
            raise BriefParseError(f"AI response contains invalid specifications: {exc}") from exc
        logger.info("Parsed %d image specifications from brief", len(specs))
        return specs

    async def analyze_placement(self, image_url: str, title: str, subtitle: str) -> PlacementAnalysis | None:
        image_url = await self._reachable(image_url, AIGatewayError)
        payload = {
            "model": self._config.text_model,
            "messages": [
                {"role": "user", "content": self._user_content(build_placement_prompt(title, subtitle), image_url)}
            ],
        }
        try:
            data = await self._post(self._config.parser_endpoint, payload)
        except httpx.HTTPError as exc:
            raise AIGatewayError(f"Placement analysis failed: {exc}") from exc

        content = self._message(data).get("content") or ""
        match = _JSON_OBJECT.search(content)
        if match is None:
            logger.warning("No JSON found in placement analysis response")
            return None
        try:
            return PlacementAnalysis.model_validate(json.loads(match.group(0)))
        except (json.JSONDecodeError, ValidationError):
            logger.warning("Placement analysis response could not be parsed")
            return None

    async def aclose(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            await self._client.aclose()


__all__ = ["AIGatewayClient"]
