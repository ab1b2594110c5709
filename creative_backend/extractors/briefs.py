"""Text and embedded-image extraction for creative briefs.

Briefs arrive as PDF or DOCX. PDFs contribute text only; DOCX files may also
embed the product images themselves, in which case each image is returned
with its 1-based position in the document body so the matcher can fall back
on document order when filenames carry no information.
"""
from __future__ import annotations

import io
import logging
import zipfile
from dataclasses import dataclass
from pathlib import PurePosixPath

import fitz  # PyMuPDF
from docx import Document
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml.ns import qn

from creative_backend.core.errors import BriefParseError, UnsupportedBriefError

logger = logging.getLogger(__name__)

MAX_BRIEF_CHARS = 500_000
HEAD_CHARS = 400_000
TAIL_CHARS = 100_000
MIN_BRIEF_CHARS = 50
TRUNCATION_MARKER = "\n\n[...middle content truncated...]\n\n"

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".bmp"}


@dataclass(slots=True, frozen=True)
class EmbeddedImage:
    filename: str
    data: bytes
    content_type: str
    document_order: int
    original_name: str


def detect_brief_kind(filename: str) -> str:
    suffix = PurePosixPath(filename.lower()).suffix
    if suffix == ".pdf":
        return "pdf"
    if suffix == ".docx":
        return "docx"
    raise UnsupportedBriefError("File must be either PDF or DOCX format")


def truncate_brief_text(text: str) -> str:
    """Keep the head and tail of very long briefs to stay within model limits."""

    if len(text) <= MAX_BRIEF_CHARS:
        return text
    logger.info("Truncating brief text from %d characters", len(text))
    return text[:HEAD_CHARS] + TRUNCATION_MARKER + text[-TAIL_CHARS:]


def _pdf_text(data: bytes) -> str:
    with fitz.open(stream=data, filetype="pdf") as document:
        pages = [page.get_text().strip() for page in document]
    return "\n".join(page for page in pages if page)


def _docx_text(data: bytes) -> str:
    document = Document(io.BytesIO(data))
    parts = [paragraph.text for paragraph in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            parts.extend(cell.text for cell in row.cells)
    return " ".join(" ".join(parts).split())


def extract_brief_text(filename: str, data: bytes) -> str:
    kind = detect_brief_kind(filename)
    try:
        text = _pdf_text(data) if kind == "pdf" else _docx_text(data)
    except (RuntimeError, ValueError, KeyError, zipfile.BadZipFile, PackageNotFoundError) as exc:
        raise BriefParseError(f"Could not read {kind.upper()} brief: {exc}") from exc

    logger.info("Extracted %d characters from %s", len(text), filename)
    if len(text.strip()) < MIN_BRIEF_CHARS:
        raise BriefParseError(f"{kind.upper()} appears empty or could not be parsed")
    return truncate_brief_text(text)


def _content_type(suffix: str) -> str:
    ext = suffix.lstrip(".")
    return f"image/{'jpeg' if ext == 'jpg' else ext}"


def extract_docx_images(data: bytes) -> list[EmbeddedImage]:
    """Return images embedded in a DOCX, tagged with their document order."""

    document = Document(io.BytesIO(data))

    ref_order: dict[str, int] = {}
    for position, blip in enumerate(document.element.body.iter(qn("a:blip")), start=1):
        rel_id = blip.get(qn("r:embed"))
        if rel_id and rel_id not in ref_order:
            ref_order[rel_id] = position

    parts: dict[str, tuple[object, int | None]] = {}
    for rel_id, rel in document.part.rels.items():
        if rel.reltype != RT.IMAGE or rel.is_external:
            continue
        part = rel.target_part
        name = str(part.partname)
        order = ref_order.get(rel_id)
        known = parts.get(name)
        if known is None:
            parts[name] = (part, order)
        elif order is not None and (known[1] is None or order < known[1]):
            parts[name] = (known[0], order)

    images: list[EmbeddedImage] = []
    for index, name in enumerate(sorted(parts), start=1):
        part, order = parts[name]
        original_name = PurePosixPath(name).name
        suffix = PurePosixPath(original_name).suffix.lower()
        if suffix not in IMAGE_SUFFIXES:
            continue
        ext = suffix.lstrip(".")
        images.append(
            EmbeddedImage(
                filename=f"extracted_{index}.{ext}",
                data=part.blob,  # type: ignore[attr-defined]
                content_type=_content_type(suffix),
                document_order=order if order is not None else index,
                original_name=original_name,
            )
        )
        logger.debug("Extracted image %s (document order: %s)", original_name, images[-1].document_order)

    logger.info("Found %d embedded images", len(images))
    return images


__all__ = [
    "EmbeddedImage",
    "detect_brief_kind",
    "extract_brief_text",
    "extract_docx_images",
    "truncate_brief_text",
]
