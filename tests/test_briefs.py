from __future__ import annotations

import io
import sys
from pathlib import Path

import fitz
import pytest
from docx import Document

sys.path.append(str(Path(__file__).resolve().parents[1]))

from conftest import make_png  # noqa: E402

from creative_backend.core.errors import BriefParseError, UnsupportedBriefError  # noqa: E402
from creative_backend.extractors.briefs import (  # noqa: E402
    TRUNCATION_MARKER,
    detect_brief_kind,
    extract_brief_text,
    extract_docx_images,
    truncate_brief_text,
)

BRIEF_LINES = [
    "IMAGE 1",
    "HEADLINE: CORSAIR ONE I600",
    "COPY: A Compact PC packed with cutting-edge components.",
    "ASSET: CORSAIR_ONE_i600_DARK_METAL_12",
]


def _pdf_bytes(lines: list[str]) -> bytes:
    document = fitz.open()
    page = document.new_page()
    if lines:
        page.insert_text((72, 72), "\n".join(lines), fontsize=11)
    data = document.tobytes()
    document.close()
    return data


def _docx_bytes(pictures: list[bytes]) -> bytes:
    document = Document()
    for line in BRIEF_LINES:
        document.add_paragraph(line)
    for picture in pictures:
        document.add_picture(io.BytesIO(picture))
    table = document.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "VARIANT"
    table.rows[0].cells[1].text = "METAL DARK"
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def test_detect_brief_kind():
    assert detect_brief_kind("Brief.PDF") == "pdf"
    assert detect_brief_kind("brief.docx") == "docx"
    with pytest.raises(UnsupportedBriefError):
        detect_brief_kind("brief.txt")
    with pytest.raises(UnsupportedBriefError):
        detect_brief_kind("brief.doc")


def test_extract_pdf_text():
    text = extract_brief_text("brief.pdf", _pdf_bytes(BRIEF_LINES))

    assert "CORSAIR ONE I600" in text
    assert "CORSAIR_ONE_i600_DARK_METAL_12" in text


def test_extract_docx_text_includes_tables():
    text = extract_brief_text("brief.docx", _docx_bytes([]))

    assert "HEADLINE: CORSAIR ONE I600" in text
    assert "METAL DARK" in text
    assert "\n" not in text


def test_blank_pdf_is_rejected():
    with pytest.raises(BriefParseError, match="appears empty"):
        extract_brief_text("brief.pdf", _pdf_bytes([]))


@pytest.mark.parametrize("filename", ["brief.pdf", "brief.docx"])
def test_corrupt_brief_is_rejected(filename):
    with pytest.raises(BriefParseError):
        extract_brief_text(filename, b"this is not a real document")


def test_truncate_keeps_head_and_tail():
    text = "a" * 400_000 + "b" * 200_000 + "c" * 100_000

    truncated = truncate_brief_text(text)

    assert truncated.startswith("a" * 400_000 + TRUNCATION_MARKER)
    assert truncated.endswith("c" * 100_000)
    assert "b" not in truncated
    assert truncate_brief_text("short") == "short"


def test_docx_images_follow_document_order():
    first = make_png((255, 0, 0))
    second = make_png((0, 0, 255))
    # the first picture is referenced twice but stored once
    data = _docx_bytes([first, second, first])

    images = extract_docx_images(data)

    assert [image.filename for image in images] == ["extracted_1.png", "extracted_2.png"]
    assert [image.document_order for image in images] == [1, 2]
    assert images[0].data == first
    assert images[1].data == second
    assert all(image.content_type == "image/png" for image in images)


def test_docx_without_images():
    assert extract_docx_images(_docx_bytes([])) == []
