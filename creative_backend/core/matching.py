"""Pair uploaded image files with the specification records parsed from a brief.

Each candidate specification is scored against the uploaded asset with four
independent strategies:

* asset-name word overlap (up to 40 points)
* variant token found in the filename (30 points)
* an integer in the filename equal to the image number (30 points)
* DOCX document order equal to the image number (25 points)

The highest total wins (first seen on ties) provided it reaches
``MATCH_THRESHOLD``. Unmatched assets still produce a work item so that every
upload is rendered; they receive a sentinel title and a brand-derived prompt.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from creative_backend.core.name_normalize import normalize, normalize_filename
from creative_backend.core.schema import BrandSettings, SpecificationRecord

logger = logging.getLogger(__name__)

ASSET_NAME_WEIGHT = 40.0
VARIANT_POINTS = 30.0
NUMBER_POINTS = 30.0
DOCUMENT_ORDER_POINTS = 25.0
MATCH_THRESHOLD = 25.0

UNMATCHED_SUBTITLE = "No text overlay needed"
UNMATCHED_VARIANT = "default"

_INTEGER_RUN = re.compile(r"\d+")


@dataclass(slots=True, frozen=True)
class UploadedAsset:
    """An uploaded (or DOCX-extracted) image waiting to be paired with a spec."""

    filename: str
    url: str = ""
    document_order: int | None = None


@dataclass(slots=True, frozen=True)
class MatchResult:
    specification: SpecificationRecord | None
    score: float

    @property
    def matched(self) -> bool:
        return self.specification is not None


def _asset_name_score(filename_words: list[str], spec: SpecificationRecord) -> float:
    spec_words = normalize_filename(spec.asset_name).split()
    if not spec_words:
        return 0.0
    matching = [
        word
        for word in spec_words
        if any(word in candidate or candidate in word for candidate in filename_words)
    ]
    return len(matching) / len(spec_words) * ASSET_NAME_WEIGHT


def score_specification(asset: UploadedAsset, spec: SpecificationRecord) -> float:
    """Return the combined 0-125 match score of ``spec`` for ``asset``."""

    clean_filename = normalize_filename(asset.filename)
    score = _asset_name_score(clean_filename.split(), spec)

    variant = normalize(spec.variant or "")
    if variant and variant in normalize(clean_filename):
        score += VARIANT_POINTS

    numbers = {int(run) for run in _INTEGER_RUN.findall(asset.filename)}
    if spec.image_number in numbers:
        score += NUMBER_POINTS

    if asset.document_order is not None and asset.document_order == spec.image_number:
        score += DOCUMENT_ORDER_POINTS

    return score


def find_best_specification(
    asset: UploadedAsset,
    specifications: Sequence[SpecificationRecord],
) -> MatchResult:
    best_spec: SpecificationRecord | None = None
    best_score = 0.0
    for spec in specifications:
        score = score_specification(asset, spec)
        if score > best_score:
            best_spec, best_score = spec, score

    if asset.document_order is not None:
        logger.debug(
            "Fuzzy match for %s: score %.1f (doc order: %s)",
            asset.filename,
            best_score,
            asset.document_order,
        )
    else:
        logger.debug("Fuzzy match for %s: score %.1f", asset.filename, best_score)

    if best_spec is None or best_score < MATCH_THRESHOLD:
        return MatchResult(specification=None, score=best_score)
    return MatchResult(specification=best_spec, score=best_score)


def fallback_render_prompt(brand: BrandSettings) -> str:
    platform = brand.platform if brand.platform and brand.platform != "none" else "web marketing"
    return (
        "Analyze this image and add appropriate text overlay using "
        f"{brand.font} font in {brand.text_color} color with a {brand.gradient_color} "
        f"gradient background. Make it suitable for {platform}."
    )


def build_work_item_fields(
    asset: UploadedAsset,
    match: MatchResult,
    brand: BrandSettings,
) -> dict[str, str]:
    """Fields copied from the matched record onto a new work item, with the unmatched fallback."""

    spec = match.specification
    if spec is None:
        return {
            "title": f"[UNMATCHED: {asset.filename}]",
            "subtitle": UNMATCHED_SUBTITLE,
            "asset_name": asset.filename,
            "variant": UNMATCHED_VARIANT,
            "render_prompt": fallback_render_prompt(brand),
        }
    return {
        "title": spec.title,
        "subtitle": spec.subtitle,
        "asset_name": spec.asset_name or asset.filename,
        "variant": spec.variant or UNMATCHED_VARIANT,
        "render_prompt": spec.render_prompt or fallback_render_prompt(brand),
    }


__all__ = [
    "MATCH_THRESHOLD",
    "MatchResult",
    "UploadedAsset",
    "build_work_item_fields",
    "fallback_render_prompt",
    "find_best_specification",
    "score_specification",
]
