"""Prompt builders for the brief parser, renderer, OCR check and placement analysis."""
from __future__ import annotations

from creative_backend.core.schema import BrandSettings, PlacementAnalysis

MAX_ATTEMPTS = 3
LONG_SUBTITLE_CHARS = 100
UNCHANGED_PROMPT = "Return the original image unchanged. Do not add any text overlays or modifications."

_RULE = "-" * 28


def platform_requirement(brand: BrandSettings, requirements: dict[str, str]) -> str:
    if not brand.platform or brand.platform == "none":
        return ""
    return requirements.get(brand.platform, "")


def render_template(brand: BrandSettings, requirements: dict[str, str]) -> str:
    """Plain-text render instruction the parser fills with title and subtitle."""

    font = brand.font or "Montserrat"
    text_color = brand.text_color or "white"
    extras = ""
    if brand.custom_prompt:
        extras += f" {brand.custom_prompt}"
    platform = platform_requirement(brand, requirements)
    if platform:
        extras += f" {platform}"
    return (
        "Add a dark gradient overlay to the top portion of this image, fading from "
        f"{brand.gradient_color or '#000000'} at the top to transparent around the middle. "
        "The gradient should be subtle and natural looking. Overlay the following text at the "
        f"top center of the image: {{title}} in large bold {text_color} text ({font} Extra Bold "
        f"font, approximately 48-60px, all caps), and below it {{subtitle}} in smaller regular "
        f"{text_color} text ({font} Regular font, approximately 18-22px). Add a subtle shadow "
        f"behind the text for readability. Keep the product and background unchanged.{extras} "
        "Output as a high-resolution image suitable for web marketing."
    )


def build_brief_prompt(
    brand: BrandSettings,
    requirements: dict[str, str],
    *,
    expected_images: int | None = None,
) -> str:
    lines = [
        "# Role",
        "You are an AI creative assistant specialized in extracting marketing image "
        "specifications from briefs.",
        "",
        "## Instructions",
        "",
        "1. Extract ALL images mentioned in the brief (IMAGE 1, IMAGE 2, IMAGE 3, etc.)",
        "2. Each IMAGE section may have MULTIPLE variants (METAL DARK, WOOD DARK, etc.). "
        "Create a SEPARATE JSON entry for EACH variant.",
        "3. For each image variant, extract:",
        "   - image_number: the IMAGE number, shared by all variants of that image",
        "   - title: the HEADLINE text in uppercase",
        "   - subtitle: the COPY text, kept as written",
        "   - asset: the ASSET filename specified for that variant",
        '   - variant: the variant label, or "DEFAULT" if none is given',
        "4. For the ai_prompt field, generate a plain text instruction (no markdown, no line "
        "breaks) from this template, replacing {title} and {subtitle} with the extracted values:",
        "",
        f'"{render_template(brand, requirements)}"',
        "",
        "5. Return ONLY a valid JSON array, no additional text or markdown formatting.",
    ]
    if expected_images:
        lines.append(
            f"6. The document embeds {expected_images} images; create {expected_images} specifications."
        )
    return "\n".join(lines)


def build_render_instruction(
    title: str,
    subtitle: str,
    design_prompt: str,
    *,
    retry_count: int = 0,
    previous_accuracy: float | None = None,
) -> str:
    """Wrap the design prompt with an explicit character-accuracy checklist."""

    notice = ""
    if retry_count > 0 and previous_accuracy is not None:
        error_rate = 100 - previous_accuracy
        notice = (
            f"RETRY {retry_count + 1}/{MAX_ATTEMPTS} - Previous attempt had "
            f"{error_rate:.1f}% error rate!\n"
        )
    elif retry_count > 0:
        notice = f"RETRY {retry_count + 1}/{MAX_ATTEMPTS} - Previous attempt failed.\n"

    long_subtitle = ""
    if len(subtitle) > LONG_SUBTITLE_CHARS:
        long_subtitle = (
            "IMPORTANT: Full subtitle is long. Fit as much as possible while maintaining readability.\n"
        )

    return (
        "You are a professional graphic designer. Your task is to add text overlays to a "
        "product image with PERFECT accuracy.\n\n"
        "CRITICAL TEXT ACCURACY REQUIREMENTS:\n"
        f"{notice}\n"
        "EXACT TEXT TO RENDER:\n"
        f"{_RULE}\n"
        f'Title (large, bold, top): "{title}"\n'
        f"Character count: {len(title)}\n"
        f"Character-by-character: {' . '.join(title)}\n\n"
        f'Subtitle (smaller, below title): "{subtitle}"\n'
        f"Character count: {len(subtitle)}\n"
        f"{long_subtitle}"
        f"{_RULE}\n\n"
        "DESIGN INSTRUCTIONS:\n"
        f"{design_prompt}\n\n"
        "VERIFICATION CHECKLIST:\n"
        f"- Title has exactly {len(title)} characters\n"
        f"- Subtitle has exactly {len(subtitle)} characters\n"
        "- Every letter, number, space, and punctuation mark is correct\n"
        "- Text is legible and high-contrast against background\n\n"
        "Return the edited image with ZERO text errors."
    )


def build_ocr_instruction(title: str, subtitle: str) -> str:
    return (
        "Extract ALL visible text from this image.\n\n"
        "Expected to find:\n"
        f'- Title: "{title}"\n'
        f'- Subtitle: "{subtitle}"\n\n'
        "Return the extracted text exactly as you see it, including all words, numbers, and "
        "punctuation. Preserve line breaks and formatting."
    )


def build_placement_prompt(title: str, subtitle: str) -> str:
    return (
        "Analyze this product image and provide recommendations for adding text overlay.\n\n"
        "The text to be added:\n"
        f'- Title: "{title}"\n'
        f'- Subtitle: "{subtitle}"\n\n'
        "Analyze:\n"
        "1. Where should the text be positioned for maximum readability?\n"
        "2. What background elements are present that might interfere with text?\n"
        "3. Should the gradient be darker/lighter than usual?\n"
        "4. Is there already text in the image? If so, where?\n"
        "5. What font size would work best given the image composition?\n\n"
        "Respond in JSON format:\n"
        "{\n"
        '  "position": "top-center",\n'
        '  "gradient_intensity": "medium",\n'
        '  "existing_text_areas": ["bottom-right logo"],\n'
        '  "recommended_font_size_title": "52px",\n'
        '  "recommended_font_size_subtitle": "20px",\n'
        '  "placement_notes": "Product occupies center, safe to place text at top"\n'
        "}"
    )


def enhance_prompt(base_prompt: str, analysis: PlacementAnalysis) -> str:
    lines = [
        base_prompt,
        "",
        "IMPORTANT PLACEMENT GUIDANCE based on image analysis:",
        f"- Position: {analysis.position}",
        f"- Gradient intensity: {analysis.gradient_intensity}",
    ]
    if analysis.recommended_font_size_title:
        lines.append(f"- Title size: {analysis.recommended_font_size_title}")
    if analysis.recommended_font_size_subtitle:
        lines.append(f"- Subtitle size: {analysis.recommended_font_size_subtitle}")
    if analysis.placement_notes:
        lines.append(f"- Notes: {analysis.placement_notes}")
    if analysis.existing_text_areas:
        lines.append(f"- Avoid these areas with existing text: {', '.join(analysis.existing_text_areas)}")
    return "\n".join(lines)
