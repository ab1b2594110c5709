from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SpecificationRecord(BaseModel):
    """One brief-derived text specification for a single image variant."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    image_number: int = Field(gt=0)
    variant: str = "DEFAULT"
    title: str = ""
    subtitle: str = ""
    asset_name: str = Field(default="", alias="asset")
    render_prompt: str = Field(default="", alias="ai_prompt")

    @field_validator("variant", mode="before")
    @classmethod
    def _default_variant(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "DEFAULT"
        return value

    @field_validator("title", "subtitle", "asset_name", "render_prompt", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return "" if value is None else value


class BrandSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    font: str = "Montserrat"
    primary_color: str = Field(default="#000000", alias="primaryColor")
    secondary_color: str = Field(default="#FFFFFF", alias="secondaryColor")
    text_color: str = Field(default="white", alias="textColor")
    gradient_color: str = Field(default="#000000", alias="gradientColor")
    custom_prompt: str | None = Field(default=None, alias="customPrompt")
    platform: str | None = None


class RetryHistoryEntry(BaseModel):
    attempt: int = Field(ge=1)
    accuracy: float = Field(ge=0, le=100)
    timestamp: str


class PlacementAnalysis(BaseModel):
    """Text placement guidance returned by the image analyzer."""

    position: str = "top-center"
    gradient_intensity: str = "medium"
    existing_text_areas: list[str] = Field(default_factory=list)
    recommended_font_size_title: str | None = None
    recommended_font_size_subtitle: str | None = None
    placement_notes: str | None = None
