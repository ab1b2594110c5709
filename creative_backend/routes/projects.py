from __future__ import annotations

import json
from dataclasses import asdict

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from pydantic import ValidationError

from creative_backend.application import ImageUpload, get_project_service
from creative_backend.core.errors import AIGatewayError, BriefParseError, ConfigurationError, UnsupportedBriefError
from creative_backend.core.schema import BrandSettings

router = APIRouter(prefix="/projects", tags=["projects"])


def _parse_brand(raw: str) -> BrandSettings:
    try:
        data = json.loads(raw or "{}")
        return BrandSettings.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as exc:
        raise HTTPException(status_code=400, detail=f"invalid brand settings: {exc}") from exc


@router.get("")
async def list_projects() -> dict:
    service = get_project_service()
    return {"items": service.list_projects()}


@router.post("")
async def create_project(
    brief: UploadFile = File(...),
    images: list[UploadFile] = File(default=[]),
    brand: str = Form(default="{}"),
    name: str | None = Form(default=None),
) -> dict:
    """Upload a brief plus product images and queue one work item per image."""
    if not brief.filename:
        raise HTTPException(status_code=400, detail="Brief must have a filename")
    brand_settings = _parse_brand(brand)

    uploads: list[ImageUpload] = []
    try:
        brief_data = await brief.read()
        for upload in images:
            if not upload.filename:
                raise HTTPException(status_code=400, detail="Uploaded image must have a filename")
            uploads.append(
                ImageUpload(
                    filename=upload.filename,
                    data=await upload.read(),
                    content_type=upload.content_type or "image/jpeg",
                )
            )
    finally:
        await brief.close()
        for upload in images:
            await upload.close()

    service = get_project_service()
    try:
        project = await service.create_project(brief.filename, brief_data, uploads, brand_settings, name=name)
    except UnsupportedBriefError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except BriefParseError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ConfigurationError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except AIGatewayError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return service.get_project_overview(project.id) or {}


@router.get("/{project_id}")
async def get_project(project_id: str) -> dict:
    service = get_project_service()
    overview = service.get_project_overview(project_id)
    if not overview:
        raise HTTPException(status_code=404, detail="project not found")
    return overview


@router.get("/{project_id}/images")
async def list_project_images(project_id: str, status: str | None = None) -> dict:
    service = get_project_service()
    if service.get_project_overview(project_id) is None:
        raise HTTPException(status_code=404, detail="project not found")
    return {"items": [asdict(item) for item in service.list_images(project_id, status)]}


@router.get("/{project_id}/review")
async def list_review_queue(project_id: str) -> dict:
    service = get_project_service()
    if service.get_project_overview(project_id) is None:
        raise HTTPException(status_code=404, detail="project not found")
    return {"items": [asdict(item) for item in service.list_review_queue(project_id)]}


@router.post("/{project_id}/process")
async def process_project(project_id: str) -> dict:
    service = get_project_service()
    try:
        report = await service.process_project(project_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="project not found") from exc
    except ConfigurationError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return asdict(report)
