from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, HTTPException

from creative_backend.application import get_project_service
from creative_backend.core.errors import ConfigurationError

router = APIRouter(prefix="/images", tags=["images"])


@router.get("/{image_id}")
async def get_image(image_id: str) -> dict:
    item = get_project_service().get_image(image_id)
    if item is None:
        raise HTTPException(status_code=404, detail="image not found")
    return asdict(item)


@router.post("/{image_id}/approve")
async def approve_image(image_id: str) -> dict:
    service = get_project_service()
    try:
        item = service.approve_image(image_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="image not found") from exc
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return asdict(item)


@router.post("/{image_id}/regenerate")
async def regenerate_image(image_id: str, process: bool = True) -> dict:
    """Re-queue an image and, by default, run processing for its project."""
    service = get_project_service()
    try:
        item = service.regenerate_image(image_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="image not found") from exc
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    if process:
        try:
            await service.process_project(item.project_id)
        except ConfigurationError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        item = service.get_image(image_id) or item
    return asdict(item)
