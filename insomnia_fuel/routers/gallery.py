from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from insomnia_fuel.core.database import get_db
from insomnia_fuel.deps import require_admin
from insomnia_fuel.models.gallery_image import GalleryImage
from insomnia_fuel.services import r2_storage
from insomnia_fuel.services.errors import MediaStorageError
from insomnia_fuel.services.identity import Principal
from insomnia_fuel.services.orders import utcnow

router = APIRouter(prefix="/api/gallery", tags=["gallery"])
logger = logging.getLogger(__name__)


class UploadUrlRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filename: str = Field(..., min_length=1)
    content_type: Optional[str] = Field(None, alias="contentType")


class GalleryImageCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    object_key: str = Field(..., min_length=1, alias="objectKey")
    url: Optional[str] = None
    width: int = 0
    height: int = 0
    format: str = ""
    bytes: int = 0
    alt: str = ""


def _gallery_to_dict(image: GalleryImage) -> dict:
    return {
        "id": image.id,
        "objectKey": image.object_key,
        "url": image.url,
        "width": image.width,
        "height": image.height,
        "format": image.format,
        "bytes": image.bytes,
        "alt": image.alt,
        "createdAt": image.created_at.isoformat() if image.created_at else None,
    }


@router.get("")
def list_gallery(db: Session = Depends(get_db)):
    images = db.query(GalleryImage).order_by(desc(GalleryImage.created_at), desc(GalleryImage.id)).all()
    return {"items": [_gallery_to_dict(image) for image in images]}


@router.post("/upload-url")
def create_upload_url(payload: UploadUrlRequest, _admin: Principal = Depends(require_admin)):
    try:
        return r2_storage.create_upload_url(payload.filename, payload.content_type)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except MediaStorageError:
        logger.exception("gallery upload url failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to sign upload")


@router.post("", status_code=201)
def create_gallery_image(
    payload: GalleryImageCreate,
    db: Session = Depends(get_db),
    _admin: Principal = Depends(require_admin),
):
    object_key = payload.object_key.strip().lstrip("/")
    try:
        url = payload.url or r2_storage.public_url_for(object_key)
    except MediaStorageError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")

    now = utcnow()
    image = GalleryImage(
        object_key=object_key,
        url=url,
        width=payload.width,
        height=payload.height,
        format=payload.format,
        bytes=payload.bytes,
        alt=payload.alt,
        created_at=now,
        updated_at=now,
    )
    db.add(image)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Image already registered")
    db.refresh(image)
    return _gallery_to_dict(image)


@router.delete("/{image_id}")
def delete_gallery_image(image_id: int, db: Session = Depends(get_db), _admin: Principal = Depends(require_admin)):
    image = db.query(GalleryImage).filter(GalleryImage.id == image_id).first()
    if not image:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    try:
        r2_storage.delete_object(image.object_key)
    except MediaStorageError:
        logger.exception("gallery object delete failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete gallery item")

    db.delete(image)
    db.commit()
    return {"message": "Gallery item deleted"}
