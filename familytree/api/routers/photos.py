"""Photo gallery endpoints.

Routes
------
POST   /photos        Multipart upload of one or more images (form field
                      ``files``), tagged with comma-separated ``person_ids``
GET    /photos        Every photo, newest first
PUT    /photos        Edit metadata and replace the tag set
DELETE /photos?id=    Delete the record and its blob
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile
from pydantic import BaseModel

from familytree.db.photos import list_photos, update_photo
from familytree.storage.uploads import UploadItem, delete_photo, parse_person_ids, upload_batch

router = APIRouter()


class PhotoUpdate(BaseModel):
    photo_id: str
    caption: Optional[str] = None
    location: Optional[str] = None
    date_taken: Optional[str] = None
    comments: Optional[str] = None
    person_ids: Optional[list[str]] = None


@router.post("")
async def upload(
    request: Request,
    files: list[UploadFile] = File(...),
    person_ids: str = Form(""),
    caption: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    date_taken: Optional[str] = Form(None),
    comments: Optional[str] = Form(None),
) -> dict[str, Any]:
    """Upload a batch; failures are counted per file, not raised."""
    conn = request.app.state.db
    items = [
        UploadItem(
            filename=f.filename or "upload",
            content_type=f.content_type or "",
            data=await f.read(),
        )
        for f in files
    ]
    metadata = {
        "caption": caption,
        "location": location,
        "date_taken": date_taken,
        "comments": comments,
    }
    result = upload_batch(
        conn,
        request.app.state.blob_store,
        items,
        person_ids=parse_person_ids(person_ids),
        metadata={k: v for k, v in metadata.items() if v},
    )
    return result.to_dict()


@router.get("")
def list_all(request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    return {"photos": [p.to_dict() for p in list_photos(conn)]}


@router.put("")
def update(body: PhotoUpdate, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    fields = body.model_dump(exclude_unset=True, exclude={"photo_id", "person_ids"})
    photo = update_photo(conn, body.photo_id, fields, person_ids=body.person_ids)
    return photo.to_dict()


@router.delete("")
def remove(request: Request, id: str) -> dict[str, Any]:
    conn = request.app.state.db
    blob_deleted = delete_photo(conn, request.app.state.blob_store, id)
    return {"success": True, "blob_deleted": blob_deleted}
