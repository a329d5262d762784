"""
Media upload router.

Implements POST /api/media/upload - Upload an image or video for a blog.
"""

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.concurrency import run_in_threadpool

from ..lib.dependencies import get_media_uploader
from ..lib.media import MediaUploader, validate_upload
from ..lib.logging_utils import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/media", tags=["media"])


@router.post("/upload")
async def upload_media(
    file: UploadFile = File(...),
    uploader: MediaUploader = Depends(get_media_uploader)
):
    """
    Upload an image or video (max 100MB).

    Returns:
        dict with success flag and the uploaded asset (url, publicId, resourceType)

    Raises:
        ApiError: 400 for disallowed types, 413 for oversized files,
            502 if the asset service fails
    """
    validate_upload(file.filename, file.content_type, file.size or 0)

    content = await file.read()
    asset = await run_in_threadpool(uploader.upload, file.filename, content, file.content_type)

    logger.info(f"Uploaded media {file.filename} as {asset.get('publicId')}")
    return {"success": True, "media": asset}
