"""
Media uploads to the Cloudinary asset service.

Validates images and videos before upload and hands them to the Cloudinary
SDK. Transformations and delivery are handled by the service.
"""

import io
from pathlib import Path
from typing import Any, Dict, Optional

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from .server_utils import ApiError
from .logging_utils import get_logger

logger = get_logger(__name__)

MAX_UPLOAD_SIZE = 100 * 1024 * 1024  # 100MB, videos included

ALLOWED_MIME_TYPES = {
    'image/jpeg', 'image/png', 'image/gif', 'image/webp', 'image/bmp', 'image/tiff',
    'video/mp4', 'video/quicktime', 'video/x-msvideo', 'video/x-matroska'
}

ALLOWED_EXTENSIONS = {
    'jpg', 'jpeg', 'png', 'gif', 'webp', 'bmp', 'tiff', 'mp4', 'mov', 'avi', 'mkv'
}


def validate_upload(filename: Optional[str], content_type: Optional[str], size: int) -> None:
    """
    Check that an upload is an accepted image or video.

    Args:
        filename: Original file name
        content_type: Declared MIME type
        size: Size in bytes

    Raises:
        ApiError: If the file is missing, too large or of a disallowed type
    """
    if not filename:
        raise ApiError("No file uploaded", status_code=400)

    if content_type not in ALLOWED_MIME_TYPES:
        raise ApiError("Invalid file type. Images and videos are allowed.", status_code=400)

    extension = Path(filename).suffix.lower().lstrip('.')
    if extension not in ALLOWED_EXTENSIONS:
        raise ApiError("Invalid file type. Images and videos are allowed.", status_code=400)

    if size > MAX_UPLOAD_SIZE:
        raise ApiError("File too large. Maximum size is 100MB.", status_code=413)


class MediaUploader:
    """
    Uploads files into a folder of a Cloudinary account.
    """

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, folder: str = 'fb-blogs', timeout: float = 300):
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True
        )
        self.folder = folder
        self.timeout = timeout

    def upload(self, filename: str, content: bytes, content_type: str) -> Dict[str, Any]:
        """
        Validate and upload a file. Blocks until the asset service answers.

        Args:
            filename: Original file name
            content: File content
            content_type: MIME type

        Returns:
            Dict with url, publicId, resourceType, format and bytes

        Raises:
            ApiError: On validation failure or upload error
        """
        validate_upload(filename, content_type, len(content))

        logger.info(f"Uploading {filename} ({len(content)} bytes) to folder {self.folder}")
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(content),
                folder=self.folder,
                resource_type='auto',
                timeout=self.timeout
            )
        except CloudinaryError as e:
            logger.error(f"Media upload failed for {filename}: {e}")
            raise ApiError(f"Media upload failed: {e}", status_code=502) from e

        return {
            'url': result.get('secure_url') or result.get('url'),
            'publicId': result.get('public_id'),
            'resourceType': result.get('resource_type'),
            'format': result.get('format'),
            'bytes': result.get('bytes', len(content)),
        }
