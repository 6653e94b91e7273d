# storefront_api/media.py

import logging
import os
import shutil
import uuid
from dataclasses import dataclass

import filetype
from fastapi import UploadFile

from storefront_api import settings


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass
class FileCheck:
    valid: bool
    mime: str|None = None
    reason: str|None = None


def save_upload(upload: UploadFile) -> str:
    """
    Write an uploaded file into the upload directory under a fresh name.

    The client's filename only contributes its extension; the stored name is random.

    Returns:
        str: Path of the stored file.
    """
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    _, ext = os.path.splitext(upload.filename or "")
    path = os.path.join(settings.UPLOAD_DIR, f"{uuid.uuid4().hex}{ext.lower()}")
    upload.file.seek(0)
    with open(path, "wb") as out:
        shutil.copyfileobj(upload.file, out)
    logger.info(f"Stored upload '{upload.filename}' at {path}")
    return path


def validate_file_type(file_path: str, allowed_mime_types=None) -> FileCheck:
    """
    Sniff the file's real content type from its bytes.

    Args:
        file_path (str): Path to the file on disk.
        allowed_mime_types (list[str], optional): Accepted MIME types, defaults to settings.ALLOWED_IMAGE_TYPES.

    Returns:
        FileCheck: ``valid`` with the detected ``mime``, or not valid with a ``reason``.
    """
    allowed = list(allowed_mime_types or settings.ALLOWED_IMAGE_TYPES)
    try:
        kind = filetype.guess(os.path.abspath(file_path))
    except OSError as e:
        return FileCheck(valid=False, reason=f"Error reading file: {e}")

    if kind is None:
        return FileCheck(valid=False, reason="File type could not be determined.")
    if kind.mime not in allowed:
        return FileCheck(valid=False, reason=f"Unsupported file type: {kind.mime}")
    return FileCheck(valid=True, mime=kind.mime)


def public_url(file_path: str) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/uploads/{os.path.basename(file_path)}"


def local_path(url: str) -> str:
    """Map a stored file's public URL (or bare name) back to its path on disk."""
    return os.path.join(settings.UPLOAD_DIR, os.path.basename(url))


def remove_file(path: str) -> bool:
    """Best-effort delete. Failures are logged and reported, never raised."""
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.warning(f"File {path} already removed.")
        return False
    except OSError as e:
        logger.error(f"Could not remove file {path}: {e}")
        return False
    logger.info(f"Removed file {path}")
    return True
