"""
Local upload storage for images awaiting delivery.

Handles upload directory setup, collision-resistant naming, writing the
received file, and deleting it once the mail attempt is over.

Stored filenames are ``{epoch_millis}-{sanitized_original_name}``. The
timestamp prefix keeps concurrent uploads of the same file apart without
listing the directory; if two uploads still land on the same name in the
same millisecond, the second gets a short random suffix.
"""

import logging
import re
import time
from contextlib import asynccontextmanager
from email.utils import getaddresses
from pathlib import Path
from typing import AsyncIterator, Optional
from uuid import uuid4

from fastapi import UploadFile

from app.models.upload import UploadedFile

logger = logging.getLogger(__name__)

_DEFAULT_CONTENT_TYPE = "application/octet-stream"


class ValidationError(Exception):
    """Raised when the upload form is missing the image or the email address."""
    def __init__(self, message: str, error_code: str):
        super().__init__(message)
        self.error_code = error_code
        self.message = message


class CleanupError(Exception):
    """Raised when a stored upload cannot be removed from disk."""
    def __init__(self, path: Path, original: OSError):
        super().__init__(f"Failed to delete {path}: {original}")
        self.path = path
        self.original = original


def ensure_upload_dir(upload_dir: Path) -> Path:
    """
    Create the upload directory if it does not exist yet.

    Safe to call at startup and again before every write; concurrent
    callers never fail on a directory someone else just created.
    """
    if not upload_dir.is_dir():
        upload_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created upload directory: {upload_dir}")
    return upload_dir


def sanitize_filename(filename: str) -> str:
    """
    Reduce a client-supplied filename to a safe basename.

    Directory components (either separator) are dropped and anything
    outside letters, digits, ``_``, ``-`` and ``.`` becomes ``_``.
    """
    basename = re.split(r"[\\/]", filename)[-1]
    sanitized = re.sub(r"[^\w\-.]", "_", basename, flags=re.ASCII)
    if not sanitized.strip("."):
        return "upload"
    return sanitized


def build_stored_filename(original_filename: str, timestamp_ms: Optional[int] = None) -> str:
    """Return ``{timestamp_ms}-{sanitized name}`` for a freshly received file."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{timestamp_ms}-{sanitize_filename(original_filename)}"


def validate_upload_form(image: Optional[UploadFile], email: Optional[str]) -> tuple[UploadFile, str]:
    """
    Check that the form carried both an image and a recipient address.

    Browsers submit an empty file part when no file was chosen, so a part
    without a filename counts as missing. The address must be exactly one
    mailbox on one line; lists and embedded line breaks are rejected.

    Returns:
        (image, stripped email address)

    Raises:
        ValidationError: if either field is missing or blank, or the
            address is not a single mailbox
    """
    recipient = (email or "").strip()
    if image is None or not image.filename:
        raise ValidationError("Email address and image file are required.", "missing_file")
    if not recipient:
        raise ValidationError("Email address and image file are required.", "missing_email")
    if "\r" in recipient or "\n" in recipient or len(getaddresses([recipient])) != 1:
        raise ValidationError("Please enter a single email address.", "invalid_email")
    return image, recipient


def _write_exclusive(path: Path, content: bytes) -> None:
    fh = open(path, "xb")
    try:
        with fh:
            fh.write(content)
    except BaseException:
        # A half-written file must not outlive the failed request.
        path.unlink(missing_ok=True)
        raise


async def save_upload(file: UploadFile, upload_dir: Path) -> UploadedFile:
    """
    Write an uploaded file into the upload directory under a unique name.

    Args:
        file: The multipart file part received by the router
        upload_dir: Directory for transient uploads (created if missing)

    Returns:
        UploadedFile describing what was written
    """
    ensure_upload_dir(upload_dir)

    original_filename = file.filename or "upload"
    content = await file.read()

    stored_filename = build_stored_filename(original_filename)
    path = upload_dir / stored_filename
    try:
        _write_exclusive(path, content)
    except FileExistsError:
        timestamp, _, name = stored_filename.partition("-")
        stored_filename = f"{timestamp}-{uuid4().hex[:8]}-{name}"
        path = upload_dir / stored_filename
        _write_exclusive(path, content)

    return UploadedFile(
        path=path,
        original_filename=original_filename,
        stored_filename=stored_filename,
        size=len(content),
        content_type=file.content_type or _DEFAULT_CONTENT_TYPE,
    )


def delete_upload(path: Path) -> bool:
    """
    Delete a stored upload.

    Returns:
        True if the file was removed, False if it was already gone

    Raises:
        CleanupError: if the file exists but could not be removed
    """
    try:
        path.unlink()
    except FileNotFoundError:
        logger.info(f"Temporary file already gone: {path}")
        return False
    except OSError as e:
        raise CleanupError(path, e) from e

    logger.info(f"Temporary file deleted: {path}")
    return True


@asynccontextmanager
async def stored_upload(file: UploadFile, upload_dir: Path) -> AsyncIterator[UploadedFile]:
    """
    Save ``file`` for the duration of the ``async with`` block.

    The stored copy is deleted exactly once when the block exits, whether
    it exits normally or by exception. Deletion failures are logged and
    never raised, so they cannot mask the block's own outcome.
    """
    uploaded = await save_upload(file, upload_dir)
    try:
        yield uploaded
    finally:
        try:
            delete_upload(uploaded.path)
        except CleanupError as e:
            logger.warning(f"Error deleting temporary file: {e}")
