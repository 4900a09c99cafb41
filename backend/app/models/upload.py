"""
Per-request models for the upload-and-mail flow.

Neither model is persisted; both live only for the duration of one
POST /upload request.
"""

from pathlib import Path

from pydantic import BaseModel


class UploadedFile(BaseModel):
    """A file received from the form and written to the upload directory."""

    path: Path
    original_filename: str      # as sent by the client, for display only
    stored_filename: str        # timestamp-prefixed, sanitized name on disk
    size: int
    content_type: str = "application/octet-stream"


class MailRequest(BaseModel):
    """A single outbound message carrying one uploaded file."""

    recipient: str
    subject: str
    html_body: str
    attachment: UploadedFile
