"""
Upload form and image-by-email endpoints.

Endpoints:
  GET  /        - the upload form
  POST /upload  - store the image, email it to the given address, delete it

Each POST /upload runs straight through: validate → store → send → delete
→ respond. Validation failures never touch the disk or the mail transport.
The stored file is deleted whether the send succeeds or fails.
"""

import html
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import HTMLResponse, PlainTextResponse

from app.config import AppSettings, get_settings
from app.services.mailer import DeliveryError, MailDispatcher
from app.services.storage import ValidationError, stored_upload, validate_upload_form

logger = logging.getLogger(__name__)

router = APIRouter()

# Read once at import: a missing form page should stop the service from starting.
_INDEX_HTML = (Path(__file__).resolve().parent.parent / "static" / "index.html").read_text(encoding="utf-8")

_DELIVERY_FAILED_MESSAGE = (
    "An error occurred while sending the email. Please check the server logs."
)

_STORE_FAILED_MESSAGE = (
    "An error occurred while saving the image. Please check the server logs."
)

_SUCCESS_TEMPLATE = """\
<body style="font-family: sans-serif; text-align: center; padding-top: 50px;">
  <h1>Success!</h1>
  <p>Your image was sent to <b>{recipient}</b>.</p>
  <a href="/">Send another image</a>
</body>
"""


@lru_cache
def get_mail_dispatcher() -> MailDispatcher:
    """FastAPI dependency: one dispatcher per process, built from the startup settings."""
    return MailDispatcher(get_settings().mail)


@router.get("/", response_class=HTMLResponse)
async def index() -> HTMLResponse:
    return HTMLResponse(_INDEX_HTML)


@router.post("/upload")
async def upload_image(
    image: Optional[UploadFile] = File(None),
    email: Optional[str] = Form(None),
    settings: AppSettings = Depends(get_settings),
    dispatcher: MailDispatcher = Depends(get_mail_dispatcher),
):
    """
    Email the uploaded image to ``email`` as an attachment.

    Returns:
        400 plain text if the image or the address is missing
        200 HTML confirmation on a successful send
        500 plain text if the image cannot be stored or the mail transport fails
    """
    try:
        image, recipient = validate_upload_form(image, email)
    except ValidationError as e:
        logger.info(f"Rejected upload ({e.error_code})")
        return PlainTextResponse(e.message, status_code=400)

    try:
        async with stored_upload(image, settings.upload_dir) as uploaded:
            logger.info(
                f"Processing started: {uploaded.stored_filename} "
                f"({uploaded.size} bytes) will be sent to {recipient}"
            )
            try:
                await dispatcher.send(recipient, uploaded)
            except DeliveryError:
                logger.exception("Email delivery failed")
                return PlainTextResponse(_DELIVERY_FAILED_MESSAGE, status_code=500)
    except OSError:
        logger.exception("Could not store the uploaded file")
        return PlainTextResponse(_STORE_FAILED_MESSAGE, status_code=500)

    return HTMLResponse(_SUCCESS_TEMPLATE.format(recipient=html.escape(recipient)))
