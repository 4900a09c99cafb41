"""
Outbound mail dispatcher.

Builds the "your image is attached" message for an uploaded file and hands
it to an SMTP transport. The transport settings are passed in once at
construction; nothing here reads the environment.

The default transport is ``aiosmtplib.send``. Tests (and alternative
deployments) can inject any coroutine with the same shape:

    async def transport(message: EmailMessage, settings: MailSettings) -> None

A single attempt is made per call. There is no retry and no timeout other
than the transport's own ``settings.timeout``.
"""

import html
import logging
import mimetypes
from email.message import EmailMessage
from email.utils import formataddr
from typing import Awaitable, Callable, Optional

import aiosmtplib

from app.config import MailSettings
from app.models.upload import MailRequest, UploadedFile

logger = logging.getLogger(__name__)

MAIL_SUBJECT = "Image Upload - Your file is attached!"

_HTML_TEMPLATE = """\
<h3>Hello,</h3>
<p>The image you uploaded (<b>{filename}</b>) is attached.</p>
<p>Have a nice day.</p>
"""

_TEXT_TEMPLATE = """\
Hello,

The image you uploaded ({filename}) is attached.

Have a nice day.
"""

Transport = Callable[[EmailMessage, MailSettings], Awaitable[object]]


class DeliveryError(Exception):
    """Raised when the mail transport fails to send a message."""
    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.original = original


class ConfigurationError(DeliveryError):
    """Raised before any network call when mail credentials are missing."""


async def smtp_transport(message: EmailMessage, settings: MailSettings) -> None:
    """Send ``message`` with aiosmtplib using the configured account."""
    await aiosmtplib.send(
        message,
        hostname=settings.host,
        port=settings.port,
        username=settings.username,
        password=settings.password,
        use_tls=settings.use_tls,
        start_tls=settings.start_tls,
        timeout=settings.timeout,
    )


def build_mail_request(recipient: str, attachment: UploadedFile) -> MailRequest:
    """Fill the fixed subject/body template for one uploaded file."""
    filename = html.escape(attachment.stored_filename)
    return MailRequest(
        recipient=recipient,
        subject=MAIL_SUBJECT,
        html_body=_HTML_TEMPLATE.format(filename=filename),
        attachment=attachment,
    )


def _split_content_type(attachment: UploadedFile) -> tuple[str, str]:
    content_type = attachment.content_type
    if "/" not in content_type or content_type == "application/octet-stream":
        guessed, _ = mimetypes.guess_type(attachment.stored_filename)
        content_type = guessed or content_type
    if "/" not in content_type:
        content_type = "application/octet-stream"
    maintype, _, subtype = content_type.partition("/")
    return maintype, subtype


def build_message(request: MailRequest, settings: MailSettings) -> EmailMessage:
    """
    Assemble the MIME message: plain-text and HTML alternatives plus the
    uploaded file as an attachment named by its stored filename.
    """
    message = EmailMessage()
    message["From"] = formataddr((settings.sender_name, settings.username or ""))
    message["To"] = request.recipient
    message["Subject"] = request.subject
    message.set_content(_TEXT_TEMPLATE.format(filename=request.attachment.stored_filename))
    message.add_alternative(request.html_body, subtype="html")

    maintype, subtype = _split_content_type(request.attachment)
    message.add_attachment(
        request.attachment.path.read_bytes(),
        maintype=maintype,
        subtype=subtype,
        filename=request.attachment.stored_filename,
    )
    return message


class MailDispatcher:
    """Sends uploaded files to a recipient through one configured transport."""

    def __init__(self, settings: MailSettings, transport: Optional[Transport] = None):
        self.settings = settings
        self._transport = transport or smtp_transport

    async def send(self, recipient: str, attachment: UploadedFile) -> None:
        """
        Email ``attachment`` to ``recipient``.

        Raises:
            ConfigurationError: EMAIL_USER / EMAIL_PASS were not configured
            DeliveryError: the message could not be built, or the transport
                failed for any reason
        """
        await self.deliver(build_mail_request(recipient, attachment))

    async def deliver(self, request: MailRequest) -> None:
        if not self.settings.is_configured:
            raise ConfigurationError(
                "Mail credentials are not configured: set EMAIL_USER and EMAIL_PASS"
            )

        try:
            message = build_message(request, self.settings)
        except OSError as e:
            raise DeliveryError(f"Could not read attachment {request.attachment.path}: {e}", e) from e
        except ValueError as e:
            # email.headerregistry rejects header values containing CR/LF.
            raise DeliveryError(f"Could not build message for {request.recipient!r}: {e}", e) from e

        try:
            await self._transport(message, self.settings)
        except Exception as e:
            raise DeliveryError(f"Failed to send email to {request.recipient}: {e}", e) from e

        logger.info(f"Email sent to {request.recipient} with {request.attachment.stored_filename}")
