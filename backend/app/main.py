"""
Image Mailer API
FastAPI application that emails an uploaded image to a given address.
"""

import logging
import os
import socket
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException

from app.config import AppSettings, get_settings
from app.routers import upload
from app.services.storage import ensure_upload_dir

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


def _is_usable_lan_ip(ip: str) -> bool:
    """Return True for an address another machine on the LAN could reach."""
    return not ip.startswith(("127.", "172.", "192.168.65."))


def get_local_ip() -> Optional[str]:
    """
    Detect the host machine's local network IP address.

    ``HOST_IP`` wins when set (containers cannot see the host address);
    otherwise the outbound interface is asked, then the hostname lookup.

    Returns None if every method fails; the startup log then omits the
    network URL.
    """
    host_ip = os.getenv("HOST_IP", "").strip()
    if host_ip:
        return host_ip

    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("8.8.8.8", 80))
            ip = s.getsockname()[0]
            if _is_usable_lan_ip(ip):
                return ip
    except OSError:
        pass

    try:
        ip = socket.gethostbyname(socket.gethostname())
        if ip and _is_usable_lan_ip(ip):
            return ip
    except OSError:
        pass

    return None


app = FastAPI(
    title="Image Mailer",
    description="Upload an image and have it emailed as an attachment",
    version="0.1.0",
)

app.include_router(upload.router, tags=["upload"])


@app.on_event("startup")
async def prepare_upload_dir() -> None:
    """Create the upload directory up front so the first request does not have to."""
    ensure_upload_dir(get_settings().upload_dir)


@app.on_event("startup")
async def log_startup_urls() -> None:
    """
    Log the URLs the service is reachable at, plus whether mail is configured.

    Example output:

        Image Mailer running at:
          Local:   http://localhost:3000
          Network: http://192.168.1.123:3000
    """
    settings = get_settings()
    local_ip = get_local_ip()
    network_line = (
        f"  Network: http://{local_ip}:{settings.port}"
        if local_ip
        else "  Network: (unavailable)"
    )
    logger.info(
        "Image Mailer running at:\n"
        "  Local:   http://localhost:%s\n"
        "%s",
        settings.port,
        network_line,
    )
    if not settings.mail.is_configured:
        logger.warning("EMAIL_USER / EMAIL_PASS are not set; every upload will fail to send")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/mail")
async def health_mail(settings: AppSettings = Depends(get_settings)):
    """
    Report whether outbound mail is configured.

    Only checks that credentials are present; no connection is attempted,
    so this never spends a login against the mail provider. Returns 503
    when EMAIL_USER or EMAIL_PASS is missing.
    """
    if not settings.mail.is_configured:
        raise HTTPException(
            status_code=503,
            detail="Mail transport unavailable: EMAIL_USER and EMAIL_PASS are not configured",
        )
    return {
        "status": "ok",
        "mail": "configured",
        "host": settings.mail.host,
        "port": settings.mail.port,
    }


def run() -> None:
    """Console entry point: serve the app on $PORT (default 3000)."""
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)


if __name__ == "__main__":
    run()
