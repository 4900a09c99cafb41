"""
Service configuration.

Reads mail credentials, SMTP endpoint and the upload directory from the
environment once. A ``.env`` file in the working directory is loaded first
if present; real environment variables always win.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

_APP_DIR = Path(__file__).resolve().parent

DEFAULT_PORT = 3000
DEFAULT_SMTP_HOST = "smtp.gmail.com"
DEFAULT_SMTP_PORT = 465
DEFAULT_SENDER_NAME = "Project Mentor"
DEFAULT_MAIL_TIMEOUT = 60.0
DEFAULT_UPLOAD_DIR = _APP_DIR / "uploads"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


class MailSettings(BaseModel):
    """Outbound mail transport settings. Immutable for the process lifetime."""

    model_config = {"frozen": True}

    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    host: str = DEFAULT_SMTP_HOST
    port: int = DEFAULT_SMTP_PORT
    start_tls: bool = False
    sender_name: str = DEFAULT_SENDER_NAME
    timeout: float = DEFAULT_MAIL_TIMEOUT

    @property
    def use_tls(self) -> bool:
        """Implicit TLS (SMTPS) unless STARTTLS was asked for."""
        return not self.start_tls

    @property
    def is_configured(self) -> bool:
        return bool(self.username and self.password)


class AppSettings(BaseModel):
    model_config = {"frozen": True}

    upload_dir: Path = DEFAULT_UPLOAD_DIR
    port: int = DEFAULT_PORT
    mail: MailSettings = MailSettings()


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def load_mail_settings() -> MailSettings:
    """
    Build MailSettings from the environment.

    EMAIL_USER / EMAIL_PASS are the account identity and app password.
    When SMTP_STARTTLS is not set, STARTTLS is used only for port 587;
    every other port gets implicit TLS.
    """
    port = _get_int("SMTP_PORT", DEFAULT_SMTP_PORT)
    return MailSettings(
        username=os.getenv("EMAIL_USER", "").strip() or None,
        password=os.getenv("EMAIL_PASS") or None,
        host=os.getenv("SMTP_HOST", "").strip() or DEFAULT_SMTP_HOST,
        port=port,
        start_tls=_get_bool("SMTP_STARTTLS", port == 587),
        sender_name=os.getenv("MAIL_SENDER_NAME", "").strip() or DEFAULT_SENDER_NAME,
        timeout=_get_float("MAIL_TIMEOUT", DEFAULT_MAIL_TIMEOUT),
    )


def load_settings() -> AppSettings:
    """Build the full AppSettings value from the environment."""
    upload_dir = os.getenv("UPLOAD_DIR", "").strip()
    return AppSettings(
        upload_dir=Path(upload_dir) if upload_dir else DEFAULT_UPLOAD_DIR,
        port=_get_int("PORT", DEFAULT_PORT),
        mail=load_mail_settings(),
    )


@lru_cache
def get_settings() -> AppSettings:
    """FastAPI dependency: settings are read from the environment once per process."""
    return load_settings()
