"""
Tests for app-level wiring: health endpoints, startup hooks and local IP
detection.
"""

import logging
import os
import socket
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException

from app.config import AppSettings, MailSettings


# ---------------------------------------------------------------------------
# Health check endpoint tests - /health
# ---------------------------------------------------------------------------

class TestHealthEndpoint:
    """GET /health is a plain liveness probe."""

    def test_health_returns_ok(self):
        from fastapi.testclient import TestClient
        from app.main import app

        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


# ---------------------------------------------------------------------------
# Health check endpoint tests - /health/mail
# ---------------------------------------------------------------------------

class TestHealthMailEndpoint:
    """GET /health/mail reports whether mail credentials are configured."""

    @pytest.mark.asyncio
    async def test_returns_ok_when_credentials_present(self):
        from app.main import health_mail

        settings = AppSettings(
            mail=MailSettings(username="mentor@example.com", password="app-password",
                              host="smtp.example.com", port=587),
        )
        result = await health_mail(settings)

        assert result["status"] == "ok"
        assert result["mail"] == "configured"
        assert result["host"] == "smtp.example.com"
        assert result["port"] == 587

    @pytest.mark.asyncio
    async def test_never_reports_the_password(self):
        from app.main import health_mail

        settings = AppSettings(mail=MailSettings(username="mentor@example.com", password="app-password"))
        result = await health_mail(settings)

        assert "app-password" not in str(result)

    @pytest.mark.asyncio
    async def test_returns_503_when_credentials_missing(self):
        from app.main import health_mail

        with pytest.raises(HTTPException) as exc_info:
            await health_mail(AppSettings(mail=MailSettings(username="mentor@example.com")))

        assert exc_info.value.status_code == 503
        assert "EMAIL_PASS" in exc_info.value.detail


# ---------------------------------------------------------------------------
# Startup hooks
# ---------------------------------------------------------------------------

class TestStartupHooks:
    """Startup creates the upload directory and logs where the app listens."""

    @pytest.mark.asyncio
    async def test_prepare_upload_dir_creates_directory(self, tmp_path):
        from app.main import prepare_upload_dir

        settings = AppSettings(upload_dir=tmp_path / "uploads")
        with patch("app.main.get_settings", return_value=settings):
            await prepare_upload_dir()

        assert (tmp_path / "uploads").is_dir()

    @pytest.mark.asyncio
    async def test_log_startup_urls_includes_port_and_network_ip(self, caplog):
        from app.main import log_startup_urls

        settings = AppSettings(port=4321, mail=MailSettings(username="a@b.com", password="x"))
        with patch("app.main.get_settings", return_value=settings), \
                patch("app.main.get_local_ip", return_value="192.168.1.50"):
            with caplog.at_level(logging.INFO, logger="app.main"):
                await log_startup_urls()

        assert "http://localhost:4321" in caplog.text
        assert "http://192.168.1.50:4321" in caplog.text
        assert "EMAIL_USER" not in caplog.text

    @pytest.mark.asyncio
    async def test_log_startup_urls_warns_without_credentials(self, caplog):
        from app.main import log_startup_urls

        with patch("app.main.get_settings", return_value=AppSettings()), \
                patch("app.main.get_local_ip", return_value=None):
            with caplog.at_level(logging.INFO, logger="app.main"):
                await log_startup_urls()

        assert "Network: (unavailable)" in caplog.text
        assert "EMAIL_USER / EMAIL_PASS are not set" in caplog.text


# ---------------------------------------------------------------------------
# Local IP detection
# ---------------------------------------------------------------------------

class TestGetLocalIp:
    """get_local_ip prefers HOST_IP, then the outbound interface."""

    def test_host_ip_env_wins(self):
        from app.main import get_local_ip

        with patch.dict(os.environ, {"HOST_IP": "10.0.0.7"}):
            assert get_local_ip() == "10.0.0.7"

    def test_uses_outbound_interface(self):
        from app.main import get_local_ip

        mock_sock = MagicMock()
        mock_sock.__enter__.return_value.getsockname.return_value = ("192.168.1.20", 5000)
        with patch.dict(os.environ, {"HOST_IP": ""}), \
                patch("app.main.socket.socket", return_value=mock_sock):
            assert get_local_ip() == "192.168.1.20"

    def test_skips_docker_bridge_and_loopback(self):
        from app.main import get_local_ip

        mock_sock = MagicMock()
        mock_sock.__enter__.return_value.getsockname.return_value = ("172.17.0.2", 5000)
        with patch.dict(os.environ, {"HOST_IP": ""}), \
                patch("app.main.socket.socket", return_value=mock_sock), \
                patch("app.main.socket.gethostbyname", return_value="127.0.0.1"):
            assert get_local_ip() is None

    def test_returns_none_when_network_unavailable(self):
        from app.main import get_local_ip

        with patch.dict(os.environ, {"HOST_IP": ""}), \
                patch("app.main.socket.socket", side_effect=OSError("no network")), \
                patch("app.main.socket.gethostbyname", side_effect=socket.gaierror("no dns")):
            assert get_local_ip() is None
