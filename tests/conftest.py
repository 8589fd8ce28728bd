"""
Shared Test Fixtures for adtsync
==================================

Fixtures are organized by layer:

    1. Remote side (MockAdtServer)
    2. Configuration (UploaderConfig factory)
    3. Local side (application directory with build artifacts)
    4. Session (AdtSession wired to the mock server)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from adtsync.core.config import UploaderConfig
from adtsync.integrations.adt.mock import MockAdtServer
from adtsync.integrations.adt.session import AdtSession


SERVER = "https://abap.example.com:44300"
USER = "DEVELOPER"
PASSWORD = "secret"


# =============================================================================
# Remote Side
# =============================================================================

@pytest.fixture
def mock_server():
    """Fresh MockAdtServer accepting DEVELOPER/secret."""
    return MockAdtServer(user=USER, password=PASSWORD)


# =============================================================================
# Local Side
# =============================================================================

@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    """A small UI5 build output: three files, one in a subfolder."""
    dist = tmp_path / "dist"
    (dist / "i18n").mkdir(parents=True)
    (dist / "index.html").write_text("<html></html>")
    (dist / "Component.js").write_text("sap.ui.define([], function () {});")
    (dist / "i18n" / "i18n.properties").write_text("appTitle=Test")
    return dist


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def make_config(app_dir: Path) -> Callable[..., UploaderConfig]:
    """Factory building an UploaderConfig; keyword args override ui5 options."""

    def _make(**ui5_overrides: Any) -> UploaderConfig:
        ui5: dict[str, Any] = {
            "package": "$TMP",
            "bsp_container": "ZAPP",
            "bsp_container_text": "Test application",
        }
        ui5.update(ui5_overrides)
        return UploaderConfig(
            conn={"server": SERVER, "client": "100"},
            auth={"user": USER, "password": PASSWORD},
            ui5=ui5,
            resources={"cwd": str(app_dir), "src": ["**/*"]},
        )

    return _make


@pytest.fixture
def config(make_config) -> UploaderConfig:
    """Default configuration: $TMP package, container ZAPP."""
    return make_config()


# =============================================================================
# Session
# =============================================================================

@pytest.fixture
async def session(config: UploaderConfig, mock_server: MockAdtServer):
    """AdtSession routed to the mock server, closed after the test."""
    async with AdtSession(config.conn, config.auth, transport=mock_server.transport) as s:
        yield s
