"""
Upload Example - Reuse a Locked Transport
===========================================

This example runs a complete upload against the in-process MockAdtServer:
the BSP container is locked in an open transport, so adtsync reuses that
transport instead of creating a new one.

Flow:
    1. Write a tiny UI5 build output into a temporary directory
    2. Configure package ZTEST with transport_use_locked
    3. Upload: transport check → container/folder creation → file uploads
    4. Upload again: every file is now an update

Usage:
    python examples/upload_with_mock_server.py
"""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path

from adtsync import Uploader
from adtsync.core.config import UploaderConfig
from adtsync.integrations.adt.mock import MockAdtServer


def write_app(base: Path) -> None:
    (base / "i18n").mkdir(parents=True)
    (base / "index.html").write_text("<html><body>Hello</body></html>")
    (base / "Component.js").write_text("sap.ui.define([], function () {});")
    (base / "i18n" / "i18n.properties").write_text("appTitle=Hello")


async def main() -> None:
    """Upload twice and print both reports."""
    server = MockAdtServer()
    server.lock_holder = "DEVK900123"

    with tempfile.TemporaryDirectory() as tmp:
        dist = Path(tmp) / "dist"
        write_app(dist)

        config = UploaderConfig(
            conn={"server": "https://abap.example.com:44300", "client": "100"},
            auth={"user": "DEVELOPER", "password": "secret"},
            ui5={
                "package": "ZTEST",
                "bsp_container": "ZHELLO",
                "bsp_container_text": "Hello World",
                "transport_use_locked": True,
            },
            resources={"cwd": str(dist), "src": ["**/*", "!**/*.map"]},
        )
        uploader = Uploader(config, http_transport=server.transport)

        for run in (1, 2):
            report = await uploader.upload()

            print(f"Upload #{run}")
            print("-" * 40)
            print(f"State     : {report.state.value}")
            print(f"Policy    : {report.policy.value}")
            print(f"Transport : {report.transport_no}")
            for outcome in report.sync_result.outcomes:
                print(f"  {outcome.path:<24} {outcome.action.value}")
            print()

    print(f"Remote objects : {sorted(server.objects)}")
    print(f"Token fetches  : {server.token_fetch_count}")


if __name__ == "__main__":
    asyncio.run(main())
