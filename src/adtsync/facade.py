"""
adtsync.facade - Uploader Facade
==================================

The single entry point tying the layers together for one upload:

    ┌──────────────────────────────────────────────┐
    │                 Uploader                      │
    │                                               │
    │  UploaderConfig ──→ collect_files()           │
    │                         │ file list           │
    │                         ↓                     │
    │                  UploadOrchestrator           │
    │                   ├── TransportResolver       │
    │                   └── ArtifactSynchronizer    │
    │                         │                     │
    │                         ↓                     │
    │                    UploadReport               │
    └──────────────────────────────────────────────┘

Usage:
    >>> from adtsync import Uploader
    >>> from adtsync.core.config import load_config
    >>>
    >>> uploader = Uploader(load_config("adtsync.yaml"))
    >>> report = await uploader.upload()
    >>> if not report.success:
    ...     print(report.error_message)
"""

from __future__ import annotations

from typing import Optional, Sequence

import httpx
import structlog

from adtsync.core.config import UploaderConfig
from adtsync.core.enums import UploadStage, UploadState
from adtsync.core.exceptions import ConfigurationError
from adtsync.core.models import UploadReport
from adtsync.infrastructure.file_collector import collect_files
from adtsync.orchestration.upload_orchestrator import UploadOrchestrator


logger = structlog.get_logger()


class Uploader:
    """Top-level facade: configuration in, UploadReport out.

    Each call to upload() is an independent operation with its own
    orchestrator, session and CSRF token.

    Attributes:
        _config: The upload configuration.
        _http_transport: Optional httpx transport (e.g. MockAdtServer).
    """

    def __init__(
        self,
        config: UploaderConfig,
        *,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._http_transport = http_transport
        self._logger = logger.bind(component="uploader")

    @property
    def config(self) -> UploaderConfig:
        return self._config

    async def upload(self, files: Optional[Sequence[str]] = None) -> UploadReport:
        """Synchronize the configured resources into the BSP container.

        Args:
            files: Explicit file list relative to ``resources.cwd``. When
                None, the files are collected from ``resources.src``.

        Returns:
            The terminal UploadReport.
        """
        base_dir = self._config.resources.cwd

        if files is None:
            try:
                files = collect_files(base_dir, self._config.resources.src)
            except ConfigurationError as e:
                self._logger.error("file_collection_failed", error=e.message)
                return UploadReport(
                    state=UploadState.FAILED,
                    failed_stage=UploadStage.CONFIGURATION,
                    error=e.to_dict(),
                    state_history=[UploadState.IDLE, UploadState.FAILED],
                )

        self._logger.info("upload_requested", cwd=base_dir, file_count=len(files))

        orchestrator = UploadOrchestrator(
            self._config,
            http_transport=self._http_transport,
        )
        return await orchestrator.run(files, base_dir)

    def __repr__(self) -> str:
        return (
            f"Uploader(server={self._config.conn.server!r}, "
            f"container={self._config.ui5.bsp_container!r})"
        )
