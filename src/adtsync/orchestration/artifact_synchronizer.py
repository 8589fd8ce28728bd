"""
adtsync.orchestration.artifact_synchronizer - Artifact Synchronization
=========================================================================

Pushes local files into the BSP filestore of the target container.

Synchronization Steps:

    1. load       read every file, compute its logical path
    2. container  GET .../objects/<container>/content, create it on 404
    3. folders    create missing intermediate folders, parents first,
                  each folder at most once per run
    4. upload     PUT .../objects/<path>/content (update), on 404
                  POST .../objects/<parent>/content?type=file (create)

Failure Isolation:
    A failing file (unreadable, rejected upload, missing parent folder)
    only fails its own SyncOutcome. Every other file is still attempted.
    Only a failure to provide the container itself aborts the run.

Concurrency:
    Files are read in worker threads (asyncio.to_thread). Uploads run
    concurrently, bounded by an asyncio.Semaphore. Outcomes are reported in
    the order the files were supplied, not completion order.

Every filestore request carries ``sap-language``; when a transport is
resolved it is attached as ``corrNr``.

Text files are sent as ``text/plain; charset=utf-8``, binary files as
``application/octet-stream``.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional, Sequence, Union
from urllib.parse import quote

import structlog

from adtsync.core.enums import SyncAction
from adtsync.core.exceptions import UploaderError
from adtsync.core.models import Artifact, ContainerTarget, SyncOutcome, SyncResult
from adtsync.integrations.adt.payloads import FILESTORE_OBJECTS_PATH
from adtsync.integrations.adt.session import AdtSession


logger = structlog.get_logger()


FILESTORE_APPINDEX_PATH = "/sap/bc/adt/filestore/ui5-bsp/appindex"

BINARY_CONTENT_TYPE = "application/octet-stream"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


def _content_path(object_path: str) -> str:
    """URL path of an object's content resource (path fully encoded)."""
    return f"{FILESTORE_OBJECTS_PATH}/{quote(object_path, safe='')}/content"


class ArtifactSynchronizer:
    """Synchronizes local files into one BSP container.

    Attributes:
        _session: Session used for every remote call.
        _target: The container receiving the files.
        _transport_no: Transport attached as corrNr (None for $TMP).
        _max_concurrency: Upper bound of uploads in flight.

    Example:
        >>> synchronizer = ArtifactSynchronizer(session, target, "DEVK900123")
        >>> result = await synchronizer.sync_files(["index.html"], "dist")
        >>> result.success
        True
    """

    def __init__(
        self,
        session: AdtSession,
        target: ContainerTarget,
        transport_no: Optional[str] = None,
        *,
        max_concurrency: int = 4,
    ) -> None:
        self._session = session
        self._target = target
        self._transport_no = transport_no
        self._max_concurrency = max(1, max_concurrency)
        self._logger = logger.bind(
            component="artifact_synchronizer",
            container=target.name,
            transport_no=transport_no,
        )

    # =========================================================================
    # Main Entry Point
    # =========================================================================

    async def sync_files(
        self,
        files: Sequence[Union[str, Path]],
        base_dir: Union[str, Path],
    ) -> SyncResult:
        """Upload every file to the container.

        Args:
            files: File paths, relative to base_dir (or absolute paths
                below it).
            base_dir: Directory the logical paths are computed from.

        Returns:
            SyncResult with one outcome per file, in input order.

        Raises:
            UploaderError: The container could not be read or created.
        """
        base = Path(base_dir)
        self._logger.info("sync_starting", file_count=len(files))

        loaded = list(await asyncio.gather(*(self._load(base, f) for f in files)))
        artifacts = [item for item in loaded if isinstance(item, Artifact)]

        await self.ensure_container()
        folder_errors = await self._ensure_folders(artifacts)

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _process(item: Union[Artifact, SyncOutcome]) -> SyncOutcome:
            if isinstance(item, SyncOutcome):
                return item
            for folder in item.parent_folders:
                if folder in folder_errors:
                    return SyncOutcome(
                        path=item.logical_path,
                        success=False,
                        error=f"Folder '{folder}' is not available: {folder_errors[folder]}",
                    )
            async with semaphore:
                try:
                    return await self._upload(item)
                except Exception as e:
                    # Unexpected errors fail only this file.
                    self._logger.error(
                        "file_upload_crashed",
                        path=item.logical_path,
                        error=repr(e),
                    )
                    return SyncOutcome(
                        path=item.logical_path,
                        success=False,
                        error=f"Unexpected error: {e!r}",
                    )

        outcomes = await asyncio.gather(*(_process(item) for item in loaded))
        result = SyncResult(outcomes=list(outcomes))

        self._logger.info(
            "sync_completed",
            success=result.success,
            synchronized=len(result.synchronized_paths),
            failed=len(result.failed),
        )
        return result

    async def calculate_app_index(self) -> None:
        """Ask the server to recalculate the application index of the container."""
        await self._session.send(
            "POST",
            f"{FILESTORE_APPINDEX_PATH}/{quote(self._target.name, safe='')}",
            params={"sap-language": self._target.language},
            headers={"Accept": "*/*"},
        )
        self._logger.info("app_index_calculated")

    # =========================================================================
    # Container and Folders
    # =========================================================================

    async def ensure_container(self) -> None:
        """Create the BSP container when it does not exist yet."""
        if await self._exists(self._target.name):
            return

        params = self._base_params()
        params.update({
            "type": "folder",
            "isBinary": "false",
            "name": self._target.name,
            "description": self._target.description,
            "devclass": self._target.package,
        })
        # The container is created below the filestore root, addressed as " ".
        await self._session.send(
            "POST",
            _content_path(" "),
            params=params,
            headers={"Accept": "*/*"},
        )
        self._logger.info("container_created", package=self._target.package)

    async def _ensure_folders(self, artifacts: list[Artifact]) -> dict[str, str]:
        """Create the missing folders below the container.

        Returns:
            Folder logical path → error detail, for folders that could not
            be provided. Folders below a failed folder are failed too.
        """
        folders: dict[str, None] = {}
        for artifact in artifacts:
            for folder in artifact.parent_folders:
                folders.setdefault(folder)

        errors: dict[str, str] = {}
        for folder in sorted(folders, key=lambda f: f.count("/")):
            parent, _, name = folder.rpartition("/")
            if parent and parent in errors:
                errors[folder] = errors[parent]
                continue

            object_path = f"{self._target.name}/{folder}"
            try:
                if await self._exists(object_path):
                    continue
                parent_path = f"{self._target.name}/{parent}" if parent else self._target.name
                params = self._base_params()
                params.update({
                    "type": "folder",
                    "isBinary": "false",
                    "name": name,
                    "devclass": self._target.package,
                })
                await self._session.send(
                    "POST",
                    _content_path(parent_path),
                    params=params,
                    headers={"Accept": "*/*"},
                )
                self._logger.debug("folder_created", folder=folder)
            except UploaderError as e:
                self._logger.warning("folder_creation_failed", folder=folder, error=e.message)
                errors[folder] = e.message

        return errors

    async def _exists(self, object_path: str) -> bool:
        response = await self._session.send(
            "GET",
            _content_path(object_path),
            params={"sap-language": self._target.language},
            headers={"Accept": "*/*"},
            allowed_statuses=(404,),
        )
        return response.status_code != 404

    # =========================================================================
    # Files
    # =========================================================================

    async def _load(self, base: Path, file: Union[str, Path]) -> Union[Artifact, SyncOutcome]:
        local_path = Path(file)
        if not local_path.is_absolute():
            local_path = base / local_path

        try:
            logical_path = local_path.relative_to(base).as_posix()
        except ValueError:
            return SyncOutcome(
                path=str(file),
                success=False,
                error=f"File is not below the base directory {base}",
            )

        try:
            content = await asyncio.to_thread(local_path.read_bytes)
        except OSError as e:
            self._logger.warning("file_read_failed", path=logical_path, error=str(e))
            return SyncOutcome(path=logical_path, success=False, error=f"Cannot read file: {e}")

        return Artifact(local_path=local_path, logical_path=logical_path, content=content)

    async def _upload(self, artifact: Artifact) -> SyncOutcome:
        """Create or update one object; errors become a failed outcome."""
        object_path = f"{self._target.name}/{artifact.logical_path}"
        is_binary = "true" if artifact.is_binary else "false"
        headers = {
            "Accept": "*/*",
            "Content-Type": BINARY_CONTENT_TYPE if artifact.is_binary else TEXT_CONTENT_TYPE,
            "If-Match": "*",
        }

        try:
            params = self._base_params()
            params["isBinary"] = is_binary
            response = await self._session.send(
                "PUT",
                _content_path(object_path),
                params=params,
                content=artifact.content,
                headers=headers,
                allowed_statuses=(404,),
            )
            action = SyncAction.UPDATED

            if response.status_code == 404:
                parent, _, _ = object_path.rpartition("/")
                params.update({
                    "type": "file",
                    "name": artifact.name,
                    "devclass": self._target.package,
                })
                await self._session.send(
                    "POST",
                    _content_path(parent),
                    params=params,
                    content=artifact.content,
                    headers=headers,
                )
                action = SyncAction.CREATED

        except UploaderError as e:
            self._logger.warning(
                "file_upload_failed",
                path=artifact.logical_path,
                error_code=e.error_code,
                error=e.message,
            )
            return SyncOutcome(path=artifact.logical_path, success=False, error=e.message)

        self._logger.debug("file_uploaded", path=artifact.logical_path, action=action.value)
        return SyncOutcome(path=artifact.logical_path, success=True, action=action)

    def _base_params(self) -> dict[str, str]:
        params = {"sap-language": self._target.language}
        if self._transport_no:
            params["corrNr"] = self._transport_no
        return params
