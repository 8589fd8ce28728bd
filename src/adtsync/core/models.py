"""
adtsync.core.models - Core Data Models
========================================

The Pydantic models that flow between the layers of adtsync.

Model Hierarchy:
    ContainerTarget  → Where do the artifacts land? (package + BSP container)
    TransportCheck   → Is the container locked in an open transport?
    Artifact         → One local file, loaded and ready for upload
    SyncOutcome      → What happened to one artifact
    SyncResult       → Ordered outcomes of a synchronization run
    UploadReport     → The single terminal outcome of an upload operation

Data Flow:
    ┌──────────────┐  ContainerTarget   ┌────────────────────┐
    │ Orchestrator  │ ────────────────→ │ TransportResolver   │
    │              │ ←──── transport ── │                     │
    │              │                    └────────────────────┘
    │              │  Artifact[]        ┌────────────────────┐
    │              │ ────────────────→ │ ArtifactSynchronizer│
    │              │ ←── SyncResult ─── │                     │
    └──────────────┘                    └────────────────────┘
           │
           ↓ UploadReport
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from adtsync.core.enums import SyncAction, TransportPolicy, UploadStage, UploadState


TEMPORARY_PACKAGE = "$TMP"

# Extensions uploaded as text (isBinary=false). Everything else is binary.
TEXT_EXTENSIONS = frozenset({
    ".js", ".json", ".xml", ".html", ".htm", ".css", ".less", ".properties",
    ".txt", ".md", ".svg", ".yaml", ".yml", ".ts", ".map", ".csv", ".xsd",
    ".xsl", ".hbs",
})


# =============================================================================
# Container Target
# =============================================================================
class ContainerTarget(BaseModel):
    """Identifies the remote BSP container that receives the artifacts.

    Attributes:
        package: ABAP package (devclass) of the container.
        name: BSP container name, optionally with a customer namespace
            prefix such as "/YYY/ZAPP".
        description: Container description, used when it is created.
        language: Logon/original language code (upper-case).
    """

    model_config = ConfigDict(frozen=True)

    package: str = Field(description="ABAP package (devclass)")
    name: str = Field(description="BSP container name, may include a namespace")
    description: str = Field(description="BSP container description")
    language: str = Field(default="EN", description="Language code, e.g. 'EN'")

    @property
    def is_temporary_package(self) -> bool:
        """True for the local $TMP package, which never needs a transport."""
        return self.package == TEMPORARY_PACKAGE

    @property
    def name_without_namespace(self) -> str:
        """Container name with any customer namespace prefix removed."""
        return self.name[self.name.rfind("/") + 1:]


# =============================================================================
# Transport Check Result
# =============================================================================
class TransportCheck(BaseModel):
    """Result of a transport lock check.

    `successful=False` means the check itself could not be completed. A
    completed check without a lock is `successful=True` with an empty
    `transport_no`.
    """

    transport_no: str = Field(default="", description="Lock holder transport, '' if none")
    successful: bool = Field(description="Whether the check completed (RESULT == 'S')")

    @property
    def is_locked(self) -> bool:
        return self.successful and bool(self.transport_no)


# =============================================================================
# Artifact
# =============================================================================
class Artifact(BaseModel):
    """A local file loaded for upload.

    One artifact maps to exactly one remote filestore object, addressed by
    the container name joined with `logical_path`.
    """

    model_config = ConfigDict(frozen=True)

    local_path: Path = Field(description="Absolute or cwd-relative path on disk")
    logical_path: str = Field(description="POSIX path relative to the base directory")
    content: bytes = Field(default=b"", repr=False, description="File content")

    @property
    def name(self) -> str:
        return PurePosixPath(self.logical_path).name

    @property
    def parent_folders(self) -> list[str]:
        """Logical paths of all folders above this artifact, outermost first.

        Example:
            "i18n/de/texts.properties" → ["i18n", "i18n/de"]
        """
        parents = PurePosixPath(self.logical_path).parents
        return [str(p) for p in reversed(parents) if str(p) != "."]

    @property
    def is_binary(self) -> bool:
        return PurePosixPath(self.logical_path).suffix.lower() not in TEXT_EXTENSIONS


# =============================================================================
# Sync Outcome / Result
# =============================================================================
class SyncOutcome(BaseModel):
    """Outcome of synchronizing a single artifact."""

    path: str = Field(description="Logical path of the artifact")
    success: bool = Field(description="Whether the upload succeeded")
    action: Optional[SyncAction] = Field(
        default=None,
        description="CREATED or UPDATED on success, None on failure",
    )
    error: Optional[str] = Field(default=None, description="Error detail on failure")


class SyncResult(BaseModel):
    """Aggregate of a synchronization run, in the order files were supplied."""

    outcomes: list[SyncOutcome] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        """AND of all per-file outcomes (an empty run is successful)."""
        return all(o.success for o in self.outcomes)

    @property
    def failed(self) -> list[SyncOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def synchronized_paths(self) -> list[str]:
        return [o.path for o in self.outcomes if o.success]

    def error_summary(self) -> Optional[str]:
        """Concatenate the per-file errors into one message, or None."""
        failed = self.failed
        if not failed:
            return None
        lines = [f"{o.path}: {o.error}" for o in failed]
        return (
            f"{len(failed)} of {len(self.outcomes)} file(s) failed to upload:\n"
            + "\n".join(lines)
        )


# =============================================================================
# Upload Report
# =============================================================================
class UploadReport(BaseModel):
    """The single terminal outcome of an upload operation.

    Attributes:
        state: DONE or FAILED.
        policy: Transport policy that was active (None if configuration
            failed before it could be determined).
        transport_no: Transport the artifacts were tagged with.
        failed_stage: Stage the failure belongs to (None on success).
        error: Serialized UploaderError (None on success).
        sync_result: Per-file outcomes (None if synchronization never ran).
        state_history: Every state the orchestrator passed through.
    """

    state: UploadState
    policy: Optional[TransportPolicy] = None
    transport_no: Optional[str] = None
    failed_stage: Optional[UploadStage] = None
    error: Optional[dict[str, Any]] = None
    sync_result: Optional[SyncResult] = None
    state_history: list[UploadState] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state == UploadState.DONE

    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        stage = self.failed_stage.value if self.failed_stage else "unknown"
        return f"[{stage}] {self.error.get('message', '')}"

    @property
    def artifacts(self) -> list[str]:
        """Logical paths of the synchronized artifacts, in input order."""
        if not self.success or self.sync_result is None:
            return []
        return self.sync_result.synchronized_paths
