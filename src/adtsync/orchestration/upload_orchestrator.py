"""
adtsync.orchestration.upload_orchestrator - Upload State Machine
==================================================================

The UploadOrchestrator sequences one upload operation:
configuration check → (transport resolution) → synchronization.

State Machine:

    IDLE ─┬─→ RESOLVING_TRANSPORT ─┬─→ SYNCHRONIZING ─┬─→ DONE
          │                        └─→ FAILED          └─→ FAILED
          ├─→ SYNCHRONIZING   (temporary package or explicit transport)
          └─→ FAILED          (configuration error, no network call)

    DONE and FAILED are terminal. The orchestrator never retries a whole
    operation; the only retry is AdtSession's single CSRF token refresh.

Session Ownership:
    One AdtSession is opened per run and closed when the run ends, so the
    CSRF token cache never outlives an operation.

Result:
    Every run ends in exactly one UploadReport, carrying the failing stage
    (configuration, resolution, synchronization) and a serialized error
    when it failed.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Union

import httpx
import structlog

from adtsync.core.config import UploaderConfig, validate_config
from adtsync.core.enums import TransportPolicy, UploadStage, UploadState
from adtsync.core.exceptions import (
    ConfigurationError,
    PartialSyncFailure,
    StateError,
    UploaderError,
)
from adtsync.core.models import SyncResult, UploadReport
from adtsync.integrations.adt.session import AdtSession
from adtsync.orchestration.artifact_synchronizer import ArtifactSynchronizer
from adtsync.orchestration.transport_resolver import TransportManager, TransportResolver


logger = structlog.get_logger()


# =============================================================================
# Allowed State Transitions
# =============================================================================
ALLOWED_TRANSITIONS: dict[UploadState, frozenset[UploadState]] = {
    UploadState.IDLE: frozenset({
        UploadState.RESOLVING_TRANSPORT,
        UploadState.SYNCHRONIZING,
        UploadState.FAILED,
    }),
    UploadState.RESOLVING_TRANSPORT: frozenset({
        UploadState.SYNCHRONIZING,
        UploadState.FAILED,
    }),
    UploadState.SYNCHRONIZING: frozenset({
        UploadState.DONE,
        UploadState.FAILED,
    }),
    UploadState.DONE: frozenset(),
    UploadState.FAILED: frozenset(),
}


class UploadOrchestrator:
    """Runs a single upload operation through the state machine.

    An orchestrator instance handles exactly one run; create a new one for
    the next upload.

    Attributes:
        _config: The upload configuration.
        _http_transport: Optional httpx transport handed to the session.
        _state: Current UploadState.
        _history: Every state entered, in order.

    Example:
        >>> orchestrator = UploadOrchestrator(config)
        >>> report = await orchestrator.run(["index.html"], "dist")
        >>> report.state
        <UploadState.DONE: 'done'>
    """

    def __init__(
        self,
        config: UploaderConfig,
        *,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._http_transport = http_transport
        self._state = UploadState.IDLE
        self._history: list[UploadState] = [UploadState.IDLE]
        self._logger = logger.bind(
            component="upload_orchestrator",
            package=config.ui5.package,
            container=config.ui5.bsp_container,
        )

    @property
    def state(self) -> UploadState:
        return self._state

    @property
    def history(self) -> list[UploadState]:
        return list(self._history)

    # =========================================================================
    # Main Entry Point
    # =========================================================================

    async def run(
        self,
        files: Sequence[Union[str, Path]],
        base_dir: Union[str, Path],
    ) -> UploadReport:
        """Execute the upload.

        Args:
            files: Files to synchronize, relative to base_dir.
            base_dir: Base directory of the logical paths.

        Returns:
            The terminal UploadReport (DONE or FAILED).

        Raises:
            StateError: If this orchestrator already ran.
        """
        if self._state != UploadState.IDLE:
            raise StateError(
                message="An UploadOrchestrator can only run once",
                details={"state": self._state.value},
            )

        try:
            validate_config(self._config)
        except ConfigurationError as e:
            return self._fail(UploadStage.CONFIGURATION, e)

        target = self._config.ui5
        policy = target.transport_policy
        transport_no = target.transport_no

        self._logger.info(
            "upload_starting",
            policy=policy.value,
            file_count=len(files),
        )

        async with AdtSession(
            self._config.conn,
            self._config.auth,
            transport=self._http_transport,
        ) as session:

            # --- Transport resolution ---
            if policy.requires_resolution:
                self._transition(UploadState.RESOLVING_TRANSPORT)
                resolver = TransportResolver(TransportManager(session))
                try:
                    transport_no = await resolver.resolve(target)
                except UploaderError as e:
                    return self._fail(UploadStage.RESOLUTION, e, policy=policy)

            # --- Synchronization ---
            self._transition(UploadState.SYNCHRONIZING)
            synchronizer = ArtifactSynchronizer(
                session,
                target.container_target(),
                transport_no,
                max_concurrency=self._config.max_concurrent_uploads,
            )

            result: Optional[SyncResult] = None
            try:
                result = await synchronizer.sync_files(files, base_dir)
                if result.success and target.calc_appindex:
                    await synchronizer.calculate_app_index()
            except UploaderError as e:
                return self._fail(
                    UploadStage.SYNCHRONIZATION,
                    e,
                    policy=policy,
                    transport_no=transport_no,
                    sync_result=result,
                )

        if not result.success:
            failure = PartialSyncFailure(
                message=result.error_summary() or "Synchronization failed",
                failed_paths=[o.path for o in result.failed],
                errors={o.path: o.error or "" for o in result.failed},
            )
            return self._fail(
                UploadStage.SYNCHRONIZATION,
                failure,
                policy=policy,
                transport_no=transport_no,
                sync_result=result,
            )

        self._transition(UploadState.DONE)
        self._logger.info(
            "upload_completed",
            transport_no=transport_no,
            synchronized=len(result.outcomes),
        )
        return UploadReport(
            state=self._state,
            policy=policy,
            transport_no=transport_no,
            sync_result=result,
            state_history=self.history,
        )

    # =========================================================================
    # State Handling
    # =========================================================================

    def _transition(self, new_state: UploadState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self._state]:
            raise StateError(
                message=f"Illegal transition {self._state.value} -> {new_state.value}",
                details={"from": self._state.value, "to": new_state.value},
            )
        self._logger.debug(
            "upload_state_changed",
            from_state=self._state.value,
            to_state=new_state.value,
        )
        self._state = new_state
        self._history.append(new_state)

    def _fail(
        self,
        stage: UploadStage,
        error: UploaderError,
        *,
        policy: Optional[TransportPolicy] = None,
        transport_no: Optional[str] = None,
        sync_result: Optional[SyncResult] = None,
    ) -> UploadReport:
        self._transition(UploadState.FAILED)
        self._logger.error(
            "upload_failed",
            stage=stage.value,
            error_code=error.error_code,
            error=error.message,
        )
        return UploadReport(
            state=self._state,
            policy=policy,
            transport_no=transport_no,
            failed_stage=stage,
            error=error.to_dict(),
            sync_result=sync_result,
            state_history=self.history,
        )
