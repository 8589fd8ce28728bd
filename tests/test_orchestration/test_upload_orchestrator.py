"""
Tests for adtsync.orchestration.upload_orchestrator
=====================================================

These tests verify the upload state machine:
    - State histories for every path (temporary package, explicit
      transport, resolution, failures)
    - No network call on configuration errors
    - No upload after a failed transport resolution
    - Partial synchronization failures surface as one report
    - An orchestrator runs only once
"""

import pytest

from adtsync.core.config import AuthConfig
from adtsync.core.enums import TransportPolicy, UploadStage, UploadState
from adtsync.core.exceptions import StateError
from adtsync.orchestration.upload_orchestrator import ALLOWED_TRANSITIONS, UploadOrchestrator


FILES = ["index.html", "Component.js", "i18n/i18n.properties"]

IDLE = UploadState.IDLE
RESOLVING = UploadState.RESOLVING_TRANSPORT
SYNCING = UploadState.SYNCHRONIZING
DONE = UploadState.DONE
FAILED = UploadState.FAILED


def _orchestrator(config, mock_server) -> UploadOrchestrator:
    return UploadOrchestrator(config, http_transport=mock_server.transport)


# =============================================================================
# Tests: Successful Runs
# =============================================================================
class TestSuccessfulRuns:
    """State histories of runs that end in DONE."""

    async def test_temporary_package(self, make_config, app_dir, mock_server) -> None:
        """$TMP skips resolution entirely."""
        orchestrator = _orchestrator(make_config(package="$TMP"), mock_server)

        report = await orchestrator.run(FILES, app_dir)

        assert report.success
        assert report.state_history == [IDLE, SYNCING, DONE]
        assert report.policy == TransportPolicy.NONE_REQUIRED
        assert report.transport_no is None
        assert report.artifacts == FILES
        assert mock_server.calls_to("POST", "/sap/bc/adt/cts/") == []
        assert mock_server.calls_to("GET", "/sap/bc/adt/cts/") == []

    async def test_explicit_transport(self, make_config, app_dir, mock_server) -> None:
        config = make_config(package="ZTEST", transport_no="DEVK900555")

        report = await _orchestrator(config, mock_server).run(FILES, app_dir)

        assert report.state_history == [IDLE, SYNCING, DONE]
        assert report.transport_no == "DEVK900555"
        assert mock_server.creation_calls == []
        assert all(c["params"]["corrNr"] == "DEVK900555" for c in mock_server.upload_calls)

    async def test_resolved_transport(self, make_config, app_dir, mock_server) -> None:
        mock_server.lock_holder = "DEVK900123"
        config = make_config(package="ZTEST", transport_use_locked=True)

        report = await _orchestrator(config, mock_server).run(FILES, app_dir)

        assert report.state_history == [IDLE, RESOLVING, SYNCING, DONE]
        assert report.policy == TransportPolicy.REUSE_LOCKED
        assert report.transport_no == "DEVK900123"

    async def test_created_transport(self, make_config, app_dir, mock_server) -> None:
        config = make_config(package="ZTEST", create_transport=True, transport_text="Upload ZAPP")

        report = await _orchestrator(config, mock_server).run(FILES, app_dir)

        assert report.success
        assert report.transport_no == "DEVK900001"
        assert set(mock_server.object_transports.values()) == {"DEVK900001"}

    async def test_app_index_calculated(self, make_config, app_dir, mock_server) -> None:
        config = make_config(calc_appindex=True)

        report = await _orchestrator(config, mock_server).run(FILES, app_dir)

        assert report.success
        assert mock_server.appindex_containers == ["ZAPP"]

    async def test_one_session_token_per_run(self, config, app_dir, mock_server) -> None:
        await _orchestrator(config, mock_server).run(FILES, app_dir)
        assert mock_server.token_fetch_count == 1


# =============================================================================
# Tests: Failed Runs
# =============================================================================
class TestFailedRuns:
    """Every failure ends in exactly one FAILED report with its stage."""

    async def test_configuration_error_sends_nothing(self, make_config, app_dir, mock_server) -> None:
        config = make_config(package="ZTEST")

        report = await _orchestrator(config, mock_server).run(FILES, app_dir)

        assert report.state_history == [IDLE, FAILED]
        assert report.failed_stage == UploadStage.CONFIGURATION
        assert report.error["error_code"] == "MISSING_TRANSPORT"
        assert report.policy is None
        assert mock_server.calls == []

    async def test_incomplete_options_send_nothing(self, config, app_dir, mock_server) -> None:
        config = config.model_copy(update={"auth": AuthConfig(user="", password="secret")})

        report = await _orchestrator(config, mock_server).run(FILES, app_dir)

        assert report.state_history == [IDLE, FAILED]
        assert report.failed_stage == UploadStage.CONFIGURATION
        assert report.error["error_code"] == "INCOMPLETE_OPTIONS"
        assert report.error["details"]["missing"] == ["auth.user"]
        assert mock_server.calls == []

    async def test_container_name_too_long(self, make_config, app_dir, mock_server) -> None:
        config = make_config(bsp_container="NAMESPACE/TOOLONGCONTAINERNAME123")

        report = await _orchestrator(config, mock_server).run(FILES, app_dir)

        assert report.error["error_code"] == "CONTAINER_NAME_TOO_LONG"
        assert mock_server.calls == []

    async def test_resolution_failure_uploads_nothing(self, make_config, app_dir, mock_server) -> None:
        config = make_config(package="ZTEST", transport_use_locked=True)

        report = await _orchestrator(config, mock_server).run(FILES, app_dir)

        assert report.state_history == [IDLE, RESOLVING, FAILED]
        assert report.failed_stage == UploadStage.RESOLUTION
        assert report.error["error_type"] == "TransportResolutionError"
        assert report.sync_result is None
        assert mock_server.upload_calls == []
        assert mock_server.objects == {}

    async def test_remote_error_during_resolution(self, make_config, app_dir, mock_server) -> None:
        mock_server.fail_transport_creation = True
        config = make_config(package="ZTEST", create_transport=True, transport_text="Upload ZAPP")

        report = await _orchestrator(config, mock_server).run(FILES, app_dir)

        assert report.failed_stage == UploadStage.RESOLUTION
        assert report.error["error_type"] == "RemoteProtocolError"
        assert report.error["details"]["status_code"] == 500

    async def test_partial_sync_failure(self, config, app_dir, mock_server) -> None:
        mock_server.failing_paths = {"ZAPP/Component.js"}

        report = await _orchestrator(config, mock_server).run(FILES, app_dir)

        assert report.state_history == [IDLE, SYNCING, FAILED]
        assert report.failed_stage == UploadStage.SYNCHRONIZATION
        assert report.error["error_type"] == "PartialSyncFailure"
        assert report.error["details"]["failed_paths"] == ["Component.js"]
        assert len(report.sync_result.outcomes) == 3
        assert report.artifacts == []
        assert report.error_message.startswith("[synchronization] 1 of 3 file(s) failed")

    async def test_app_index_skipped_after_partial_failure(self, make_config, app_dir, mock_server) -> None:
        mock_server.failing_paths = {"ZAPP/index.html"}
        config = make_config(calc_appindex=True)

        await _orchestrator(config, mock_server).run(FILES, app_dir)

        assert mock_server.appindex_containers == []

    async def test_container_failure(self, config, app_dir, mock_server) -> None:
        mock_server.reject_tokens = 2

        report = await _orchestrator(config, mock_server).run(FILES, app_dir)

        assert report.state_history == [IDLE, SYNCING, FAILED]
        assert report.failed_stage == UploadStage.SYNCHRONIZATION
        assert report.error["error_code"] == "CSRF_TOKEN_REJECTED"
        assert report.sync_result is None


# =============================================================================
# Tests: State Machine
# =============================================================================
class TestStateMachine:
    """Tests for the transition table and single-run rule."""

    def test_terminal_states_have_no_transitions(self) -> None:
        assert ALLOWED_TRANSITIONS[DONE] == frozenset()
        assert ALLOWED_TRANSITIONS[FAILED] == frozenset()

    def test_done_only_from_synchronizing(self) -> None:
        sources = [state for state, targets in ALLOWED_TRANSITIONS.items() if DONE in targets]
        assert sources == [SYNCING]

    def test_initial_state(self, config, mock_server) -> None:
        orchestrator = _orchestrator(config, mock_server)
        assert orchestrator.state == IDLE
        assert orchestrator.history == [IDLE]

    async def test_runs_only_once(self, config, app_dir, mock_server) -> None:
        orchestrator = _orchestrator(config, mock_server)
        await orchestrator.run(FILES, app_dir)

        with pytest.raises(StateError):
            await orchestrator.run(FILES, app_dir)

    async def test_final_state_is_terminal(self, config, app_dir, mock_server) -> None:
        orchestrator = _orchestrator(config, mock_server)
        await orchestrator.run(FILES, app_dir)
        assert orchestrator.state.is_terminal
