"""
Tests for adtsync.orchestration.artifact_synchronizer
=======================================================

These tests verify:
    - Container and folder provisioning (created once, parents first)
    - Create vs. update of remote objects
    - Failure isolation: one failing file never stops the others
    - Transport (corrNr) and language tagging of every filestore write
    - Outcome order, text/binary detection and content types
"""

import asyncio
from pathlib import Path

import pytest

from adtsync.core.enums import SyncAction
from adtsync.core.exceptions import AuthenticationError
from adtsync.core.models import ContainerTarget
from adtsync.orchestration.artifact_synchronizer import ArtifactSynchronizer


FILES = ["index.html", "Component.js", "i18n/i18n.properties"]


@pytest.fixture
def target() -> ContainerTarget:
    return ContainerTarget(package="ZTEST", name="ZAPP", description="Test application")


@pytest.fixture
def synchronizer(session, target) -> ArtifactSynchronizer:
    return ArtifactSynchronizer(session, target)


def _filestore_writes(mock_server) -> list[dict]:
    prefix = "/sap/bc/adt/filestore/ui5-bsp/objects/"
    return mock_server.calls_to("POST", prefix) + mock_server.calls_to("PUT", prefix)


# =============================================================================
# Tests: Container and Folders
# =============================================================================
class TestProvisioning:
    """The container and intermediate folders are created on demand."""

    async def test_creates_missing_container(self, synchronizer, app_dir, mock_server) -> None:
        await synchronizer.sync_files(FILES, app_dir)

        assert "ZAPP" in mock_server.folders
        creation = next(
            c for c in mock_server.calls
            if c["method"] == "POST" and c["params"].get("name") == "ZAPP"
        )
        assert creation["params"]["type"] == "folder"
        assert creation["params"]["description"] == "Test application"
        assert creation["params"]["devclass"] == "ZTEST"

    async def test_existing_container_not_recreated(self, synchronizer, app_dir, mock_server) -> None:
        mock_server.folders.add("ZAPP")

        await synchronizer.sync_files(FILES, app_dir)

        assert not any(c["params"].get("name") == "ZAPP" for c in mock_server.calls)

    async def test_creates_subfolder_once(self, synchronizer, app_dir, mock_server) -> None:
        (app_dir / "i18n" / "i18n_de.properties").write_text("appTitle=Test")

        await synchronizer.sync_files(FILES + ["i18n/i18n_de.properties"], app_dir)

        folder_posts = [
            c for c in mock_server.calls
            if c["method"] == "POST" and c["params"].get("type") == "folder"
            and c["params"].get("name") == "i18n"
        ]
        assert len(folder_posts) == 1
        assert "ZAPP/i18n" in mock_server.folders

    async def test_nested_folders_parents_first(self, synchronizer, app_dir, mock_server) -> None:
        nested = app_dir / "test" / "unit" / "controller"
        nested.mkdir(parents=True)
        (nested / "App.qunit.js").write_text("QUnit.module('App');")

        result = await synchronizer.sync_files(["test/unit/controller/App.qunit.js"], app_dir)

        assert result.success
        assert {"ZAPP/test", "ZAPP/test/unit", "ZAPP/test/unit/controller"} <= mock_server.folders
        assert "ZAPP/test/unit/controller/App.qunit.js" in mock_server.objects

    async def test_container_failure_aborts(self, synchronizer, app_dir, mock_server) -> None:
        """Without a container nothing can be uploaded."""
        mock_server.reject_tokens = 2

        with pytest.raises(AuthenticationError):
            await synchronizer.sync_files(FILES, app_dir)

        assert mock_server.upload_calls == []

    async def test_folder_failure_only_fails_its_files(self, synchronizer, app_dir, mock_server) -> None:
        mock_server.folders.add("ZAPP")
        mock_server.reject_tokens = 2

        result = await synchronizer.sync_files(FILES, app_dir)

        outcomes = {o.path: o for o in result.outcomes}
        assert not outcomes["i18n/i18n.properties"].success
        assert "i18n" in outcomes["i18n/i18n.properties"].error
        assert outcomes["index.html"].success
        assert outcomes["Component.js"].success


# =============================================================================
# Tests: Create and Update
# =============================================================================
class TestUpload:
    """Tests for the create-or-update upload of single files."""

    async def test_new_files_created(self, synchronizer, app_dir, mock_server) -> None:
        result = await synchronizer.sync_files(FILES, app_dir)

        assert result.success
        assert [o.action for o in result.outcomes] == [SyncAction.CREATED] * 3
        assert mock_server.objects["ZAPP/index.html"] == b"<html></html>"
        assert mock_server.objects["ZAPP/i18n/i18n.properties"] == b"appTitle=Test"
        assert len(mock_server.file_creation_calls) == 3

    async def test_existing_files_updated(self, synchronizer, app_dir, mock_server) -> None:
        await synchronizer.sync_files(FILES, app_dir)
        (app_dir / "index.html").write_text("<html>v2</html>")

        result = await synchronizer.sync_files(FILES, app_dir)

        assert [o.action for o in result.outcomes] == [SyncAction.UPDATED] * 3
        assert mock_server.objects["ZAPP/index.html"] == b"<html>v2</html>"
        assert len(mock_server.file_creation_calls) == 3

    async def test_absolute_paths_below_base(self, synchronizer, app_dir, mock_server) -> None:
        result = await synchronizer.sync_files([app_dir / "index.html"], app_dir)

        assert result.synchronized_paths == ["index.html"]

    async def test_file_type_flag(self, synchronizer, app_dir, mock_server) -> None:
        (app_dir / "logo.png").write_bytes(b"\x89PNG\r\n")

        await synchronizer.sync_files(["index.html", "logo.png"], app_dir)

        flags = {
            c["path"].rsplit("/", 2)[-2]: c["params"]["isBinary"]
            for c in mock_server.upload_calls
        }
        assert flags == {"index.html": "false", "logo.png": "true"}

    async def test_content_type_follows_file_type(self, synchronizer, app_dir, mock_server) -> None:
        (app_dir / "logo.png").write_bytes(b"\x89PNG\r\n")

        await synchronizer.sync_files(["index.html", "logo.png"], app_dir)

        content_types = {
            c["path"].rsplit("/", 2)[-2]: c["headers"]["content-type"]
            for c in mock_server.upload_calls
        }
        assert content_types == {
            "index.html": "text/plain; charset=utf-8",
            "logo.png": "application/octet-stream",
        }

    async def test_files_read_off_the_event_loop(self, synchronizer, app_dir, monkeypatch) -> None:
        offloaded = []
        original = asyncio.to_thread

        async def _to_thread(func, *args, **kwargs):
            offloaded.append(func)
            return await original(func, *args, **kwargs)

        monkeypatch.setattr(asyncio, "to_thread", _to_thread)

        result = await synchronizer.sync_files(FILES, app_dir)

        assert result.success
        assert [getattr(f, "__name__", "") for f in offloaded].count("read_bytes") == 3

    async def test_empty_file_list(self, synchronizer, app_dir) -> None:
        result = await synchronizer.sync_files([], app_dir)
        assert result.success
        assert result.outcomes == []


# =============================================================================
# Tests: Failure Isolation
# =============================================================================
class TestFailureIsolation:
    """A failing file fails only its own outcome."""

    async def test_one_failing_upload(self, synchronizer, app_dir, mock_server) -> None:
        mock_server.failing_paths = {"ZAPP/Component.js"}

        result = await synchronizer.sync_files(FILES, app_dir)

        assert not result.success
        assert len(result.outcomes) == 3
        assert [o.path for o in result.failed] == ["Component.js"]
        assert "500" in result.failed[0].error
        assert len(mock_server.upload_calls) == 3
        assert "ZAPP/index.html" in mock_server.objects
        assert "ZAPP/i18n/i18n.properties" in mock_server.objects

    async def test_missing_local_file(self, synchronizer, app_dir, mock_server) -> None:
        result = await synchronizer.sync_files(["index.html", "missing.js"], app_dir)

        assert result.synchronized_paths == ["index.html"]
        assert result.failed[0].path == "missing.js"
        assert "Cannot read file" in result.failed[0].error
        assert len(mock_server.upload_calls) == 1

    async def test_file_outside_base_dir(self, synchronizer, app_dir, tmp_path) -> None:
        outside = tmp_path / "outside.js"
        outside.write_text("x")

        result = await synchronizer.sync_files([outside, "index.html"], app_dir)

        assert not result.outcomes[0].success
        assert result.outcomes[1].success

    async def test_outcomes_in_input_order(self, session, target, app_dir) -> None:
        names = [f"file{i:02d}.js" for i in range(12)]
        for name in reversed(names):
            (app_dir / name).write_text(name)
        synchronizer = ArtifactSynchronizer(session, target, max_concurrency=3)

        result = await synchronizer.sync_files(names, app_dir)

        assert [o.path for o in result.outcomes] == names

    async def test_unexpected_error_fails_only_its_file(self, synchronizer, app_dir, mock_server, monkeypatch) -> None:
        upload = synchronizer._upload

        async def _upload(artifact):
            if artifact.logical_path == "Component.js":
                raise RuntimeError("disk vanished")
            return await upload(artifact)

        monkeypatch.setattr(synchronizer, "_upload", _upload)

        result = await synchronizer.sync_files(FILES, app_dir)

        assert len(result.outcomes) == 3
        assert [o.path for o in result.failed] == ["Component.js"]
        assert "disk vanished" in result.failed[0].error
        assert "ZAPP/index.html" in mock_server.objects
        assert "ZAPP/i18n/i18n.properties" in mock_server.objects

    async def test_token_refreshed_once_per_run(self, synchronizer, app_dir, mock_server) -> None:
        """A server rejecting every token costs one refresh, not one per file."""
        mock_server.folders.update({"ZAPP", "ZAPP/i18n"})
        for path in FILES:
            mock_server.objects[f"ZAPP/{path}"] = b"old"
        mock_server.reject_tokens = 100

        result = await synchronizer.sync_files(FILES, app_dir)

        assert len(result.failed) == 3
        assert mock_server.token_fetch_count == 2


# =============================================================================
# Tests: Transport and Language Tagging
# =============================================================================
class TestTagging:
    """Every filestore write carries the language and, if set, the transport."""

    async def test_transport_attached_to_every_write(self, session, target, app_dir, mock_server) -> None:
        synchronizer = ArtifactSynchronizer(session, target, "DEVK900123")

        await synchronizer.sync_files(FILES, app_dir)

        writes = _filestore_writes(mock_server)
        assert writes
        assert all(c["params"]["corrNr"] == "DEVK900123" for c in writes)
        assert set(mock_server.object_transports.values()) == {"DEVK900123"}

    async def test_no_transport_parameter_without_transport(self, synchronizer, app_dir, mock_server) -> None:
        await synchronizer.sync_files(FILES, app_dir)

        assert all("corrNr" not in c["params"] for c in _filestore_writes(mock_server))

    async def test_language_on_every_request(self, session, app_dir, mock_server) -> None:
        target = ContainerTarget(package="ZTEST", name="ZAPP", description="App", language="DE")
        synchronizer = ArtifactSynchronizer(session, target)

        await synchronizer.sync_files(FILES, app_dir)

        filestore = [c for c in mock_server.calls if "/filestore/" in c["path"]]
        assert all(c["params"]["sap-language"] == "DE" for c in filestore)


# =============================================================================
# Tests: Namespaces and Application Index
# =============================================================================
class TestContainerAddressing:

    async def test_namespaced_container(self, session, app_dir, mock_server) -> None:
        target = ContainerTarget(package="ZTEST", name="/YYY/ZAPP", description="App")
        synchronizer = ArtifactSynchronizer(session, target)

        result = await synchronizer.sync_files(["index.html"], app_dir)

        assert result.success
        assert "/YYY/ZAPP" in mock_server.folders
        assert "/YYY/ZAPP/index.html" in mock_server.objects

    async def test_calculate_app_index(self, synchronizer, mock_server) -> None:
        await synchronizer.calculate_app_index()
        assert mock_server.appindex_containers == ["ZAPP"]
