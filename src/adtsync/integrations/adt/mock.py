"""
adtsync.integrations.adt.mock - In-Process Fake ADT Server
============================================================

MockAdtServer answers ADT requests in-process through an
``httpx.MockTransport``. It is used by the test suite and the examples, so
the full upload flow can run without an ABAP system.

Emulated Endpoints:
    GET  /sap/bc/adt/discovery                     CSRF token issue
    POST /sap/bc/adt/cts/transports                create transport
    GET  /sap/bc/adt/cts/transports?_action=FIND   search open transports
    POST /sap/bc/adt/cts/transportchecks           transport lock check
    GET  /sap/bc/adt/filestore/ui5-bsp/objects/<path>/content   existence
    POST /sap/bc/adt/filestore/ui5-bsp/objects/<parent>/content create folder/file
    PUT  /sap/bc/adt/filestore/ui5-bsp/objects/<path>/content   update file
    POST /sap/bc/adt/filestore/ui5-bsp/appindex/<container>     app index

Behavior Knobs:
    check_result, lock_holder     → transport check response
    open_transports, search_body  → transport search response
    fail_transport_creation       → creation answers HTTP 500
    creation_response_body        → override the creation response body
    failing_paths                 → uploads of these object paths answer 500
    reject_tokens                 → next N mutating requests get a token rejection

Usage:
    >>> server = MockAdtServer()
    >>> session = AdtSession(conn, auth, transport=server.transport)
    >>> ...
    >>> server.upload_calls          # file content uploads that were made
"""

from __future__ import annotations

import base64
from typing import Any, Optional
from urllib.parse import unquote
from xml.etree import ElementTree

import httpx
import structlog

from adtsync.integrations.adt.payloads import ASX_NAMESPACE


logger = structlog.get_logger()


CTS_TRANSPORTS_PATH = "/sap/bc/adt/cts/transports"
CTS_CHECKS_PATH = "/sap/bc/adt/cts/transportchecks"
OBJECTS_PREFIX = "/sap/bc/adt/filestore/ui5-bsp/objects/"
APPINDEX_PREFIX = "/sap/bc/adt/filestore/ui5-bsp/appindex/"


class MockAdtServer:
    """Fake ABAP server backing an httpx.MockTransport.

    Attributes:
        folders: Object paths of existing folders (the container included).
        objects: Object path → content of existing files.
        object_transports: Object path → corrNr it was last written with.
        transports: Transports created through the API, in order.
        calls: Every request received, in order.
    """

    def __init__(
        self,
        *,
        user: str = "DEVELOPER",
        password: str = "secret",
        token: str = "mock-csrf-token",
    ) -> None:
        self._expected_auth = "Basic " + base64.b64encode(
            f"{user}:{password}".encode()
        ).decode()
        self._token_prefix = token
        self._token_count = 0
        self._current_token: Optional[str] = None
        self._transport_counter = 0

        # --- Remote state ---
        self.folders: set[str] = set()
        self.objects: dict[str, bytes] = {}
        self.object_transports: dict[str, Optional[str]] = {}
        self.transports: list[dict[str, str]] = []
        self.appindex_containers: list[str] = []

        # --- Behavior knobs ---
        self.check_result: str = "S"
        self.lock_holder: Optional[str] = None
        self.open_transports: list[tuple[str, str]] = []
        self.search_body: Optional[str] = None
        self.fail_transport_creation: bool = False
        self.creation_response_body: Optional[str] = None
        self.failing_paths: set[str] = set()
        self.reject_tokens: int = 0

        self.calls: list[dict[str, Any]] = []
        self._logger = logger.bind(component="mock_adt_server")

    # =========================================================================
    # Inspection
    # =========================================================================

    @property
    def transport(self) -> httpx.MockTransport:
        """An httpx transport routing requests to this server."""
        return httpx.MockTransport(self.handle)

    @property
    def token_fetch_count(self) -> int:
        return self._token_count

    @property
    def upload_calls(self) -> list[dict[str, Any]]:
        """File upload attempts, in order.

        Every upload starts with a PUT on the object; a POST create only
        follows when the object does not exist yet.
        """
        return [
            c for c in self.calls
            if c["method"] == "PUT" and c["path"].startswith(OBJECTS_PREFIX)
        ]

    @property
    def file_creation_calls(self) -> list[dict[str, Any]]:
        return [
            c for c in self.calls
            if c["method"] == "POST"
            and c["path"].startswith(OBJECTS_PREFIX)
            and c["params"].get("type") == "file"
        ]

    @property
    def creation_calls(self) -> list[dict[str, Any]]:
        return [
            c for c in self.calls
            if c["method"] == "POST" and c["path"] == CTS_TRANSPORTS_PATH
        ]

    def calls_to(self, method: str, path_prefix: str) -> list[dict[str, Any]]:
        return [
            c for c in self.calls
            if c["method"] == method and c["path"].startswith(path_prefix)
        ]

    # =========================================================================
    # Request Handling
    # =========================================================================

    def handle(self, request: httpx.Request) -> httpx.Response:
        """Route a request to the matching endpoint emulation."""
        path = unquote(request.url.raw_path.decode("ascii").split("?", 1)[0])
        params = dict(request.url.params)
        self.calls.append({
            "method": request.method,
            "path": path,
            "params": params,
            "headers": dict(request.headers),
            "body": request.content,
        })
        self._logger.debug("mock_request", method=request.method, path=path)

        if request.headers.get("authorization") != self._expected_auth:
            return httpx.Response(401, text="Unauthorized")

        if request.method == "GET" and path == "/sap/bc/adt/discovery":
            return self._issue_token(request)

        if request.method in ("POST", "PUT", "DELETE", "PATCH"):
            rejection = self._check_token(request)
            if rejection is not None:
                return rejection

        if path == CTS_TRANSPORTS_PATH:
            if request.method == "POST":
                return self._create_transport(request)
            if request.method == "GET":
                return self._search_transports()
        if path == CTS_CHECKS_PATH and request.method == "POST":
            return self._check_transport()
        if path.startswith(APPINDEX_PREFIX) and request.method == "POST":
            self.appindex_containers.append(path[len(APPINDEX_PREFIX):])
            return httpx.Response(200)
        if path.startswith(OBJECTS_PREFIX) and path.endswith("/content"):
            object_path = path[len(OBJECTS_PREFIX):-len("/content")].strip()
            return self._filestore(request, object_path, params)

        return httpx.Response(404, text=f"No handler for {request.method} {path}")

    # --- CSRF ---------------------------------------------------------------

    def _issue_token(self, request: httpx.Request) -> httpx.Response:
        if request.headers.get("x-csrf-token", "").lower() != "fetch":
            return httpx.Response(200, text="<app:service/>")
        self._token_count += 1
        self._current_token = f"{self._token_prefix}-{self._token_count}"
        return httpx.Response(200, headers={"x-csrf-token": self._current_token})

    def _check_token(self, request: httpx.Request) -> Optional[httpx.Response]:
        sent = request.headers.get("x-csrf-token")
        if self.reject_tokens > 0:
            self.reject_tokens -= 1
            return httpx.Response(403, headers={"x-csrf-token": "Required"})
        if sent is None or sent != self._current_token:
            return httpx.Response(403, headers={"x-csrf-token": "Required"})
        return None

    # --- CTS ----------------------------------------------------------------

    def _create_transport(self, request: httpx.Request) -> httpx.Response:
        if self.fail_transport_creation:
            return httpx.Response(500, text="Transport creation failed")

        data = ElementTree.fromstring(request.content).find(
            f"{{{ASX_NAMESPACE}}}values/DATA"
        )
        self._transport_counter += 1
        number = f"DEVK9{self._transport_counter:05d}"
        self.transports.append({
            "transport_no": number,
            "package": data.findtext("DEVCLASS") or "",
            "request_text": data.findtext("REQUEST_TEXT") or "",
            "operation": data.findtext("OPERATION") or "",
        })

        body = self.creation_response_body
        if body is None:
            body = f"/com.sap.cts/object_record/{number}"
        return httpx.Response(200, text=body)

    def _check_transport(self) -> httpx.Response:
        root, data = _asx_document()
        ElementTree.SubElement(data, "RESULT").text = self.check_result
        if self.lock_holder:
            node = data
            for tag in ("LOCKS", "CTS_OBJECT_LOCK", "LOCK_HOLDER", "REQ_HEADER"):
                node = ElementTree.SubElement(node, tag)
            ElementTree.SubElement(node, "TRKORR").text = self.lock_holder
        return httpx.Response(200, content=ElementTree.tostring(root, encoding="utf-8"))

    def _search_transports(self) -> httpx.Response:
        if self.search_body is not None:
            return httpx.Response(200, text=self.search_body)
        if not self.open_transports:
            return httpx.Response(200, text="")

        root, data = _asx_document()
        for number, text in self.open_transports:
            header = ElementTree.SubElement(data, "CTS_REQ_HEADER")
            ElementTree.SubElement(header, "TRKORR").text = number
            ElementTree.SubElement(header, "TRFUNCTION").text = "K"
            ElementTree.SubElement(header, "AS4TEXT").text = text
        return httpx.Response(200, content=ElementTree.tostring(root, encoding="utf-8"))

    # --- Filestore ----------------------------------------------------------

    def _filestore(
        self,
        request: httpx.Request,
        object_path: str,
        params: dict[str, str],
    ) -> httpx.Response:
        if request.method == "GET":
            if object_path in self.folders:
                return httpx.Response(200, text="<atom:feed/>")
            if object_path in self.objects:
                return httpx.Response(200, content=self.objects[object_path])
            return httpx.Response(404, text="Resource does not exist")

        if request.method == "PUT":
            if object_path in self.failing_paths:
                return httpx.Response(500, text=f"Cannot write {object_path}")
            if object_path not in self.objects:
                return httpx.Response(404, text="Resource does not exist")
            self.objects[object_path] = request.content
            self.object_transports[object_path] = params.get("corrNr")
            return httpx.Response(200)

        if request.method == "POST":
            name = params.get("name", "")
            parent = object_path
            if parent and parent not in self.folders:
                return httpx.Response(404, text=f"Parent {parent} does not exist")
            new_path = f"{parent}/{name}" if parent else name

            if params.get("type") == "folder":
                self.folders.add(new_path)
                self.object_transports[new_path] = params.get("corrNr")
                return httpx.Response(201)
            if new_path in self.failing_paths:
                return httpx.Response(500, text=f"Cannot write {new_path}")
            self.objects[new_path] = request.content
            self.object_transports[new_path] = params.get("corrNr")
            return httpx.Response(201)

        return httpx.Response(405)


def _asx_document() -> tuple[ElementTree.Element, ElementTree.Element]:
    root = ElementTree.Element(f"{{{ASX_NAMESPACE}}}abap", {"version": "1.0"})
    values = ElementTree.SubElement(root, f"{{{ASX_NAMESPACE}}}values")
    data = ElementTree.SubElement(values, "DATA")
    return root, data
