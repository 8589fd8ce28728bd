"""
adtsync.integrations.adt.payloads - CTS XML Builder/Parser
============================================================

The CTS endpoints exchange ``asx:abap`` documents:

    <asx:abap xmlns:asx="http://www.sap.com/abapxml" version="1.0">
      <asx:values>
        <DATA>
          ...fields...
        </DATA>
      </asx:values>
    </asx:abap>

Documents are built and read with ElementTree, so package names and
free-text descriptions are escaped by the serializer.

Fields:
    create transport   OPERATION=I, DEVCLASS, REQUEST_TEXT
    transport check    PGMID, OBJECT, OBJECTNAME, DEVCLASS, OPERATION, URI
    check response     RESULT, LOCKS/CTS_OBJECT_LOCK/LOCK_HOLDER/REQ_HEADER/TRKORR
    search response    CTS_REQ_HEADER/TRKORR, CTS_REQ_HEADER/AS4TEXT
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import quote
from xml.etree import ElementTree

from adtsync.core.exceptions import RemoteProtocolError
from adtsync.core.models import TransportCheck


ASX_NAMESPACE = "http://www.sap.com/abapxml"
FILESTORE_OBJECTS_PATH = "/sap/bc/adt/filestore/ui5-bsp/objects"

CHECK_SUCCESS = "S"

# <SID>K<6 digits>, e.g. DEVK900123
TRANSPORT_NUMBER_PATTERN = re.compile(r"[A-Z0-9]{3}K\d{6}")

_DATA_PATH = f"{{{ASX_NAMESPACE}}}values/DATA"
_LOCK_HOLDER_PATH = "LOCKS/CTS_OBJECT_LOCK/LOCK_HOLDER/REQ_HEADER/TRKORR"

ElementTree.register_namespace("asx", ASX_NAMESPACE)


def _build_document(fields: list[tuple[str, str]]) -> bytes:
    root = ElementTree.Element(f"{{{ASX_NAMESPACE}}}abap", {"version": "1.0"})
    values = ElementTree.SubElement(root, f"{{{ASX_NAMESPACE}}}values")
    data = ElementTree.SubElement(values, "DATA")
    for name, value in fields:
        ElementTree.SubElement(data, name).text = value
    return ElementTree.tostring(root, encoding="utf-8", xml_declaration=True)


def _parse_data(body: str, what: str) -> ElementTree.Element:
    try:
        root = ElementTree.fromstring(body)
    except ElementTree.ParseError as e:
        raise RemoteProtocolError(
            message=f"Unparsable {what} response: {e}",
            response_body=body,
            error_code="INVALID_XML",
        ) from e

    data = root.find(_DATA_PATH)
    if data is None:
        raise RemoteProtocolError(
            message=f"{what} response has no asx:values/DATA element",
            response_body=body,
            error_code="INVALID_XML",
        )
    return data


# =============================================================================
# Builders
# =============================================================================

def build_create_transport_payload(package: str, request_text: str) -> bytes:
    """Payload for POST /sap/bc/adt/cts/transports."""
    return _build_document([
        ("OPERATION", "I"),
        ("DEVCLASS", package),
        ("REQUEST_TEXT", request_text),
    ])


def build_transport_check_payload(package: str, container: str) -> bytes:
    """Payload for POST /sap/bc/adt/cts/transportchecks.

    The checked object is the filestore URI of the container; ``$new``
    makes the check work for containers that do not exist yet.
    """
    uri = f"{FILESTORE_OBJECTS_PATH}/{quote(container, safe='')}/$new"
    return _build_document([
        ("PGMID", ""),
        ("OBJECT", ""),
        ("OBJECTNAME", ""),
        ("DEVCLASS", package),
        ("OPERATION", ""),
        ("URI", uri),
    ])


# =============================================================================
# Parsers
# =============================================================================

def parse_created_transport(body: str) -> str:
    """Extract the transport number from a creation response.

    The server answers with a resource path such as
    ``/com.sap.cts/object_record/DEVK900123``; the trailing segment is the
    transport number.

    Raises:
        RemoteProtocolError: If the trailing segment is not a transport
            number (empty, or e.g. an HTML error page).
    """
    transport_no = body.strip().rstrip("/").split("/")[-1].strip()
    if not TRANSPORT_NUMBER_PATTERN.fullmatch(transport_no):
        raise RemoteProtocolError(
            message="Transport creation response contains no transport number",
            response_body=body,
            error_code="MISSING_TRANSPORT_NUMBER",
        )
    return transport_no


def parse_transport_check(body: str) -> TransportCheck:
    """Parse a transport check response.

    ``successful`` is True only when RESULT equals "S". The lock holder is
    reported for successful checks only.
    """
    data = _parse_data(body, "transport check")
    result = (data.findtext("RESULT") or "").strip()
    if result != CHECK_SUCCESS:
        return TransportCheck(successful=False)

    transport_no = (data.findtext(_LOCK_HOLDER_PATH) or "").strip()
    return TransportCheck(transport_no=transport_no, successful=True)


def parse_transport_search(body: str, request_text: Optional[str]) -> Optional[str]:
    """Find the open transport matching ``request_text`` in a search response.

    Returns:
        The TRKORR of the first CTS_REQ_HEADER whose AS4TEXT equals
        request_text (entries without a text match any request text), or
        None when the body is empty or nothing matches.
    """
    if not body.strip():
        return None

    data = _parse_data(body, "transport search")
    for header in data.iter("CTS_REQ_HEADER"):
        transport_no = (header.findtext("TRKORR") or "").strip()
        if not transport_no:
            continue
        text = header.findtext("AS4TEXT")
        if text is None or request_text is None or text.strip() == request_text.strip():
            return transport_no
    return None
