"""
adtsync.integrations.adt - ADT REST API Integration
=====================================================

    - session:   AdtSession, the authenticated CSRF-protected HTTP session
    - payloads:  asx:abap XML builders and parsers for the CTS endpoints
    - mock:      MockAdtServer, an in-process fake server for tests/examples
"""

from adtsync.integrations.adt.mock import MockAdtServer
from adtsync.integrations.adt.session import AdtSession

__all__ = ["AdtSession", "MockAdtServer"]
