"""
adtsync - UI5 Artifact Upload to SAP NetWeaver ABAP
=====================================================

adtsync synchronizes local build artifacts (a UI5 application) into the
BSP filestore of an ABAP server through the ADT REST API, optionally
binding the change to a CTS transport request.

Architecture Layers (top to bottom):
    1. Facade         - Uploader: configuration in, UploadReport out
    2. Orchestration  - UploadOrchestrator, TransportResolver, ArtifactSynchronizer
    3. Infrastructure - Resource selection (glob expansion)
    4. Integration    - AdtSession (auth + CSRF), CTS XML payloads

Quick Start:
    >>> from adtsync import Uploader
    >>> from adtsync.core.config import load_config
    >>> report = await Uploader(load_config("adtsync.yaml")).upload()
"""

__version__ = "0.1.0"

from adtsync.facade import Uploader

__all__ = ["Uploader", "__version__"]
