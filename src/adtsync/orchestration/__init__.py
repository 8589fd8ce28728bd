"""
adtsync.orchestration - Orchestration Layer
=============================================

    - transport_resolver:     TransportManager (remote CTS operations) and
                              TransportResolver (policy decision procedure)
    - artifact_synchronizer:  ArtifactSynchronizer (filestore uploads)
    - upload_orchestrator:    UploadOrchestrator (state machine tying both)

Flow:
    UploadOrchestrator
        ├── TransportResolver → TransportManager → AdtSession
        └── ArtifactSynchronizer → AdtSession
"""

from adtsync.orchestration.artifact_synchronizer import ArtifactSynchronizer
from adtsync.orchestration.transport_resolver import TransportManager, TransportResolver
from adtsync.orchestration.upload_orchestrator import ALLOWED_TRANSITIONS, UploadOrchestrator

__all__ = [
    "ArtifactSynchronizer",
    "TransportManager",
    "TransportResolver",
    "UploadOrchestrator",
    "ALLOWED_TRANSITIONS",
]
