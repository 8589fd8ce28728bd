"""
adtsync.core - Foundation Layer
================================

The building blocks every other adtsync module depends on:

    - config:      Configuration management (UploaderConfig and its sections)
    - enums:       TransportPolicy, UploadState, UploadStage, SyncAction
    - models:      ContainerTarget, Artifact, SyncResult, UploadReport, ...
    - exceptions:  Structured exception hierarchy

Dependency Rule:
    core/ depends on NOTHING else in the adtsync package.
"""

from adtsync.core.config import (
    AuthConfig,
    ConnectionConfig,
    ResourceConfig,
    TargetConfig,
    UploaderConfig,
    load_config,
    validate_config,
)
from adtsync.core.enums import SyncAction, TransportPolicy, UploadStage, UploadState
from adtsync.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    PartialSyncFailure,
    RemoteProtocolError,
    StateError,
    TransportResolutionError,
    UploaderError,
)
from adtsync.core.models import (
    Artifact,
    ContainerTarget,
    SyncOutcome,
    SyncResult,
    TransportCheck,
    UploadReport,
)

__all__ = [
    # Config
    "UploaderConfig",
    "ConnectionConfig",
    "AuthConfig",
    "TargetConfig",
    "ResourceConfig",
    "load_config",
    "validate_config",
    # Enums
    "TransportPolicy",
    "UploadState",
    "UploadStage",
    "SyncAction",
    # Models
    "ContainerTarget",
    "TransportCheck",
    "Artifact",
    "SyncOutcome",
    "SyncResult",
    "UploadReport",
    # Exceptions
    "UploaderError",
    "ConfigurationError",
    "AuthenticationError",
    "RemoteProtocolError",
    "TransportResolutionError",
    "PartialSyncFailure",
    "StateError",
]
