"""
adtsync.core.enums - Type-Safe Enumerations
=============================================

All enums inherit from both `str` and `Enum`, which means:
    - They serialize to strings in JSON/YAML (Pydantic-friendly)
    - They can be compared with plain strings: UploadState.DONE == "done"

Architecture Mapping:

    ┌─────────────────────────────────────────────────────────────────┐
    │  ORCHESTRATOR                                                   │
    │    UploadState:  IDLE → RESOLVING_TRANSPORT → SYNCHRONIZING ... │
    │    UploadStage:  which stage a failure belongs to               │
    ├─────────────────────────────────────────────────────────────────┤
    │  TRANSPORT RESOLVER                                             │
    │    TransportPolicy: how the transport number is obtained        │
    ├─────────────────────────────────────────────────────────────────┤
    │  ARTIFACT SYNCHRONIZER                                          │
    │    SyncAction: what happened to a remote object                 │
    └─────────────────────────────────────────────────────────────────┘
"""

from enum import Enum


# =============================================================================
# Transport Policy
# =============================================================================
# Exactly one policy is active per operation. It is selected once from the
# target configuration (see TargetConfig.transport_policy):
#
#   transport_no set         → EXPLICIT
#   package == "$TMP"        → NONE_REQUIRED
#   transport_use_locked     → REUSE_LOCKED
#   transport_use_user_match → REUSE_USER_OWNED
#   otherwise                → CREATE_NEW
# =============================================================================
class TransportPolicy(str, Enum):
    """How the transport request carrying the change is obtained."""

    EXPLICIT = "explicit"                   # Configured transport number, used as-is
    REUSE_LOCKED = "reuse_locked"           # Transport the container is locked in
    REUSE_USER_OWNED = "reuse_user_owned"   # Open transport matching the free text
    CREATE_NEW = "create_new"               # Always create a new transport
    NONE_REQUIRED = "none_required"         # Temporary package, no transport

    @property
    def requires_resolution(self) -> bool:
        """Whether the policy needs a remote call to obtain the transport."""
        return self not in (TransportPolicy.EXPLICIT, TransportPolicy.NONE_REQUIRED)


# =============================================================================
# Upload State
# =============================================================================
# State machine of the UploadOrchestrator:
#
#   IDLE ──────────────→ RESOLVING_TRANSPORT ──→ SYNCHRONIZING ──→ DONE
#     │                          │                     │
#     ├──→ SYNCHRONIZING         └──→ FAILED           └──→ FAILED
#     └──→ FAILED (configuration error)
#
# DONE and FAILED are terminal.
# =============================================================================
class UploadState(str, Enum):
    """Lifecycle states of a single upload operation."""

    IDLE = "idle"
    RESOLVING_TRANSPORT = "resolving_transport"
    SYNCHRONIZING = "synchronizing"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadState.DONE, UploadState.FAILED)


class UploadStage(str, Enum):
    """Stage of the operation a failure is attributed to."""

    CONFIGURATION = "configuration"
    RESOLUTION = "resolution"
    SYNCHRONIZATION = "synchronization"


class SyncAction(str, Enum):
    """What the filestore did with an uploaded artifact."""

    CREATED = "created"   # Object did not exist and was created
    UPDATED = "updated"   # Existing object content was replaced
