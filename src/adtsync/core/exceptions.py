"""
adtsync.core.exceptions - Custom Exception Hierarchy
======================================================

This module defines the structured exception hierarchy for adtsync.
Components raise and catch specific exception types that carry contextual
information, so the orchestrator can tell the failing stage apart and the
caller receives a descriptive, serializable error.

Exception Hierarchy:
    UploaderError (base)
        ├── ConfigurationError        - Invalid inputs, detected before any network call
        ├── AuthenticationError       - Credentials or CSRF token rejected by the server
        ├── RemoteProtocolError       - Non-2xx status or unparsable response body
        ├── TransportResolutionError  - No usable transport under the active policy
        ├── PartialSyncFailure        - One or more files failed to upload
        └── StateError                - Illegal orchestrator state transition

Propagation:
    ConfigurationError       → orchestrator stops in IDLE → FAILED, nothing sent
    TransportResolutionError → RESOLVING_TRANSPORT → FAILED, nothing uploaded
    per-file errors          → collected into SyncOutcome entries, then
                               surfaced once as PartialSyncFailure

Usage:
    >>> from adtsync.core.exceptions import RemoteProtocolError
    >>> raise RemoteProtocolError(
    ...     message="Transport creation rejected",
    ...     status_code=500,
    ...     response_body="<exc:exception .../>",
    ... )
"""

from __future__ import annotations

from typing import Any, Optional


# =============================================================================
# Base Exception
# =============================================================================
# All adtsync exceptions inherit from this base class, so callers can catch
# every framework-specific error with a single except clause:
#
#   try:
#       report = await uploader.upload()
#   except UploaderError as e:
#       logger.error(e.message, error_code=e.error_code, details=e.details)
# =============================================================================
class UploaderError(Exception):
    """Base exception for all adtsync errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code (UPPER_SNAKE_CASE).
        details: Additional debugging context (status codes, paths, policy).
    """

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize this exception to a dictionary.

        Used for structured logging and for the error section of an
        UploadReport.

        Returns:
            Dictionary with error_type, message, error_code, and details.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


# =============================================================================
# Configuration Error
# =============================================================================
# Raised when the upload configuration violates an invariant. Always raised
# before the first network call.
# =============================================================================
class ConfigurationError(UploaderError):
    """Raised when the upload configuration is invalid or incomplete.

    Common Causes:
        - BSP container name longer than 15 characters (without namespace)
        - Non-$TMP package without a way to obtain a transport
        - create_transport set without a transport_text
        - Malformed YAML configuration file

    Example:
        >>> raise ConfigurationError(
        ...     message="BSP container name must not exceed 15 characters",
        ...     error_code="CONTAINER_NAME_TOO_LONG",
        ...     details={"bsp_container": "ZMY_VERY_LONG_CONTAINER"},
        ... )
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Authentication Error
# =============================================================================
class AuthenticationError(UploaderError):
    """Raised when the server rejects the credentials or the CSRF token.

    A rejected token is refetched and the request retried exactly once by
    AdtSession; this error surfaces the second rejection.

    Attributes:
        status_code: HTTP status of the rejecting response, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: str = "AUTH_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        if status_code is not None:
            enriched_details["status_code"] = status_code

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.status_code = status_code


# =============================================================================
# Remote Protocol Error
# =============================================================================
# Raised for any non-2xx response a caller did not explicitly allow, and for
# response bodies that cannot be parsed where a structured body is required.
# =============================================================================
class RemoteProtocolError(UploaderError):
    """Raised when the ADT server answers with an unexpected response.

    Attributes:
        status_code: HTTP status code of the response (None for network
            failures or parse errors on a 2xx body).
        response_body: Raw response text, kept for diagnostics.

    Example:
        >>> raise RemoteProtocolError(
        ...     message="POST /sap/bc/adt/cts/transports failed",
        ...     status_code=500,
        ...     response_body="Internal Server Error",
        ... )
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        error_code: str = "REMOTE_PROTOCOL_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        if status_code is not None:
            enriched_details["status_code"] = status_code
        if response_body:
            enriched_details["response_body"] = response_body

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.status_code = status_code
        self.response_body = response_body


# =============================================================================
# Transport Resolution Error
# =============================================================================
class TransportResolutionError(UploaderError):
    """Raised when no usable transport can be determined under the active policy.

    Attributes:
        policy: Value of the TransportPolicy that was active.

    Example:
        >>> raise TransportResolutionError(
        ...     message="No transport found and create transport was disabled",
        ...     policy="reuse_user_owned",
        ... )
    """

    def __init__(
        self,
        message: str,
        policy: str,
        error_code: str = "TRANSPORT_RESOLUTION_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["policy"] = policy

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.policy = policy


# =============================================================================
# Partial Sync Failure
# =============================================================================
class PartialSyncFailure(UploaderError):
    """Raised (or reported) when one or more artifacts failed to upload.

    Attributes:
        failed_paths: Logical paths of the failed artifacts, in input order.
        errors: Mapping of logical path to error detail.
    """

    def __init__(
        self,
        message: str,
        failed_paths: list[str],
        errors: Optional[dict[str, str]] = None,
        error_code: str = "PARTIAL_SYNC_FAILURE",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["failed_paths"] = list(failed_paths)
        if errors:
            enriched_details["errors"] = dict(errors)

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.failed_paths = list(failed_paths)
        self.errors = dict(errors or {})


# =============================================================================
# State Error
# =============================================================================
class StateError(UploaderError):
    """Raised when the orchestrator is asked to perform an illegal transition."""

    def __init__(
        self,
        message: str,
        error_code: str = "STATE_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)
