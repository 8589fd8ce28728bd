"""
adtsync.core.config - Configuration Management
================================================

Configuration can be loaded from multiple sources with the following
priority (highest first):

    1. Explicit constructor arguments
    2. Environment variables (prefixed with ADTSYNC_)
    3. YAML configuration file (adtsync.yaml)
    4. Default values defined in the models below

Architecture Context:
    The UploaderConfig is created once per invocation and handed to the
    Uploader facade, which passes its sections down:

        UploaderConfig
            ├── ConnectionConfig → AdtSession (server, sap-client, TLS)
            ├── AuthConfig       → AdtSession (basic authentication)
            ├── TargetConfig     → TransportResolver, ArtifactSynchronizer
            └── ResourceConfig   → file_collector (base dir + glob patterns)

    The option names of the grunt-nwabap-ui5uploader task are accepted as aliases
    (``bspcontainer``, ``transportno``, ``pwd``, ``useStrictSSL`` ...), so an
    existing task configuration can be dropped into adtsync.yaml.

Usage:
    config = load_config("adtsync.yaml")
    validate_config(config)

Environment Variables:
    ADTSYNC_CONN__SERVER=https://abap.example.com:44300
    ADTSYNC_AUTH__USER=DEVELOPER
    ADTSYNC_AUTH__PASSWORD=...
    ADTSYNC_UI5__TRANSPORT_NO=DEVK900123
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings

from adtsync.core.enums import TransportPolicy
from adtsync.core.exceptions import ConfigurationError
from adtsync.core.models import TEMPORARY_PACKAGE, ContainerTarget


DEFAULT_CONFIG_FILE = "adtsync.yaml"

# Maximum length of a BSP container name, namespace prefix excluded.
MAX_CONTAINER_NAME_LENGTH = 15


# =============================================================================
# Connection Configuration
# =============================================================================
class ConnectionConfig(BaseModel):
    """Connection context for the ABAP server.

    Attributes:
        server: Base URL of the server, e.g. "https://host:44300".
        client: SAP client, sent as the ``sap-client`` query parameter.
        use_strict_ssl: Verify TLS certificates. Only disable for
            development systems with self-signed certificates.
        timeout_seconds: Timeout for each HTTP request.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    server: str = Field(description="ABAP server base URL")
    client: Optional[str] = Field(default=None, description="SAP client (sap-client)")
    use_strict_ssl: bool = Field(
        default=True,
        validation_alias=AliasChoices("use_strict_ssl", "useStrictSSL"),
        description="Verify TLS certificates",
    )
    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Per-request timeout in seconds",
    )

    @field_validator("server")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


# =============================================================================
# Credentials
# =============================================================================
class AuthConfig(BaseModel):
    """Credentials for basic authentication.

    The password is a SecretStr: it is masked in repr() and str() and is
    never handed to the logger.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user: str = Field(description="User name")
    password: SecretStr = Field(
        validation_alias=AliasChoices("password", "pwd"),
        description="Password",
    )


# =============================================================================
# Target Configuration
# =============================================================================
class TargetConfig(BaseModel):
    """Where the artifacts land and how the transport is obtained.

    Attributes:
        package: ABAP package. "$TMP" needs no transport.
        bsp_container: BSP container name (max. 15 characters without
            the customer namespace prefix).
        bsp_container_text: Container description.
        language: Language code, upper-cased on load.
        transport_no: Explicit transport number. Skips resolution.
        create_transport: Allow creating a new transport.
        transport_text: Description of created transports; also the free
            text matched by the user-owned transport search.
        transport_use_locked: Reuse the transport the container is locked in.
        transport_use_user_match: Reuse an open transport matching
            transport_text.
        calc_appindex: Recalculate the application index after the upload.
    """

    model_config = ConfigDict(populate_by_name=True)

    package: str = Field(description="ABAP package (devclass)")
    bsp_container: str = Field(
        validation_alias=AliasChoices("bsp_container", "bspcontainer"),
        description="BSP container name",
    )
    bsp_container_text: str = Field(
        validation_alias=AliasChoices("bsp_container_text", "bspcontainer_text"),
        description="BSP container description",
    )
    language: str = Field(default="EN", description="Language code")
    transport_no: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("transport_no", "transportno"),
        description="Explicit transport number",
    )
    create_transport: bool = Field(default=False, description="Allow transport creation")
    transport_text: Optional[str] = Field(default=None, description="Transport description")
    transport_use_locked: bool = Field(
        default=False,
        description="Reuse the transport the container is locked in",
    )
    transport_use_user_match: bool = Field(
        default=False,
        description="Reuse an open transport matching transport_text",
    )
    calc_appindex: bool = Field(
        default=False,
        description="Recalculate the application index after upload",
    )

    @field_validator("language")
    @classmethod
    def _upper_language(cls, value: str) -> str:
        return (value or "EN").upper()

    @field_validator("transport_no")
    @classmethod
    def _blank_transport_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def is_temporary_package(self) -> bool:
        return self.package == TEMPORARY_PACKAGE

    @property
    def transport_policy(self) -> TransportPolicy:
        """Select the single active TransportPolicy.

        An explicit number always wins (and is passed through unchanged),
        then the temporary package, then the reuse flags in the order
        locked → user match, and finally creation.
        """
        if self.transport_no:
            return TransportPolicy.EXPLICIT
        if self.is_temporary_package:
            return TransportPolicy.NONE_REQUIRED
        if self.transport_use_locked:
            return TransportPolicy.REUSE_LOCKED
        if self.transport_use_user_match:
            return TransportPolicy.REUSE_USER_OWNED
        return TransportPolicy.CREATE_NEW

    def container_target(self) -> ContainerTarget:
        return ContainerTarget(
            package=self.package,
            name=self.bsp_container,
            description=self.bsp_container_text,
            language=self.language,
        )


# =============================================================================
# Resource Selection
# =============================================================================
class ResourceConfig(BaseModel):
    """Which local files are synchronized.

    Attributes:
        cwd: Base directory. Logical paths are computed relative to it.
        src: Glob pattern(s) relative to cwd. Patterns starting with "!"
            exclude previously matched files.
    """

    cwd: str = Field(description="Base directory of the resources")
    src: list[str] = Field(description="Glob patterns relative to cwd")

    @field_validator("src", mode="before")
    @classmethod
    def _single_pattern_to_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value


# =============================================================================
# Main Configuration
# =============================================================================
class UploaderConfig(BaseSettings):
    """Top-level configuration for an upload operation.

    Attributes:
        log_level: Logging level for the structlog output.
        max_concurrent_uploads: Upper bound of file uploads in flight.
        conn: Connection context (see ConnectionConfig).
        auth: Credentials (see AuthConfig).
        ui5: Container target and transport options (see TargetConfig).
        resources: Resource selection (see ResourceConfig).
    """

    # -------------------------------------------------------------------------
    # General Settings
    # -------------------------------------------------------------------------
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR",
    )
    max_concurrent_uploads: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Maximum number of file uploads in flight",
    )

    # -------------------------------------------------------------------------
    # Nested Configurations
    # -------------------------------------------------------------------------
    conn: ConnectionConfig
    auth: AuthConfig
    ui5: TargetConfig
    resources: ResourceConfig

    model_config = {
        "env_prefix": "ADTSYNC_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }


# =============================================================================
# Validation
# =============================================================================
def validate_config(config: UploaderConfig) -> None:
    """Enforce the cross-field rules that must hold before any network call.

    Rules:
        1. Server, user, password, package, container, container text and
           resources.cwd must not be empty.
        2. The BSP container name, without a customer namespace prefix,
           must not exceed 15 characters.
        3. create_transport requires a non-empty transport_text.
        4. A package other than $TMP needs a transport number, the create
           flag, or the reuse-locked flag.
        5. An explicit transport number excludes the create and
           reuse-locked flags (locked + create together is allowed: the
           locked transport is preferred, creation is the fallback).

    Raises:
        ConfigurationError: On the first violated rule.
    """
    ui5 = config.ui5

    required = {
        "conn.server": config.conn.server,
        "auth.user": config.auth.user,
        "auth.password": config.auth.password.get_secret_value(),
        "ui5.package": ui5.package,
        "ui5.bsp_container": ui5.bsp_container,
        "ui5.bsp_container_text": ui5.bsp_container_text,
        "resources.cwd": config.resources.cwd,
    }
    missing = [key for key, value in required.items() if not value.strip()]
    if missing:
        raise ConfigurationError(
            message=f"Options must not be empty: {', '.join(missing)}",
            error_code="INCOMPLETE_OPTIONS",
            details={"missing": missing},
        )

    name = ui5.container_target().name_without_namespace
    if len(name) > MAX_CONTAINER_NAME_LENGTH:
        raise ConfigurationError(
            message=(
                f'"ui5.bsp_container" must not be longer than {MAX_CONTAINER_NAME_LENGTH} '
                f"characters (excluding a customer namespace such as /YYY/)"
            ),
            error_code="CONTAINER_NAME_TOO_LONG",
            details={"bsp_container": ui5.bsp_container, "length": len(name)},
        )

    if ui5.create_transport and not (ui5.transport_text or "").strip():
        raise ConfigurationError(
            message='"ui5.transport_text" is required when "ui5.create_transport" is set',
            error_code="MISSING_TRANSPORT_TEXT",
        )

    if ui5.is_temporary_package:
        return

    if not (ui5.transport_no or ui5.create_transport or ui5.transport_use_locked):
        raise ConfigurationError(
            message=f'For packages other than "{TEMPORARY_PACKAGE}" a transport number is necessary',
            error_code="MISSING_TRANSPORT",
            details={"package": ui5.package},
        )

    if ui5.transport_no and (ui5.create_transport or ui5.transport_use_locked):
        raise ConfigurationError(
            message=(
                '"ui5.transport_no" cannot be combined with "ui5.create_transport" '
                'or "ui5.transport_use_locked"'
            ),
            error_code="CONFLICTING_TRANSPORT_OPTIONS",
            details={"transport_no": ui5.transport_no},
        )


# =============================================================================
# Configuration Loader
# =============================================================================
def load_config(path: Optional[str] = None, **overrides: Any) -> UploaderConfig:
    """Load the upload configuration from a YAML file and/or the environment.

    Args:
        path: Path to a YAML file. If None, 'adtsync.yaml' in the current
            directory is used when present; otherwise only environment
            variables and overrides are used.
        **overrides: Top-level values that take precedence over the file.

    Returns:
        A validated UploaderConfig (field-level validation only; call
        validate_config for the cross-field rules).

    Raises:
        FileNotFoundError: If an explicit path does not exist.
        ConfigurationError: If the YAML is malformed or values are invalid.
    """
    if path is None:
        default_path = Path(DEFAULT_CONFIG_FILE)
        if default_path.exists():
            path = str(default_path)

    yaml_data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            with open(config_path) as f:
                raw_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                message=f"Malformed configuration file: {path}",
                error_code="INVALID_YAML",
                details={"error": str(e)},
            ) from e
        if isinstance(raw_data, dict):
            yaml_data = raw_data

    yaml_data.update(overrides)

    try:
        return UploaderConfig(**yaml_data)
    except ValidationError as e:
        raise ConfigurationError(
            message=f"Invalid configuration: {e.error_count()} error(s)",
            error_code="INVALID_CONFIG",
            details={"errors": e.errors(include_url=False, include_input=False)},
        ) from e
