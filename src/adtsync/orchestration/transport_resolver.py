"""
adtsync.orchestration.transport_resolver - Transport Resolution
=================================================================

Decides which CTS transport request carries an upload.

Two classes:
    TransportManager   - the three remote operations (create, check lock,
                         search open transports)
    TransportResolver  - the decision procedure selecting between them
                         based on the active TransportPolicy

Decision Procedure:

    EXPLICIT / NONE_REQUIRED ─→ configured number (or None), no remote call

    REUSE_LOCKED ─→ check_existing_transport
                      ├── check failed          → TransportResolutionError
                      ├── locked in transport   → use it
                      └── not locked ─→ create_transport if allowed
                                        else TransportResolutionError

    REUSE_USER_OWNED ─→ determine_existing_transport
                          ├── found             → use it
                          └── not found ─→ create_transport if allowed
                                           else TransportResolutionError

    CREATE_NEW ─→ create_transport (TransportResolutionError if not allowed)

An empty search result is never an error. A successful HTTP call that
yields no usable transport number is.
"""

from __future__ import annotations

from typing import Optional

import structlog

from adtsync.core.config import TargetConfig
from adtsync.core.enums import TransportPolicy
from adtsync.core.exceptions import TransportResolutionError
from adtsync.core.models import ContainerTarget, TransportCheck
from adtsync.integrations.adt.payloads import (
    build_create_transport_payload,
    build_transport_check_payload,
    parse_created_transport,
    parse_transport_check,
    parse_transport_search,
)
from adtsync.integrations.adt.session import AdtSession


logger = structlog.get_logger()


CTS_TRANSPORTS_PATH = "/sap/bc/adt/cts/transports"
CTS_CHECKS_PATH = "/sap/bc/adt/cts/transportchecks"

# Transport function class "K": workbench request.
WORKBENCH_REQUEST = "K"


class TransportManager:
    """Remote CTS operations over an AdtSession.

    Example:
        >>> manager = TransportManager(session)
        >>> check = await manager.check_existing_transport("ZTEST", "ZAPP")
        >>> if check.is_locked:
        ...     transport_no = check.transport_no
    """

    def __init__(self, session: AdtSession) -> None:
        self._session = session
        self._logger = logger.bind(component="transport_manager")

    async def create_transport(self, target: ContainerTarget, description: str) -> str:
        """Create a new transport request for the target package.

        Args:
            target: Container target; its package becomes the DEVCLASS.
            description: Free-text description of the request.

        Returns:
            The new transport number.

        Raises:
            RemoteProtocolError: Creation rejected or no number returned.
        """
        response = await self._session.send(
            "POST",
            CTS_TRANSPORTS_PATH,
            content=build_create_transport_payload(target.package, description),
            headers={"Accept": "*/*", "Content-Type": "application/xml"},
        )
        transport_no = parse_created_transport(response.text)

        self._logger.info(
            "transport_created",
            transport_no=transport_no,
            package=target.package,
        )
        return transport_no

    async def check_existing_transport(self, package: str, container: str) -> TransportCheck:
        """Check whether the container is locked in an open transport.

        Returns:
            TransportCheck with successful=False when the server could not
            complete the check; otherwise the lock holder (possibly "").
        """
        response = await self._session.send(
            "POST",
            CTS_CHECKS_PATH,
            content=build_transport_check_payload(package, container),
            headers={"Accept": "*/*", "Content-Type": "application/xml"},
        )
        check = parse_transport_check(response.text)

        if check.is_locked:
            self._logger.info(
                "container_locked_in_transport",
                container=container,
                transport_no=check.transport_no,
            )
        elif check.successful:
            self._logger.debug("container_not_locked", container=container)
        else:
            self._logger.warning("transport_check_unsuccessful", container=container)
        return check

    async def determine_existing_transport(self, description: Optional[str]) -> Optional[str]:
        """Search the open workbench requests for one matching the description.

        Returns:
            The transport number, or None when nothing matches (an empty
            response body included).
        """
        response = await self._session.send(
            "GET",
            CTS_TRANSPORTS_PATH,
            params={"_action": "FIND", "trfunction": WORKBENCH_REQUEST},
            headers={"Accept": "*/*"},
        )
        transport_no = parse_transport_search(response.text, description)

        self._logger.debug(
            "transport_search_completed",
            found=transport_no is not None,
            transport_no=transport_no,
        )
        return transport_no


class TransportResolver:
    """Runs the transport decision procedure for one upload.

    Attributes:
        _manager: The TransportManager performing the remote operations.
    """

    def __init__(self, manager: TransportManager) -> None:
        self._manager = manager
        self._logger = logger.bind(component="transport_resolver")

    async def resolve(self, target: TargetConfig) -> Optional[str]:
        """Determine the transport number for an upload.

        Args:
            target: Target configuration; its transport_policy selects the
                branch of the decision procedure.

        Returns:
            The transport number, or None for the temporary package.

        Raises:
            TransportResolutionError: No usable transport under the policy.
            RemoteProtocolError: A remote call failed.
            AuthenticationError: Credentials or token rejected.
        """
        policy = target.transport_policy
        self._logger.info("transport_resolution_starting", policy=policy.value)

        if policy == TransportPolicy.EXPLICIT:
            return target.transport_no
        if policy == TransportPolicy.NONE_REQUIRED:
            return None

        container = target.container_target()

        if policy == TransportPolicy.REUSE_LOCKED:
            check = await self._manager.check_existing_transport(
                container.package, container.name
            )
            if not check.successful:
                raise TransportResolutionError(
                    message="Could not successfully check existing transport lock",
                    policy=policy.value,
                    error_code="TRANSPORT_CHECK_FAILED",
                )
            if check.transport_no:
                return check.transport_no
            return await self._create_if_allowed(
                target,
                policy,
                "Container is not locked in a transport and create transport was disabled",
            )

        if policy == TransportPolicy.REUSE_USER_OWNED:
            transport_no = await self._manager.determine_existing_transport(
                target.transport_text
            )
            if transport_no:
                return transport_no
            return await self._create_if_allowed(
                target,
                policy,
                "No transport found and create transport was disabled",
            )

        return await self._create_if_allowed(
            target,
            policy,
            "No transport configured but create transport and user match was disabled",
        )

    async def _create_if_allowed(
        self,
        target: TargetConfig,
        policy: TransportPolicy,
        refusal: str,
    ) -> str:
        if not target.create_transport:
            raise TransportResolutionError(
                message=refusal,
                policy=policy.value,
                error_code="TRANSPORT_CREATION_DISABLED",
            )
        return await self._manager.create_transport(
            target.container_target(),
            target.transport_text or "",
        )
