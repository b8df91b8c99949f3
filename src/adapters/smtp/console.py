"""
Console notification adapter - Implements NotificationGateway protocol.

This module provides a console-based implementation of the domain's
notification port, logging verification and reset links for demo purposes.
"""

import logging

from src.domain.ports import NotificationKind

logger = logging.getLogger(__name__)

# Link path per notification kind, relative to the public base URL
_LINK_PATHS = {
    NotificationKind.VERIFICATION: "/v1/verify/{token}",
    NotificationKind.RESET: "/v1/password-reset/{token}",
}


class ConsoleNotificationGateway:
    """
    Implements NotificationGateway protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints links to stdout.
    """

    def __init__(self, base_url: str = "http://localhost:8000") -> None:
        self._base_url = base_url.rstrip("/")

    def send(self, kind: NotificationKind, address: str, token: str) -> None:
        """
        Log a verification or reset link (simulates email delivery).

        In production, this would be replaced with an SMTP adapter.
        The link is logged at INFO level to be visible in docker-compose logs.

        Args:
            kind: Verification or reset message
            address: Recipient email address (normalized by domain layer)
            token: Signed token to embed in the link
        """
        link = self._base_url + _LINK_PATHS[kind].format(token=token)
        logger.info("[%s] Email: %s Link: %s", kind.value.upper(), address, link)
