"""
EscalationPortal - hands the live session to a human

Opens at most one portal per attempt, tells the user where to find it and
waits (bounded) for the page to reach the receipt state.
"""
import asyncio
import logging
from enum import Enum
from typing import Optional

from ..core.errors import AutomationTimeout, ChallengeTimeout
from ..core.models import PortalHandle
from ..notify.notifier import NotificationReason, Notifier
from ..portal.provider import PortalProvider, TunnelProvider
from .outcome_race import cancel_and_wait

logger = logging.getLogger(__name__)

PORTAL_INSTRUCTIONS = {
    NotificationReason.CHALLENGE: "Go to this URL and do something",
    NotificationReason.MANUAL_HELP_ON_ERROR: "Go to this URL and purchase the game",
}


class EscalationResult(str, Enum):
    RESOLVED = "resolved"
    IDLE_TIMEOUT = "idle_timeout"


class EscalationPortal:

    def __init__(self, identity: str, provider: PortalProvider, notifier: Notifier,
                 notification_timeout_ms: int, idle_timeout_ms: int,
                 tunnel: Optional[TunnelProvider] = None, attempt_logger=None):
        self.identity = identity
        self.provider = provider
        self.notifier = notifier
        self.tunnel = tunnel
        self.notification_timeout_ms = notification_timeout_ms
        self.idle_timeout_ms = idle_timeout_ms
        self.log = attempt_logger or logger
        self.handle: Optional[PortalHandle] = None

    @property
    def is_open(self) -> bool:
        return self.handle is not None and not self.handle.closed

    async def open(self, session, reason: NotificationReason) -> PortalHandle:
        """
        Open the portal, or reuse the one already open for this attempt.

        The user is notified once per reason: re-entering a challenge while
        the portal is up sends nothing, but a later error still gets its own
        manual-help notification.
        """
        if not (self.is_open and self.provider.is_open(session)):
            url = await self.provider.open(session)
            if self.tunnel is not None:
                url = await self.tunnel.expose(url)
            self.handle = PortalHandle(url=url)
        else:
            self.log.debug("Keeping the existing portal open")

        if reason.value not in self.handle.notified_reasons:
            self.handle.notified_reasons.append(reason.value)
            self.log.info(f"{PORTAL_INSTRUCTIONS[reason]}: {self.handle.url}")
            self.log.info(f"Sending {reason.value} notification")
            await self.notifier.send(self.handle.url, self.identity, reason)
        return self.handle

    async def await_resolution(self, session) -> EscalationResult:
        """
        Race the receipt navigation (bounded by the notification timeout)
        against the fixed idle timeout.

        Raises ChallengeTimeout when the notification window closes first.
        """
        navigation = asyncio.ensure_future(session.wait_for_receipt(self.notification_timeout_ms))
        idle = asyncio.ensure_future(asyncio.sleep(self.idle_timeout_ms / 1000))
        try:
            done, _ = await asyncio.wait({navigation, idle}, return_when=asyncio.FIRST_COMPLETED)
            if navigation in done:
                try:
                    navigation.result()
                except AutomationTimeout as e:
                    raise ChallengeTimeout(
                        f"No human resolved the challenge within {self.notification_timeout_ms}ms"
                    ) from e
                return EscalationResult.RESOLVED
            return EscalationResult.IDLE_TIMEOUT
        finally:
            await cancel_and_wait([navigation, idle])

    async def wait_for_receipt(self, session) -> None:
        await session.wait_for_receipt(self.notification_timeout_ms)

    async def close(self, session) -> None:
        if not self.is_open:
            return
        self.handle.closed = True
        await self.provider.close(session)

    async def shutdown(self, session) -> None:
        """Teardown hook: close whatever is still open"""
        if self.is_open:
            self.log.debug("Closing portal left open at teardown")
            await self.close(session)
