"""
Outbound human notifications

The purchase flow only needs `send(url, identity, reason)`. Delivery problems
are logged by the notifier and never interrupt the flow.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List

import aiohttp

logger = logging.getLogger(__name__)


class NotificationReason(str, Enum):
    CHALLENGE = "CHALLENGE"
    MANUAL_HELP_ON_ERROR = "MANUAL_HELP_ON_ERROR"


REASON_MESSAGES = {
    NotificationReason.CHALLENGE: "A purchase needs a CAPTCHA solved",
    NotificationReason.MANUAL_HELP_ON_ERROR: "A purchase failed and needs to be finished by hand",
}


def build_payload(url: str, identity: str, reason: NotificationReason) -> Dict[str, Any]:
    return {
        "account": identity,
        "reason": reason.value,
        "message": REASON_MESSAGES[reason],
        "url": url,
        "sent_at": datetime.now(timezone.utc).isoformat(),
    }


class Notifier(ABC):

    @abstractmethod
    async def send(self, url: str, identity: str, reason: NotificationReason) -> None:
        pass


class LogNotifier(Notifier):
    """Writes the notification to the log; the default when nothing else is configured"""

    async def send(self, url: str, identity: str, reason: NotificationReason) -> None:
        logger.warning(f"🔔 {REASON_MESSAGES[reason]} for {identity}: {url}")


class WebhookNotifier(Notifier):
    """POSTs a JSON payload to a webhook (Discord/Slack relays, ntfy, custom endpoints)"""

    def __init__(self, webhook_url: str, request_timeout: float = 15.0):
        self.webhook_url = webhook_url
        self.request_timeout = request_timeout

    async def send(self, url: str, identity: str, reason: NotificationReason) -> None:
        payload = build_payload(url, identity, reason)
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.webhook_url, json=payload) as response:
                    if response.status >= 400:
                        body = await response.text()
                        logger.error(f"Webhook notification rejected ({response.status}): {body[:200]}")
                        return
            logger.info(f"📤 Webhook notification sent for {identity} ({reason.value})")
        except aiohttp.ClientError as e:
            logger.error(f"Webhook notification failed for {identity}: {e}")


class CompositeNotifier(Notifier):
    """Fans a notification out to several notifiers"""

    def __init__(self, notifiers: List[Notifier]):
        self.notifiers = notifiers

    async def send(self, url: str, identity: str, reason: NotificationReason) -> None:
        for notifier in self.notifiers:
            await notifier.send(url, identity, reason)


def build_notifier(webhook_url: str = None) -> Notifier:
    if webhook_url:
        return CompositeNotifier([LogNotifier(), WebhookNotifier(webhook_url)])
    return LogNotifier()
