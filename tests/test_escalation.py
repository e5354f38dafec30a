import asyncio
import logging

import pytest
from fakes import Appear, FakePortalProvider, FakeSession, Manual, RecordingNotifier

from storefront_purchase.core.errors import ChallengeTimeout
from storefront_purchase.flow.escalation import EscalationPortal, EscalationResult
from storefront_purchase.notify.notifier import NotificationReason
from storefront_purchase.portal.provider import PublicUrlTunnel


def _portal(provider=None, notifier=None, notification_ms=5000, idle_ms=5000, tunnel=None):
    return EscalationPortal(
        identity="user@example.com",
        provider=provider or FakePortalProvider(),
        notifier=notifier or RecordingNotifier(),
        notification_timeout_ms=notification_ms,
        idle_timeout_ms=idle_ms,
        tunnel=tunnel,
    )


def test_open_is_idempotent_per_reason():
    provider, notifier = FakePortalProvider(), RecordingNotifier()
    portal = _portal(provider, notifier)
    session = FakeSession()

    async def scenario():
        first = await portal.open(session, NotificationReason.CHALLENGE)
        second = await portal.open(session, NotificationReason.CHALLENGE)
        return first, second

    first, second = asyncio.run(scenario())

    assert first is second
    assert provider.open_count == 1
    assert notifier.reasons == [NotificationReason.CHALLENGE]
    assert notifier.sent[0][1] == "user@example.com"


def test_manual_help_notifies_even_with_portal_open():
    provider, notifier = FakePortalProvider(), RecordingNotifier()
    portal = _portal(provider, notifier)
    session = FakeSession()

    async def scenario():
        await portal.open(session, NotificationReason.CHALLENGE)
        await portal.open(session, NotificationReason.MANUAL_HELP_ON_ERROR)

    asyncio.run(scenario())

    assert provider.open_count == 1
    assert notifier.reasons == [NotificationReason.CHALLENGE, NotificationReason.MANUAL_HELP_ON_ERROR]


def test_reopens_after_close():
    provider = FakePortalProvider()
    portal = _portal(provider)
    session = FakeSession()

    async def scenario():
        await portal.open(session, NotificationReason.CHALLENGE)
        await portal.close(session)
        await portal.close(session)
        await portal.open(session, NotificationReason.MANUAL_HELP_ON_ERROR)

    asyncio.run(scenario())

    assert provider.open_count == 2
    assert provider.close_count == 1
    assert portal.is_open


def test_tunnel_rewrites_notified_url():
    notifier = RecordingNotifier()
    portal = _portal(notifier=notifier, tunnel=PublicUrlTunnel("https://portal.example.com/"))

    handle = asyncio.run(portal.open(FakeSession(), NotificationReason.CHALLENGE))

    assert handle.url == "https://portal.example.com/"
    assert notifier.sent[0][0] == "https://portal.example.com/"


def test_resolution_when_receipt_arrives_first():
    session = FakeSession(receipt=Appear(delay=0.01))
    portal = _portal(idle_ms=1000)

    assert asyncio.run(portal.await_resolution(session)) is EscalationResult.RESOLVED


def test_idle_timeout_cancels_the_receipt_wait():
    session = FakeSession(receipt=Manual())
    portal = _portal(idle_ms=20)

    assert asyncio.run(portal.await_resolution(session)) is EscalationResult.IDLE_TIMEOUT
    assert session.cancelled == ["receipt"]


def test_notification_window_expiry_is_a_challenge_timeout():
    session = FakeSession(receipt=Manual())
    portal = _portal(notification_ms=20, idle_ms=1000)

    with pytest.raises(ChallengeTimeout):
        asyncio.run(portal.await_resolution(session))


def test_shutdown_closes_open_portal_once():
    provider = FakePortalProvider()
    portal = _portal(provider)
    session = FakeSession()

    async def scenario():
        await portal.open(session, NotificationReason.CHALLENGE)
        await portal.shutdown(session)
        await portal.shutdown(session)

    asyncio.run(scenario())

    assert provider.close_count == 1
    assert not portal.is_open


def test_portal_instructions_depend_on_the_reason(caplog):
    portal = _portal()
    session = FakeSession()

    async def scenario():
        await portal.open(session, NotificationReason.CHALLENGE)
        await portal.open(session, NotificationReason.MANUAL_HELP_ON_ERROR)

    with caplog.at_level(logging.INFO, logger="storefront_purchase.flow.escalation"):
        asyncio.run(scenario())

    messages = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Go to this URL")]
    assert messages == [
        "Go to this URL and do something: http://localhost:3000/",
        "Go to this URL and purchase the game: http://localhost:3000/",
    ]
