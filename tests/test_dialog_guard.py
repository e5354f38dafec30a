import asyncio

import pytest
from fakes import Appear, Detach, Explode, FakeSession

from storefront_purchase.core.errors import AutomationTimeout, StructuralAutomationError
from storefront_purchase.flow.dialog_guard import DialogGuard

CONSENT = "button#onetrust-accept-btn-handler"


async def _timed(coro):
    loop = asyncio.get_running_loop()
    started = loop.time()
    result = await coro
    return result, loop.time() - started


def test_absent_dialog_returns_false_within_bound():
    session = FakeSession()
    guard = DialogGuard(session, poll_interval_ms=10)

    dismissed, elapsed = asyncio.run(_timed(guard.try_dismiss(CONSENT, 50)))

    assert dismissed is False
    assert elapsed < 0.5
    assert session.clicks == []
    # polled more than once
    assert len(session.lookups) > 1


def test_present_dialog_is_clicked_once():
    session = FakeSession({CONSENT: Appear()})
    guard = DialogGuard(session, poll_interval_ms=10)

    assert asyncio.run(guard.try_dismiss(CONSENT, 100)) is True
    assert session.clicks == [(CONSENT, 0)]


def test_detached_dialog_keeps_polling_until_the_bound():
    session = FakeSession({CONSENT: Detach()})
    guard = DialogGuard(session, poll_interval_ms=10)

    assert asyncio.run(guard.try_dismiss(CONSENT, 50)) is False
    assert len(session.lookups) > 1
    assert session.clicks == []


def test_timeout_errors_are_swallowed():
    session = FakeSession({CONSENT: Explode(AutomationTimeout("Timeout 30ms exceeded"))})
    guard = DialogGuard(session, poll_interval_ms=10)

    assert asyncio.run(guard.try_dismiss(CONSENT, 100)) is False


def test_click_on_detached_element_propagates():
    session = FakeSession({CONSENT: Appear(detached_click=True)})
    guard = DialogGuard(session, poll_interval_ms=10)

    with pytest.raises(StructuralAutomationError):
        asyncio.run(guard.try_dismiss(CONSENT, 100))


def test_structural_lookup_failure_propagates():
    session = FakeSession({CONSENT: Explode(StructuralAutomationError("Target closed"))})
    guard = DialogGuard(session, poll_interval_ms=10)

    with pytest.raises(StructuralAutomationError):
        asyncio.run(guard.try_dismiss(CONSENT, 100))


def test_structural_failure_reporting_a_timeout_is_absence():
    session = FakeSession({CONSENT: Explode(StructuralAutomationError("Click failed: Timeout 100ms exceeded"))})
    guard = DialogGuard(session, poll_interval_ms=10)

    assert asyncio.run(guard.try_dismiss(CONSENT, 100)) is False
