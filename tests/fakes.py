"""
In-memory stand-ins for the browser session and the outward-facing collaborators.

FakeSession scripts element and receipt behaviour per page load, so a test can
describe what every pass of the purchase flow sees.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from storefront_purchase.browser.session import BrowserSession
from storefront_purchase.cookies.hcaptcha import ChallengeCookieProvider
from storefront_purchase.cookies.models import CookieSet
from storefront_purchase.cookies.store import CookieStore
from storefront_purchase.core.config import PurchaseConfig
from storefront_purchase.core.errors import AutomationTimeout, StructuralAutomationError
from storefront_purchase.core.models import Found, NotFoundDetached, NotFoundTimeout
from storefront_purchase.notify.notifier import NotificationReason, Notifier
from storefront_purchase.portal.provider import PortalProvider


# --- scripted behaviours ---


@dataclass
class Appear:
    delay: float = 0.0
    text: str = ""
    detached_click: bool = False


@dataclass
class Never:
    pass


@dataclass
class Detach:
    delay: float = 0.0


@dataclass
class Explode:
    error: BaseException


@dataclass
class Manual:
    """Receipt shows up once the test (or a notifier callback) calls `human_finishes()`"""


Behaviour = Union[Appear, Never, Detach, Explode, Manual]


@dataclass
class FakeHandle:
    selector: str
    pass_index: int
    text: str = ""
    detached_click: bool = False


async def _forever():
    await asyncio.Event().wait()


def make_config(tmp_path: Path, **overrides) -> PurchaseConfig:
    """Config with short bounds so flows finish in milliseconds"""
    values = dict(
        config_dir=tmp_path,
        challenge_notification_timeout_ms=5000,
        challenge_idle_timeout_ms=5000,
        consent_dialog_timeout_ms=30,
        refund_dialog_timeout_ms=30,
        dialog_poll_interval_ms=10,
        iframe_button_timeout_ms=200,
        iframe_button_poll_ms=10,
    )
    values.update(overrides)
    return PurchaseConfig(**values)


class FakeSession(BrowserSession):

    def __init__(self, elements: Optional[Dict[str, object]] = None, receipt: object = None,
                 established: bool = True, screenshot_error: Optional[BaseException] = None):
        self.elements = elements or {}
        self.receipt = receipt if receipt is not None else Never()
        self.established = established
        self.screenshot_error = screenshot_error

        self.pass_index = 0
        self.gotos: List[str] = []
        self.clicks: List[tuple] = []
        self.lookups: List[tuple] = []
        self.cancelled: List[str] = []
        self.jar: List[Dict] = []
        self.close_count = 0
        self.receipt_waits = 0
        self._human_done = asyncio.Event()

    # helpers

    def human_finishes(self):
        self._human_done.set()

    def _pick(self, script, default):
        if script is None:
            return default
        if isinstance(script, list):
            return script[min(max(self.pass_index - 1, 0), len(script) - 1)]
        return script

    # BrowserSession

    @property
    def is_established(self) -> bool:
        return self.established

    @property
    def url(self) -> str:
        return self.gotos[-1] if self.gotos else "about:blank"

    async def goto(self, url: str) -> None:
        self.pass_index += 1
        self.gotos.append(url)

    async def wait_for_network_idle(self) -> None:
        await asyncio.sleep(0)

    async def add_cookies(self, cookies: List[Dict]) -> None:
        self.jar.extend(dict(c) for c in cookies)

    async def cookies(self) -> List[Dict]:
        return [dict(c) for c in self.jar]

    async def wait_for_element(self, selector: str, timeout_ms: Optional[int] = None, state: str = "visible"):
        self.lookups.append((selector, self.pass_index))
        behaviour = self._pick(self.elements.get(selector), Never())
        try:
            return await self._resolve(selector, behaviour, timeout_ms)
        except asyncio.CancelledError:
            self.cancelled.append(selector)
            raise

    async def wait_for_frame_element(self, frame_selector: str, selector: str, timeout_ms: int, poll_ms: int):
        return await self.wait_for_element(selector, timeout_ms)

    async def _resolve(self, selector: str, behaviour, timeout_ms: Optional[int]):
        if isinstance(behaviour, Explode):
            raise behaviour.error
        if isinstance(behaviour, Detach):
            await asyncio.sleep(behaviour.delay)
            return NotFoundDetached(f"{selector} detached")
        if isinstance(behaviour, Appear):
            if timeout_ms is not None and behaviour.delay * 1000 > timeout_ms:
                await asyncio.sleep(timeout_ms / 1000)
                return NotFoundTimeout(selector)
            await asyncio.sleep(behaviour.delay)
            return Found(FakeHandle(selector, self.pass_index, behaviour.text, behaviour.detached_click))
        if timeout_ms is None:
            await _forever()
        await asyncio.sleep(timeout_ms / 1000)
        return NotFoundTimeout(selector)

    async def click(self, handle, delay_ms: int = 100) -> None:
        if handle.detached_click:
            raise StructuralAutomationError(f"Element {handle.selector} is not attached to the DOM")
        self.clicks.append((handle.selector, handle.pass_index))

    async def inner_text(self, handle) -> str:
        return handle.text

    async def wait_for_receipt(self, timeout_ms: Optional[int] = None) -> None:
        self.receipt_waits += 1
        behaviour = self._pick(self.receipt, Never())
        try:
            await self._wait_receipt(behaviour, timeout_ms)
        except asyncio.CancelledError:
            self.cancelled.append("receipt")
            raise

    async def _wait_receipt(self, behaviour, timeout_ms: Optional[int]):
        timeout = None if timeout_ms is None else timeout_ms / 1000
        if isinstance(behaviour, Manual):
            try:
                await asyncio.wait_for(self._human_done.wait(), timeout)
            except asyncio.TimeoutError:
                raise AutomationTimeout(f"Timeout after {timeout_ms}ms waiting for receipt")
            return
        if isinstance(behaviour, Appear) and (timeout is None or behaviour.delay <= timeout):
            await asyncio.sleep(behaviour.delay)
            return
        if timeout is None:
            await _forever()
        await asyncio.sleep(timeout)
        raise AutomationTimeout(f"Timeout after {timeout_ms}ms waiting for receipt")

    async def screenshot(self, path: Path) -> None:
        if self.screenshot_error is not None:
            raise self.screenshot_error
        Path(path).write_bytes(b"\x89PNG fake")

    async def content(self) -> str:
        return f"<html><body>pass {self.pass_index}</body></html>"

    async def close(self) -> None:
        self.close_count += 1
        self.established = False


class FakePortalProvider(PortalProvider):

    def __init__(self, url: str = "http://localhost:3000/", fail_open: Optional[BaseException] = None):
        self.url = url
        self.fail_open = fail_open
        self.open_count = 0
        self.close_count = 0
        self._open = set()

    async def open(self, session) -> str:
        if self.fail_open is not None:
            raise self.fail_open
        self.open_count += 1
        self._open.add(id(session))
        return self.url

    async def close(self, session) -> None:
        self.close_count += 1
        self._open.discard(id(session))

    def is_open(self, session) -> bool:
        return id(session) in self._open


class RecordingNotifier(Notifier):

    def __init__(self, on_send: Optional[Callable[[NotificationReason], None]] = None):
        self.sent: List[tuple] = []
        self.on_send = on_send

    async def send(self, url: str, identity: str, reason: NotificationReason) -> None:
        self.sent.append((url, identity, reason))
        if self.on_send is not None:
            self.on_send(reason)

    @property
    def reasons(self) -> List[NotificationReason]:
        return [reason for _, _, reason in self.sent]


class InMemoryCookieStore(CookieStore):

    def __init__(self, jars: Optional[Dict[str, CookieSet]] = None):
        self.jars = dict(jars or {})
        self.saves: List[str] = []

    async def load(self, identity: str) -> CookieSet:
        return self.jars.get(identity, CookieSet())

    async def save(self, identity: str, cookies: CookieSet) -> None:
        self.saves.append(identity)
        self.jars[identity] = cookies


class FakeChallengeCookies(ChallengeCookieProvider):

    def __init__(self, cookies: Optional[CookieSet] = None):
        self.cookies = cookies or CookieSet()
        self.fetches = 0

    async def fetch(self) -> CookieSet:
        self.fetches += 1
        return self.cookies
