"""
Browser session used by a single purchase attempt

BrowserSession is the surface the purchase flow drives. PlaywrightSession
implements it on top of a Chromium page, translating Playwright errors into
the purchase error taxonomy and element lookups into ElementLookupResult.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from playwright.async_api import Browser, BrowserContext, Page, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..core.constants import CLICK_DELAY_MS, RECEIPT_PREDICATE
from ..core.errors import AutomationTimeout, StructuralAutomationError
from ..core.models import ElementLookupResult, Found, NotFoundDetached, NotFoundTimeout

logger = logging.getLogger(__name__)

DETACHED_MARKERS = (
    "detached",
    "execution context was destroyed",
    "not attached",
)

LAUNCH_ARGS = [
    '--disable-blink-features=AutomationControlled',  # Hide automation flag
    '--no-sandbox',
    '--disable-dev-shm-usage',
    '--disable-setuid-sandbox',
]


def is_detached_error(err: BaseException) -> bool:
    message = str(err).lower()
    return any(marker in message for marker in DETACHED_MARKERS)


class BrowserSession(ABC):
    """Live browser page owned by exactly one attempt"""

    @property
    @abstractmethod
    def is_established(self) -> bool:
        pass

    @property
    def url(self) -> str:
        return ""

    @abstractmethod
    async def goto(self, url: str) -> None:
        """Navigate and block until network activity is idle"""

    @abstractmethod
    async def wait_for_network_idle(self) -> None:
        pass

    @abstractmethod
    async def add_cookies(self, cookies: List[Dict]) -> None:
        pass

    @abstractmethod
    async def cookies(self) -> List[Dict]:
        pass

    @abstractmethod
    async def wait_for_element(self, selector: str, timeout_ms: Optional[int] = None,
                               state: str = "visible") -> ElementLookupResult:
        """Wait for `selector`; `timeout_ms=None` waits without bound"""

    @abstractmethod
    async def wait_for_frame_element(self, frame_selector: str, selector: str,
                                     timeout_ms: int, poll_ms: int) -> ElementLookupResult:
        pass

    @abstractmethod
    async def click(self, handle, delay_ms: int = CLICK_DELAY_MS) -> None:
        pass

    @abstractmethod
    async def inner_text(self, handle) -> str:
        pass

    @abstractmethod
    async def wait_for_receipt(self, timeout_ms: Optional[int] = None) -> None:
        """Resolve once the page reports the receipt state; AutomationTimeout on expiry"""

    @abstractmethod
    async def screenshot(self, path: Path) -> None:
        pass

    @abstractmethod
    async def content(self) -> str:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class PlaywrightSession(BrowserSession):
    """BrowserSession backed by a Playwright Chromium page"""

    def __init__(self, playwright, browser: Browser, context: BrowserContext, page: Page):
        self.playwright = playwright
        self.browser = browser
        self.context = context
        self.page = page
        self._closed = False

    @property
    def is_established(self) -> bool:
        return self.page is not None and not self._closed

    @property
    def url(self) -> str:
        return self.page.url if self.page else ""

    async def goto(self, url: str) -> None:
        try:
            await self.page.goto(url, wait_until="networkidle")
        except PlaywrightTimeoutError as e:
            raise AutomationTimeout(f"Timeout loading {url}: {e}") from e
        except PlaywrightError as e:
            raise StructuralAutomationError(f"Could not load {url}: {e}") from e
        await self.wait_for_network_idle()

    async def wait_for_network_idle(self) -> None:
        try:
            await self.page.wait_for_load_state("networkidle")
        except PlaywrightTimeoutError as e:
            raise AutomationTimeout(f"Timeout waiting for network idle: {e}") from e

    async def add_cookies(self, cookies: List[Dict]) -> None:
        await self.context.add_cookies(cookies)

    async def cookies(self) -> List[Dict]:
        return await self.context.cookies()

    async def wait_for_element(self, selector: str, timeout_ms: Optional[int] = None,
                               state: str = "visible") -> ElementLookupResult:
        try:
            handle = await self.page.wait_for_selector(
                selector, state=state, timeout=0 if timeout_ms is None else timeout_ms
            )
        except PlaywrightTimeoutError:
            return NotFoundTimeout(selector)
        except PlaywrightError as e:
            if is_detached_error(e):
                return NotFoundDetached(str(e))
            raise StructuralAutomationError(f"Lookup of {selector} failed: {e}") from e
        if handle is None:
            return NotFoundDetached(f"{selector} resolved to nothing")
        return Found(handle)

    async def wait_for_frame_element(self, frame_selector: str, selector: str,
                                     timeout_ms: int, poll_ms: int) -> ElementLookupResult:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        last_reason = ""
        while True:
            try:
                frame_handle = await self.page.query_selector(frame_selector)
                frame = await frame_handle.content_frame() if frame_handle else None
                button = await frame.query_selector(selector) if frame else None
                if button is not None:
                    return Found(button)
                last_reason = f"{selector} not inside {frame_selector}"
            except PlaywrightError as e:
                if not is_detached_error(e):
                    raise StructuralAutomationError(f"Frame lookup failed: {e}") from e
                last_reason = str(e)
            if loop.time() >= deadline:
                logger.debug(f"Gave up on frame element after {timeout_ms}ms: {last_reason}")
                return NotFoundTimeout(selector)
            await asyncio.sleep(poll_ms / 1000)

    async def click(self, handle, delay_ms: int = CLICK_DELAY_MS) -> None:
        try:
            await handle.click(delay=delay_ms)
        except PlaywrightTimeoutError as e:
            raise AutomationTimeout(f"Timeout clicking element: {e}") from e
        except PlaywrightError as e:
            raise StructuralAutomationError(f"Click failed: {e}") from e

    async def inner_text(self, handle) -> str:
        try:
            return await handle.inner_text()
        except PlaywrightError as e:
            raise StructuralAutomationError(f"Could not read element text: {e}") from e

    async def wait_for_receipt(self, timeout_ms: Optional[int] = None) -> None:
        try:
            await self.page.wait_for_function(
                RECEIPT_PREDICATE, timeout=0 if timeout_ms is None else timeout_ms
            )
        except PlaywrightTimeoutError as e:
            raise AutomationTimeout(f"Timeout after {timeout_ms}ms waiting for receipt") from e
        except PlaywrightError as e:
            raise StructuralAutomationError(f"Receipt wait failed: {e}") from e

    async def screenshot(self, path: Path) -> None:
        await self.page.screenshot(path=str(path), full_page=True)

    async def content(self) -> str:
        return await self.page.content()

    async def close(self) -> None:
        if self._closed:
            logger.debug("Session already closed")
            return
        self._closed = True
        try:
            await self.browser.close()
        finally:
            await self.playwright.stop()
        logger.debug("Browser closed")


async def launch_session(headless: bool = True, attempts: int = 3) -> PlaywrightSession:
    """Launch Chromium and open a page, retrying flaky launches"""
    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(headless=headless, args=LAUNCH_ARGS)
            context = await browser.new_context(
                locale='en-US',
                viewport={'width': 1280, 'height': 720},
            )
            page = await context.new_page()
            logger.debug(f"Browser launched (attempt {attempt}/{attempts})")
            return PlaywrightSession(playwright, browser, context, page)
        except PlaywrightError as e:
            last_error = e
            logger.warning(f"Browser launch attempt {attempt}/{attempts} failed: {e}")
            await playwright.stop()
    raise StructuralAutomationError(f"Could not launch browser: {last_error}") from last_error
