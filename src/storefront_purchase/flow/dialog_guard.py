"""
DialogGuard - dismisses optional dialogs that may never appear
"""
import asyncio
import logging

from ..core.errors import AutomationTimeout, OptionalElementTimeout, StructuralAutomationError, is_timeout_message
from ..core.models import Found, NotFoundDetached

logger = logging.getLogger(__name__)


class DialogGuard:
    """
    Polls for an actionable dialog button and clicks it once.

    Absence within the bound is success (returns False). A failure whose
    message reports a timeout is treated the same way; anything else
    propagates as fatal.
    """

    def __init__(self, session, poll_interval_ms: int = 100):
        self.session = session
        self.poll_interval_ms = poll_interval_ms

    async def try_dismiss(self, selector: str, within_ms: int) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + within_ms / 1000
        interval = self.poll_interval_ms / 1000

        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise OptionalElementTimeout(f"{selector} did not appear within {within_ms}ms")

                started = loop.time()
                result = await self.session.wait_for_element(
                    selector, timeout_ms=max(1, int(min(interval, remaining) * 1000))
                )
                if isinstance(result, Found):
                    logger.debug(f"Clicking dialog button {selector}")
                    await self.session.click(result.handle)
                    return True
                if isinstance(result, NotFoundDetached):
                    logger.debug(f"Dialog {selector} detached while polling: {result.reason}")

                # Keep a fixed cadence even when the lookup came back early
                pause = min(interval - (loop.time() - started), deadline - loop.time())
                if pause > 0:
                    await asyncio.sleep(pause)
        except AutomationTimeout as e:
            logger.debug(f"Dialog {selector} timed out: {e}")
            return False
        except StructuralAutomationError as e:
            if not is_timeout_message(e):
                raise
            logger.debug(f"Dialog {selector} timed out: {e}")
            return False
