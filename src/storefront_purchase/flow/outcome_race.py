"""
OutcomeRace - waits for whichever of receipt, inline error or challenge happens first
"""
import asyncio
import logging
from typing import Optional

from ..core.constants import HCAPTCHA_CHALLENGE_IFRAME, PURCHASE_ERROR_ALERT, UNKNOWN_PURCHASE_ERROR
from ..core.errors import AutomationTimeout, StructuralAutomationError
from ..core.models import Found, NotFoundDetached, NotFoundTimeout, OutcomeClassification

logger = logging.getLogger(__name__)

DEFAULT_OUTCOME_TIMEOUT_MS = 30000


async def cancel_and_wait(tasks) -> None:
    """Cancel `tasks` and wait until every one of them has actually stopped"""
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


class OutcomeRace:
    """
    Races three independent waits on the same session.

    Each waiter resolves to an OutcomeClassification, or to None when it
    decides nothing happened on its side (for instance the challenge iframe
    detached because the page navigated on). The first classification wins
    and the remaining waiters are cancelled. Every waiter gives up after
    `timeout_ms` with AutomationTimeout.
    """

    def __init__(self, error_selector: str = PURCHASE_ERROR_ALERT,
                 challenge_selector: str = HCAPTCHA_CHALLENGE_IFRAME,
                 timeout_ms: int = DEFAULT_OUTCOME_TIMEOUT_MS):
        self.error_selector = error_selector
        self.challenge_selector = challenge_selector
        self.timeout_ms = timeout_ms

    async def await_outcome(self, session) -> OutcomeClassification:
        tasks = {
            asyncio.ensure_future(self._wait_for_receipt(session)): "nav",
            asyncio.ensure_future(self._wait_for_error(session)): "error",
            asyncio.ensure_future(self._wait_for_challenge(session)): "challenge",
        }
        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                failed = None
                # Read every finished waiter before re-raising; a result beats a timeout
                for task in [t for t in tasks if t in done]:
                    if task.exception() is not None:
                        failed = failed or task
                        continue
                    outcome = task.result()
                    if outcome is not None:
                        logger.debug(f"Outcome race won by {tasks[task]}")
                        return outcome
                    logger.debug(f"{tasks[task]} waiter deferred to the other outcomes")
                if failed is not None:
                    failed.result()
            raise StructuralAutomationError("Every purchase outcome waiter gave up without a result")
        finally:
            await cancel_and_wait(list(tasks))

    async def _wait_for_receipt(self, session) -> OutcomeClassification:
        await session.wait_for_receipt(self.timeout_ms)
        return OutcomeClassification.nav()

    async def _wait_for_error(self, session) -> Optional[OutcomeClassification]:
        result = await session.wait_for_element(self.error_selector, timeout_ms=self.timeout_ms)
        if isinstance(result, Found):
            text = await session.inner_text(result.handle)
            return OutcomeClassification.error_text((text or "").strip() or UNKNOWN_PURCHASE_ERROR)
        if isinstance(result, NotFoundTimeout):
            raise AutomationTimeout(f"Timeout waiting for {self.error_selector}")
        logger.debug(f"Error alert detached: {result.reason}")
        return None

    async def _wait_for_challenge(self, session) -> Optional[OutcomeClassification]:
        logger.debug("Waiting for hcaptcha iframe")
        try:
            result = await session.wait_for_element(
                self.challenge_selector, timeout_ms=self.timeout_ms, state="visible"
            )
        except StructuralAutomationError as e:
            logger.warning(f"Challenge lookup failed, assuming no challenge: {e}")
            return None
        if isinstance(result, Found):
            return OutcomeClassification.challenge()
        if isinstance(result, NotFoundTimeout):
            raise AutomationTimeout(f"Timeout waiting for {self.challenge_selector}")
        if isinstance(result, NotFoundDetached):
            logger.debug(f"Challenge iframe detached, no challenge presented: {result.reason}")
        return None
