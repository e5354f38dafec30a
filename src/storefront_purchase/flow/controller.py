"""
PurchaseFlowController - the purchase state machine

INIT -> LOADING -> CONSENT_DIALOG -> PAYMENT_BUTTON_WAIT -> REFUND_DIALOG
     -> OUTCOME_RACE -> COMPLETED | FAILED | CAPTCHA_ESCALATED

A challenge that nobody resolves before the idle timeout sends the flow back
to LOADING. That loop is bounded by `max_idle_restarts` and every pass does a
full page load with fresh element lookups.
"""
import asyncio
import logging

from ..core import constants
from ..core.errors import AutomationTimeout, ChallengeTimeout, ExplicitPurchaseError, StructuralAutomationError
from ..core.models import Attempt, FlowState, Found, NotFoundDetached, NotFoundTimeout, OutcomeKind
from ..notify.notifier import NotificationReason
from ..utils.logger_config import log
from .dialog_guard import DialogGuard
from .escalation import EscalationResult
from .outcome_race import OutcomeRace, cancel_and_wait

logger = logging.getLogger(__name__)


class PurchaseFlowController:

    def __init__(self, attempt: Attempt, config, bridge, escalation,
                 dialog_guard: DialogGuard = None, outcome_race: OutcomeRace = None,
                 attempt_logger=None):
        self.attempt = attempt
        self.session = attempt.session
        self.config = config
        self.bridge = bridge
        self.escalation = escalation
        self.dialog_guard = dialog_guard or DialogGuard(self.session, config.dialog_poll_interval_ms)
        self.outcome_race = outcome_race or OutcomeRace(timeout_ms=config.outcome_timeout_ms)
        self.log = attempt_logger or logger

    def _enter(self, state: FlowState):
        self.attempt.transition(state)
        log(self.log, "debug", f"State -> {state.value}", module="FLOW", source=self.attempt.identity)

    async def run(self) -> None:
        """Drive the attempt to COMPLETED; any failure leaves it FAILED and propagates"""
        try:
            if self.attempt.target.is_short_flow:
                await self._run_short_flow()
            else:
                await self._run_full_flow()
        except Exception:
            if self.attempt.state is not FlowState.FAILED:
                self._enter(FlowState.FAILED)
            raise
        await self.complete()

    async def complete(self) -> None:
        self._enter(FlowState.COMPLETED)
        self.log.info(f"Purchase of {self.attempt.target.describe()} complete")
        await self.bridge.capture_session(self.attempt.identity, self.session)
        self.log.debug("Saved cookies")

    # === SHORT FLOW (purchase iframe) ===

    async def _run_short_flow(self) -> None:
        purchase_url = self.attempt.target.entry_url(self.config.store_homepage, self.config.purchase_endpoint)

        while True:
            await self._load(purchase_url)

            self._enter(FlowState.CONSENT_DIALOG)
            if not await self.dialog_guard.try_dismiss(
                constants.COOKIE_CONSENT_BUTTON, self.config.consent_dialog_timeout_ms
            ):
                self.log.debug("No cookie dialog presented")

            self._enter(FlowState.PAYMENT_BUTTON_WAIT)
            self.log.debug("Waiting for placeOrderButton")
            place_order = await self._wait_for_button(
                constants.PLACE_ORDER_BUTTON, self.config.payment_button_timeout_ms
            )
            self.log.debug("Clicking placeOrderButton")
            await self.session.click(place_order)

            self._enter(FlowState.REFUND_DIALOG)
            if not await self.dialog_guard.try_dismiss(
                constants.EU_REFUND_AGREE_BUTTON, self.config.refund_dialog_timeout_ms
            ):
                self.log.debug('No EU "Refund and Right of Withdrawal Information" dialog presented')

            self._enter(FlowState.OUTCOME_RACE)
            self.log.debug("Waiting for receipt")
            outcome = await self.outcome_race.await_outcome(self.session)

            if outcome.kind is OutcomeKind.NAV:
                return
            if outcome.kind is OutcomeKind.ERROR_TEXT:
                self._enter(FlowState.FAILED)
                raise ExplicitPurchaseError(outcome.payload)

            if await self._escalate_challenge():
                return

            self.attempt.idle_restarts += 1
            if self.attempt.idle_restarts > self.config.max_idle_restarts:
                self._enter(FlowState.FAILED)
                raise ChallengeTimeout(
                    f"Challenge still unresolved after {self.config.max_idle_restarts} page reloads"
                )
            self.log.info(
                f"Reloading purchase page... (restart {self.attempt.idle_restarts}/{self.config.max_idle_restarts})"
            )

    async def _load(self, url: str) -> None:
        self._enter(FlowState.LOADING)
        self.attempt.passes += 1
        self.log.info(f"Loading purchase page: {url}")
        await self.session.goto(url)

    async def _wait_for_button(self, selector: str, timeout_ms: int):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        while True:
            remaining_ms = int((deadline - loop.time()) * 1000)
            if remaining_ms <= 0:
                raise AutomationTimeout(f"Timeout after {timeout_ms}ms waiting for {selector}")
            result = await self.session.wait_for_element(selector, timeout_ms=remaining_ms)
            if isinstance(result, Found):
                return result.handle
            if isinstance(result, NotFoundTimeout):
                raise AutomationTimeout(f"Timeout after {timeout_ms}ms waiting for {selector}")
            # Re-rendered under us; look it up again
            self.log.debug(f"{selector} detached while waiting: {result.reason}")

    async def _escalate_challenge(self) -> bool:
        """True when a human finished the purchase, False when the page should be reloaded"""
        self._enter(FlowState.CAPTCHA_ESCALATED)
        self.log.debug("Captcha detected")
        await self.escalation.open(self.session, NotificationReason.CHALLENGE)

        try:
            result = await self.escalation.await_resolution(self.session)
        except ChallengeTimeout as e:
            self.log.warning(str(e))
            return False

        if result is EscalationResult.RESOLVED:
            await self.escalation.close(self.session)
            return True

        self.log.info(f"No interaction for {self.config.challenge_idle_timeout_ms}ms")
        return False

    # === FULL FLOW (product page) ===

    async def _run_full_flow(self) -> None:
        product_url = self.attempt.target.entry_url(self.config.store_homepage, self.config.purchase_endpoint)
        await self.session.add_cookies([dict(constants.AGE_GATE_COOKIE)])
        await self._load(product_url)

        self.log.debug("Waiting for getButton")
        get_button = await self._wait_for_button(
            constants.PURCHASE_CTA_BUTTON, self.config.payment_button_timeout_ms
        )
        await self.session.click(get_button)

        self._enter(FlowState.PAYMENT_BUTTON_WAIT)
        self.log.debug("Waiting for placeOrderButton")
        place_order = await self._wait_for_iframe_button()
        self.log.debug("Clicking placeOrderButton")
        await self.session.click(place_order)

        self._enter(FlowState.OUTCOME_RACE)
        self.log.debug("Waiting for purchased button")
        await self._wait_for_button(constants.OWNED_INDICATOR, self.config.outcome_timeout_ms)

    async def _wait_for_iframe_button(self):
        lookup = asyncio.ensure_future(self.session.wait_for_frame_element(
            constants.PURCHASE_IFRAME,
            constants.IFRAME_PAYMENT_BUTTON,
            self.config.iframe_button_timeout_ms,
            self.config.iframe_button_poll_ms,
        ))
        idle = asyncio.ensure_future(self.session.wait_for_network_idle())
        try:
            result, _ = await asyncio.gather(lookup, idle)
        finally:
            await cancel_and_wait([lookup, idle])

        if isinstance(result, Found):
            return result.handle
        if isinstance(result, NotFoundDetached):
            raise StructuralAutomationError(f"Purchase iframe detached: {result.reason}")
        raise AutomationTimeout(
            f"Timeout after {self.config.iframe_button_timeout_ms}ms: could not find purchase button in iframe"
        )
