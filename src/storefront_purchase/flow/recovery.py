"""
ErrorRecoveryManager - last chance after the purchase flow failed

Saves a screenshot and the page HTML for offline debugging, then (unless
disabled) asks a human to finish the purchase through the portal. When that
does not work either, the original error goes back to the caller.
"""
import logging

from ..core.errors import RecoveryExhausted
from ..core.models import Attempt, FlowState
from ..notify.notifier import NotificationReason
from .diagnostics import DiagnosticsSink

logger = logging.getLogger(__name__)


class ErrorRecoveryManager:

    def __init__(self, config, bridge, escalation, diagnostics: DiagnosticsSink = None, attempt_logger=None):
        self.config = config
        self.bridge = bridge
        self.escalation = escalation
        self.diagnostics = diagnostics or DiagnosticsSink()
        self.log = attempt_logger or logger

    async def recover(self, attempt: Attempt, error: BaseException) -> None:
        """
        Returns normally when a human completed the purchase; otherwise
        re-raises `error`. Session teardown is left to the attempt owner.
        """
        session = attempt.session
        if session is None or not session.is_established:
            raise error

        await self._save_diagnostics(session, error)

        if not self.config.manual_help_enabled:
            raise error

        try:
            await self._ask_for_help(attempt, error)
        except RecoveryExhausted as exhausted:
            self.log.error(f"Encountered an error when asking a human for help: {exhausted.cause}")
            raise error

    async def _save_diagnostics(self, session, error: BaseException) -> None:
        self.log.warning(f"{type(error).__name__}: {error}")
        try:
            paths = await self.diagnostics.capture(session, self.config.diagnostics_dir)
        except Exception as e:
            self.log.error(f"Could not save diagnostics: {e}")
            return
        self.log.error(
            "Encountered an error during browser automation. "
            f"Saved a screenshot and page HTML for debugging purposes: "
            f"errorImage={paths.screenshot} errorHtml={paths.html}"
        )

    async def _ask_for_help(self, attempt: Attempt, error: BaseException) -> None:
        session = attempt.session
        self.log.info("Asking a human for help...")
        try:
            await self.escalation.open(session, NotificationReason.MANUAL_HELP_ON_ERROR)
            await self.escalation.wait_for_receipt(session)
            await self.escalation.close(session)
            await self.bridge.capture_session(attempt.identity, session)
        except Exception as e:
            raise RecoveryExhausted(error, e) from e

        attempt.transition(FlowState.COMPLETED)
        self.log.info(f"Purchase of {attempt.target.describe()} finished by a human")
