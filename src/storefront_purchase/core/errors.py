"""
Error taxonomy for purchase automation

Optional dialog timeouts never leave the DialogGuard. Everything else bubbles
up to the ErrorRecoveryManager, which either resolves it through a human or
re-raises the original error to the caller.
"""
from typing import Optional


class PurchaseError(Exception):
    """Base class for every purchase automation failure"""


class AutomationTimeout(PurchaseError):
    """A bounded wait on the live session expired"""


class OptionalElementTimeout(AutomationTimeout):
    """An optional dialog did not show up in time"""


class ExplicitPurchaseError(PurchaseError):
    """The storefront rendered an inline purchase error"""

    def __init__(self, payload: str):
        super().__init__(payload)
        self.payload = payload


class ChallengeTimeout(PurchaseError):
    """Nobody resolved the challenge in time; the flow should reload"""


class StructuralAutomationError(PurchaseError):
    """Unexpected DOM or session failure"""


class RecoveryExhausted(PurchaseError):
    """Diagnostics were captured and the manual help round failed as well"""

    def __init__(self, original: BaseException, cause: Optional[BaseException] = None):
        message = f"Recovery failed for: {original}"
        if cause is not None:
            message += f" (manual help: {cause})"
        super().__init__(message)
        self.original = original
        self.cause = cause


def is_timeout_message(err: BaseException) -> bool:
    """True when the error text reports a timeout"""
    return "timeout" in str(err).lower()
