"""
Storefront purchase automation

Drives a browser session through the storefront checkout for one account,
escalating CAPTCHA challenges and unexpected failures to a human through a
remote portal.
"""
from .core.config import PurchaseConfig
from .core.errors import (
    AutomationTimeout,
    ChallengeTimeout,
    ExplicitPurchaseError,
    PurchaseError,
    StructuralAutomationError,
)
from .core.models import Attempt, FlowState, PurchaseTarget
from .main import StorefrontPurchaser, purchase

__version__ = "1.0.0"

__all__ = [
    "Attempt",
    "AutomationTimeout",
    "ChallengeTimeout",
    "ExplicitPurchaseError",
    "FlowState",
    "PurchaseConfig",
    "PurchaseError",
    "PurchaseTarget",
    "StorefrontPurchaser",
    "StructuralAutomationError",
    "purchase",
]
