"""
Shared data types for a purchase attempt
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Union

from .constants import build_offer_purchase_url, build_product_url

Identity = str


class FlowState(str, Enum):
    INIT = "init"
    LOADING = "loading"
    CONSENT_DIALOG = "consent_dialog"
    PAYMENT_BUTTON_WAIT = "payment_button_wait"
    REFUND_DIALOG = "refund_dialog"
    OUTCOME_RACE = "outcome_race"
    CAPTCHA_ESCALATED = "captcha_escalated"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class PurchaseTarget:
    """
    What is being purchased.

    Either a product slug (full flow, starts on the product page) or a
    namespace/offer pair (short flow, starts on the purchase iframe).
    """
    slug: Optional[str] = None
    namespace: Optional[str] = None
    offer_id: Optional[str] = None

    def __post_init__(self):
        has_slug = bool(self.slug)
        has_offer = bool(self.namespace) and bool(self.offer_id)
        if has_slug == has_offer:
            raise ValueError("PurchaseTarget needs either a slug or a namespace and offer id")

    @classmethod
    def product(cls, slug: str) -> "PurchaseTarget":
        return cls(slug=slug)

    @classmethod
    def offer(cls, namespace: str, offer_id: str) -> "PurchaseTarget":
        return cls(namespace=namespace, offer_id=offer_id)

    @property
    def is_short_flow(self) -> bool:
        return self.slug is None

    def entry_url(self, store_homepage: str, purchase_endpoint: str) -> str:
        if self.is_short_flow:
            return build_offer_purchase_url(self.namespace, self.offer_id, purchase_endpoint)
        return build_product_url(self.slug, store_homepage)

    def describe(self) -> str:
        if self.is_short_flow:
            return f"{self.namespace}/{self.offer_id}"
        return self.slug


@dataclass
class Attempt:
    """One end-to-end run of the purchase flow; owns its session exclusively"""
    identity: Identity
    target: PurchaseTarget
    session: Any = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: FlowState = FlowState.INIT
    passes: int = 0
    idle_restarts: int = 0
    history: List[FlowState] = field(default_factory=list)

    def transition(self, state: FlowState):
        self.state = state
        self.history.append(state)


@dataclass
class PortalHandle:
    url: str
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notified_reasons: List[str] = field(default_factory=list)
    closed: bool = False


class OutcomeKind(str, Enum):
    NAV = "nav"
    ERROR_TEXT = "error-text"
    CHALLENGE = "challenge"


@dataclass(frozen=True)
class OutcomeClassification:
    kind: OutcomeKind
    payload: Optional[str] = None

    @classmethod
    def nav(cls) -> "OutcomeClassification":
        return cls(OutcomeKind.NAV)

    @classmethod
    def error_text(cls, payload: str) -> "OutcomeClassification":
        return cls(OutcomeKind.ERROR_TEXT, payload)

    @classmethod
    def challenge(cls) -> "OutcomeClassification":
        return cls(OutcomeKind.CHALLENGE)


# Element lookups distinguish "never showed up" from "went away while we looked"


@dataclass(frozen=True)
class Found:
    handle: Any


@dataclass(frozen=True)
class NotFoundTimeout:
    selector: str = ""


@dataclass(frozen=True)
class NotFoundDetached:
    reason: str = ""


ElementLookupResult = Union[Found, NotFoundTimeout, NotFoundDetached]
