
import os
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field

from .constants import PURCHASE_ENDPOINT, STORE_HOMEPAGE_EN

HOUR_MS = 60 * 60 * 1000
MINUTE_MS = 60 * 1000


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return int(value)


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return float(value)


class PurchaseConfig(BaseModel):
    """
    Configuration injected into the purchase flow.
    Built from environment variables (and a local .env file) by from_env().
    """

    challenge_notification_timeout_ms: int = Field(default=24 * HOUR_MS, gt=0)
    challenge_idle_timeout_ms: int = Field(default=3 * HOUR_MS, gt=0)
    manual_help_enabled: bool = True
    max_idle_restarts: int = Field(default=8, ge=0)

    consent_dialog_timeout_ms: int = 3000
    refund_dialog_timeout_ms: int = 3000
    dialog_poll_interval_ms: int = 100
    payment_button_timeout_ms: int = Field(default=30000, gt=0)
    # receipt, inline error and challenge waits, and the owned indicator
    outcome_timeout_ms: int = Field(default=30000, gt=0)
    iframe_button_timeout_ms: int = 30000
    iframe_button_poll_ms: int = 100

    config_dir: Path = Path("config")
    headless: bool = True
    browser_launch_attempts: int = Field(default=3, ge=1)

    store_homepage: str = STORE_HOMEPAGE_EN
    purchase_endpoint: str = PURCHASE_ENDPOINT

    portal_host: str = "127.0.0.1"
    portal_port: int = 3000
    portal_public_url: Optional[str] = None
    portal_frame_interval_ms: int = 1000

    notification_webhook_url: Optional[str] = None
    hcaptcha_accessibility_url: Optional[str] = None

    log_level: str = "INFO"

    @property
    def diagnostics_dir(self) -> Path:
        return self.config_dir / "diagnostics"

    @property
    def cookies_dir(self) -> Path:
        return self.config_dir / "cookies"

    @classmethod
    def from_env(cls, **overrides) -> "PurchaseConfig":
        """Load configuration from the environment, .env values included"""
        load_dotenv(find_dotenv(usecwd=True))

        values = {}
        hours = _env_float("NOTIFICATION_TIMEOUT_HOURS")
        if hours is not None:
            values["challenge_notification_timeout_ms"] = int(hours * HOUR_MS)
        idle_minutes = _env_float("CHALLENGE_IDLE_TIMEOUT_MINUTES")
        if idle_minutes is not None:
            values["challenge_idle_timeout_ms"] = int(idle_minutes * MINUTE_MS)
        values["manual_help_enabled"] = not _env_bool("NO_HUMAN_ERROR_HELP", False)

        max_restarts = _env_int("MAX_IDLE_RESTARTS")
        if max_restarts is not None:
            values["max_idle_restarts"] = max_restarts
        payment_timeout = _env_int("PAYMENT_BUTTON_TIMEOUT_MS")
        if payment_timeout is not None:
            values["payment_button_timeout_ms"] = payment_timeout
        outcome_timeout = _env_int("OUTCOME_TIMEOUT_MS")
        if outcome_timeout is not None:
            values["outcome_timeout_ms"] = outcome_timeout

        if os.getenv("CONFIG_DIR"):
            values["config_dir"] = Path(os.getenv("CONFIG_DIR"))
        values["headless"] = _env_bool("HEADLESS", True)

        if os.getenv("PORTAL_HOST"):
            values["portal_host"] = os.getenv("PORTAL_HOST")
        portal_port = _env_int("PORTAL_PORT")
        if portal_port is not None:
            values["portal_port"] = portal_port
        values["portal_public_url"] = os.getenv("PORTAL_PUBLIC_URL") or None

        values["notification_webhook_url"] = os.getenv("NOTIFICATION_WEBHOOK_URL") or None
        values["hcaptcha_accessibility_url"] = os.getenv("HCAPTCHA_ACCESSIBILITY_URL") or None
        values["log_level"] = os.getenv("LOG_LEVEL", "INFO").upper()

        values.update(overrides)
        return cls(**values)
