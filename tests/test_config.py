from pathlib import Path

import pytest
from pydantic import ValidationError

from storefront_purchase.core.config import HOUR_MS, MINUTE_MS, PurchaseConfig

ENV_VARS = [
    "NOTIFICATION_TIMEOUT_HOURS",
    "CHALLENGE_IDLE_TIMEOUT_MINUTES",
    "NO_HUMAN_ERROR_HELP",
    "MAX_IDLE_RESTARTS",
    "PAYMENT_BUTTON_TIMEOUT_MS",
    "OUTCOME_TIMEOUT_MS",
    "CONFIG_DIR",
    "HEADLESS",
    "PORTAL_HOST",
    "PORTAL_PORT",
    "PORTAL_PUBLIC_URL",
    "NOTIFICATION_WEBHOOK_URL",
    "HCAPTCHA_ACCESSIBILITY_URL",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        # set first so monkeypatch restores the variable even if .env adds it
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    # keep a developer's .env out of the picture
    monkeypatch.chdir(tmp_path)
    return monkeypatch


def test_defaults(clean_env):
    config = PurchaseConfig.from_env()
    assert config.challenge_notification_timeout_ms == 24 * HOUR_MS
    assert config.challenge_idle_timeout_ms == 3 * HOUR_MS
    assert config.manual_help_enabled is True
    assert config.max_idle_restarts == 8
    assert config.payment_button_timeout_ms == 30000
    assert config.outcome_timeout_ms == 30000
    assert config.headless is True
    assert config.diagnostics_dir == Path("config") / "diagnostics"
    assert config.cookies_dir == Path("config") / "cookies"
    assert config.portal_public_url is None


def test_environment_overrides(clean_env):
    clean_env.setenv("NOTIFICATION_TIMEOUT_HOURS", "0.5")
    clean_env.setenv("CHALLENGE_IDLE_TIMEOUT_MINUTES", "15")
    clean_env.setenv("NO_HUMAN_ERROR_HELP", "true")
    clean_env.setenv("MAX_IDLE_RESTARTS", "3")
    clean_env.setenv("OUTCOME_TIMEOUT_MS", "45000")
    clean_env.setenv("CONFIG_DIR", "/data/purchases")
    clean_env.setenv("HEADLESS", "0")
    clean_env.setenv("PORTAL_PORT", "8123")
    clean_env.setenv("PORTAL_PUBLIC_URL", "https://portal.example.com")
    clean_env.setenv("LOG_LEVEL", "debug")

    config = PurchaseConfig.from_env()

    assert config.challenge_notification_timeout_ms == HOUR_MS // 2
    assert config.challenge_idle_timeout_ms == 15 * MINUTE_MS
    assert config.manual_help_enabled is False
    assert config.max_idle_restarts == 3
    assert config.outcome_timeout_ms == 45000
    assert config.config_dir == Path("/data/purchases")
    assert config.headless is False
    assert config.portal_port == 8123
    assert config.portal_public_url == "https://portal.example.com"
    assert config.log_level == "DEBUG"


def test_explicit_overrides_win(clean_env):
    clean_env.setenv("HEADLESS", "true")
    assert PurchaseConfig.from_env(headless=False).headless is False


def test_dotenv_file_is_read(clean_env, tmp_path):
    (tmp_path / ".env").write_text("MAX_IDLE_RESTARTS=5\n")
    assert PurchaseConfig.from_env().max_idle_restarts == 5


def test_non_positive_timeouts_are_rejected():
    with pytest.raises(ValidationError):
        PurchaseConfig(challenge_idle_timeout_ms=0)
