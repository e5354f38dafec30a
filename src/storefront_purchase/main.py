from typing import Awaitable, Callable, Optional

from .browser.session import BrowserSession, launch_session
from .cookies.bridge import SessionCookieBridge
from .cookies.hcaptcha import ChallengeCookieProvider, HCaptchaCookieProvider
from .cookies.store import CookieStore, FileCookieStore
from .core.config import PurchaseConfig
from .core.models import Attempt, PurchaseTarget
from .flow.controller import PurchaseFlowController
from .flow.diagnostics import DiagnosticsSink
from .flow.escalation import EscalationPortal
from .flow.recovery import ErrorRecoveryManager
from .notify.notifier import Notifier, build_notifier
from .portal.provider import PortalProvider, TunnelProvider, build_tunnel
from .portal.screencast import ScreencastPortal
from .utils.logger_config import get_attempt_logger


class StorefrontPurchaser:
    """
    Main entry point for purchasing on behalf of one identity.
    Wires the default collaborators from PurchaseConfig; any of them can be
    replaced for testing or for a different deployment.
    """

    def __init__(self, identity: str, config: Optional[PurchaseConfig] = None,
                 cookie_store: Optional[CookieStore] = None,
                 challenge_cookies: Optional[ChallengeCookieProvider] = None,
                 portal: Optional[PortalProvider] = None,
                 tunnel: Optional[TunnelProvider] = None,
                 notifier: Optional[Notifier] = None,
                 diagnostics: Optional[DiagnosticsSink] = None,
                 session_factory: Optional[Callable[[], Awaitable[BrowserSession]]] = None):
        """
        Args:
            identity: Account key (usually the login email)
            config: Injected configuration; read from the environment when omitted
            session_factory: Coroutine function returning a fresh BrowserSession
        """
        self.identity = identity
        self.config = config or PurchaseConfig.from_env()
        self.log = get_attempt_logger(identity, __name__)

        self.bridge = SessionCookieBridge(
            cookie_store or FileCookieStore(self.config.cookies_dir),
            challenge_cookies or HCaptchaCookieProvider(self.config.hcaptcha_accessibility_url),
        )
        self.portal = portal or ScreencastPortal(
            host=self.config.portal_host,
            port=self.config.portal_port,
            frame_interval_ms=self.config.portal_frame_interval_ms,
        )
        self.tunnel = tunnel if tunnel is not None else build_tunnel(self.config.portal_public_url)
        self.notifier = notifier or build_notifier(self.config.notification_webhook_url)
        self.diagnostics = diagnostics or DiagnosticsSink()
        self.session_factory = session_factory or self._launch

    async def _launch(self) -> BrowserSession:
        return await launch_session(self.config.headless, self.config.browser_launch_attempts)

    async def purchase(self, target: PurchaseTarget) -> Attempt:
        """
        Run one attempt end to end.

        Returns:
            The finished Attempt (state COMPLETED)

        Raises:
            The original PurchaseError when neither the flow nor a human
            could complete the purchase
        """
        self.log.debug(f"Purchasing {target.describe()}")
        session = await self.session_factory()
        attempt = Attempt(identity=self.identity, target=target, session=session)

        escalation = EscalationPortal(
            identity=self.identity,
            provider=self.portal,
            notifier=self.notifier,
            notification_timeout_ms=self.config.challenge_notification_timeout_ms,
            idle_timeout_ms=self.config.challenge_idle_timeout_ms,
            tunnel=self.tunnel,
            attempt_logger=self.log,
        )
        controller = PurchaseFlowController(attempt, self.config, self.bridge, escalation, attempt_logger=self.log)
        recovery = ErrorRecoveryManager(self.config, self.bridge, escalation, self.diagnostics, attempt_logger=self.log)

        try:
            try:
                cookies = await self.bridge.seed(self.identity)
                await self.bridge.inject(session, cookies)
                await controller.run()
            except Exception as error:
                await recovery.recover(attempt, error)
        finally:
            try:
                await escalation.shutdown(session)
            finally:
                await session.close()
                self.log.debug("Browser closed")
        return attempt


async def purchase(identity: str, target: PurchaseTarget, config: Optional[PurchaseConfig] = None,
                   **collaborators) -> Attempt:
    """Purchase `target` for `identity`; raises the original error on failure"""
    return await StorefrontPurchaser(identity, config, **collaborators).purchase(target)
