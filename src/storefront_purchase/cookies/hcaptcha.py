"""
Auxiliary cookies for the hCaptcha challenge provider

hCaptcha hands out an accessibility cookie through a personal sign-up link.
Carrying that cookie into the browser makes challenges far less likely.
"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

import aiohttp

from ..core.constants import HCAPTCHA_COOKIE_DOMAIN
from .models import CookieRecord, CookieSet

logger = logging.getLogger(__name__)


class ChallengeCookieProvider(ABC):
    """Source of opaque cookies merged into every seeded session"""

    @abstractmethod
    async def fetch(self) -> CookieSet:
        pass


class NoChallengeCookies(ChallengeCookieProvider):
    async def fetch(self) -> CookieSet:
        return CookieSet()


class HCaptchaCookieProvider(ChallengeCookieProvider):
    """Fetches the hCaptcha accessibility cookie, cached until it expires"""

    def __init__(self, accessibility_url: Optional[str], request_timeout: float = 30.0):
        self.accessibility_url = accessibility_url
        self.request_timeout = request_timeout
        self._cached: Optional[CookieSet] = None
        self._expires_at: float = 0

    async def fetch(self) -> CookieSet:
        if not self.accessibility_url:
            return CookieSet()

        if self._cached is not None and time.time() < self._expires_at:
            logger.debug("Using cached hCaptcha cookies")
            return self._cached

        logger.debug("Fetching hCaptcha accessibility cookies")
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(self.accessibility_url) as response:
                response.raise_for_status()
                cookies = self._parse_cookies(response.cookies)

        self._cached = cookies
        self._expires_at = min(
            (c.expires for c in cookies if c.expires > 0),
            default=time.time() + 24 * 60 * 60,
        )
        logger.info(f"Fetched {len(cookies)} hCaptcha cookies")
        return cookies

    @staticmethod
    def _parse_cookies(jar) -> CookieSet:
        cookies = CookieSet()
        now = time.time()
        for name, morsel in jar.items():
            expires = -1.0
            if morsel["max-age"]:
                expires = now + int(morsel["max-age"])
            cookies.add(CookieRecord(
                name=name,
                value=morsel.value,
                domain=morsel["domain"] or HCAPTCHA_COOKIE_DOMAIN,
                path=morsel["path"] or "/",
                expires=expires,
                httpOnly=bool(morsel["httponly"]),
                secure=bool(morsel["secure"]),
                sameSite=morsel["samesite"] if morsel["samesite"] in ("Strict", "Lax", "None") else None,
            ))
        return cookies
