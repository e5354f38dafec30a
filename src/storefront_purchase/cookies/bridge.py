"""
SessionCookieBridge

Seeds a live browser session from the persisted jar at attempt start and
snapshots the live cookies back into the jar at attempt end.
"""
import logging
from typing import Dict, Iterable, Union

from .hcaptcha import ChallengeCookieProvider, NoChallengeCookies
from .models import CookieSet
from .store import CookieStore

logger = logging.getLogger(__name__)


class SessionCookieBridge:

    def __init__(self, store: CookieStore, challenge_cookies: ChallengeCookieProvider = None):
        self.store = store
        self.challenge_cookies = challenge_cookies or NoChallengeCookies()

    async def seed(self, identity: str) -> CookieSet:
        """Persisted jar for `identity` merged with the challenge provider's cookies"""
        user_cookies = await self.store.load(identity)
        provider_cookies = await self.challenge_cookies.fetch()
        seeded = user_cookies.merge(provider_cookies)
        logger.debug(
            f"Seeded {len(seeded)} cookies for {identity} "
            f"({len(user_cookies)} stored, {len(provider_cookies)} challenge provider)"
        )
        return seeded

    async def inject(self, session, cookies: CookieSet) -> None:
        if len(cookies):
            await session.add_cookies(cookies.to_browser())

    async def capture(self, identity: str, live_cookies: Union[CookieSet, Iterable[Dict]]) -> None:
        """Overwrite the persisted jar with the full live cookie set"""
        if not isinstance(live_cookies, CookieSet):
            live_cookies = CookieSet.from_browser(live_cookies)
        await self.store.save(identity, live_cookies)

    async def capture_session(self, identity: str, session) -> None:
        logger.debug("Saving new cookies")
        await self.capture(identity, await session.cookies())
