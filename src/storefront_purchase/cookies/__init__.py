from .bridge import SessionCookieBridge
from .hcaptcha import ChallengeCookieProvider, HCaptchaCookieProvider, NoChallengeCookies
from .models import CookieRecord, CookieSet
from .store import CookieStore, FileCookieStore
