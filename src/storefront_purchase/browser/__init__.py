from .session import BrowserSession, PlaywrightSession, launch_session
