"""
Remote portal contracts and URL tunnelling
"""
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urlsplit, urlunsplit


class PortalProvider(ABC):
    """Opens a remotely reachable live view bound to one browser session"""

    @abstractmethod
    async def open(self, session) -> str:
        """Start the portal and return its URL"""

    @abstractmethod
    async def close(self, session) -> None:
        pass

    @abstractmethod
    def is_open(self, session) -> bool:
        pass


class TunnelProvider(ABC):
    """Rewrites a local portal URL into one reachable from outside"""

    @abstractmethod
    async def expose(self, url: str) -> str:
        pass


class PublicUrlTunnel(TunnelProvider):
    """
    Swaps the portal's local origin for a public one, keeping path and query.
    Used when a reverse proxy or an external tunnel already forwards the port.
    """

    def __init__(self, public_url: str):
        self.public_url = public_url.rstrip("/")

    async def expose(self, url: str) -> str:
        public = urlsplit(self.public_url)
        local = urlsplit(url)
        path = (public.path.rstrip("/") + local.path) or "/"
        return urlunsplit((public.scheme, public.netloc, path, local.query, local.fragment))


def build_tunnel(public_url: Optional[str]) -> Optional[TunnelProvider]:
    return PublicUrlTunnel(public_url) if public_url else None
