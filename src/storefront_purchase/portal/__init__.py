from .provider import PortalProvider, PublicUrlTunnel, TunnelProvider, build_tunnel
from .screencast import ScreencastPortal
