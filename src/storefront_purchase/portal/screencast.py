"""
Screencast Portal - live remote view of a purchase session
Streams page screenshots to a browser over WebSocket and forwards the
viewer's clicks and key presses back into the page
"""
import asyncio
import base64
import logging
import socket
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse

from ..core.errors import StructuralAutomationError
from .provider import PortalProvider

logger = logging.getLogger(__name__)

VIEWER_HTML = """<!doctype html>
<html>
<head>
<meta charset="utf-8">
<title>Purchase portal</title>
<style>
  body { margin: 0; background: #111; color: #eee; font: 13px monospace; }
  #bar { padding: 6px 10px; }
  #screen { display: block; max-width: 100%; cursor: crosshair; outline: none; }
</style>
</head>
<body>
<div id="bar">Connecting...</div>
<img id="screen" tabindex="0" alt="live session">
<script>
  const bar = document.getElementById('bar');
  const screen = document.getElementById('screen');
  const ws = new WebSocket((location.protocol === 'https:' ? 'wss://' : 'ws://') + location.host + location.pathname.replace(/\\/$/, '') + '/ws');
  ws.onopen = () => { bar.textContent = 'Connected - solve the challenge or finish the purchase'; };
  ws.onclose = () => { bar.textContent = 'Portal closed'; };
  ws.onmessage = (msg) => {
    const data = JSON.parse(msg.data);
    if (data.type === 'screenshot') {
      screen.src = data.image;
      bar.textContent = data.url;
    }
  };
  const send = (event) => { if (ws.readyState === 1) ws.send(JSON.stringify(event)); };
  screen.addEventListener('click', (e) => {
    const rect = screen.getBoundingClientRect();
    const scaleX = screen.naturalWidth / rect.width;
    const scaleY = screen.naturalHeight / rect.height;
    send({type: 'click', x: (e.clientX - rect.left) * scaleX, y: (e.clientY - rect.top) * scaleY});
    screen.focus();
  });
  screen.addEventListener('wheel', (e) => { e.preventDefault(); send({type: 'scroll', dx: e.deltaX, dy: e.deltaY}); });
  screen.addEventListener('keydown', (e) => {
    e.preventDefault();
    if (e.key.length === 1) send({type: 'text', text: e.key});
    else send({type: 'key', key: e.key});
  });
</script>
</body>
</html>
"""


async def apply_input_event(page, event: Dict[str, Any]) -> bool:
    """Replay one viewer input event on the page; returns False for unknown events"""
    kind = event.get("type")
    if kind == "click":
        await page.mouse.click(float(event["x"]), float(event["y"]))
    elif kind == "text":
        await page.keyboard.type(str(event["text"]))
    elif kind == "key":
        await page.keyboard.press(str(event["key"]))
    elif kind == "scroll":
        await page.mouse.wheel(float(event.get("dx", 0)), float(event.get("dy", 0)))
    else:
        logger.debug(f"Ignoring portal event: {kind}")
        return False
    return True


async def stream_frames(websocket: WebSocket, page, interval: float):
    """Push a screenshot of the page every `interval` seconds"""
    while True:
        try:
            image = await page.screenshot(type="jpeg", quality=70)
        except Exception as e:
            logger.debug(f"Portal screenshot error: {e}")
            await asyncio.sleep(interval)
            continue

        await websocket.send_json({
            "type": "screenshot",
            "image": f"data:image/jpeg;base64,{base64.b64encode(image).decode('utf-8')}",
            "url": page.url,
            "timestamp": time.time(),
        })
        await asyncio.sleep(interval)


def create_portal_app(page, frame_interval_ms: int = 1000) -> FastAPI:
    app = FastAPI(title="Purchase portal", docs_url=None, redoc_url=None, openapi_url=None)
    interval = frame_interval_ms / 1000

    @app.get("/", response_class=HTMLResponse)
    async def viewer():
        return VIEWER_HTML

    @app.websocket("/ws")
    async def live(websocket: WebSocket):
        await websocket.accept()
        logger.info("Portal viewer connected")
        sender = asyncio.create_task(stream_frames(websocket, page, interval))
        try:
            while True:
                event = await websocket.receive_json()
                try:
                    await apply_input_event(page, event)
                except Exception as e:
                    logger.debug(f"Portal input failed: {e}")
        except WebSocketDisconnect:
            logger.info("Portal viewer disconnected")
        finally:
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)

    return app


@dataclass
class _RunningPortal:
    server: uvicorn.Server
    task: asyncio.Task
    url: str


class ScreencastPortal(PortalProvider):
    """Serves `create_portal_app` with uvicorn inside the running event loop"""

    def __init__(self, host: str = "127.0.0.1", port: int = 3000, frame_interval_ms: int = 1000,
                 startup_timeout: float = 10.0):
        self.host = host
        self.port = port
        self.frame_interval_ms = frame_interval_ms
        self.startup_timeout = startup_timeout
        self._running: Dict[int, _RunningPortal] = {}

    def _bind(self) -> socket.socket:
        """Bind the configured port, or any free port when another attempt already holds it"""
        ports = [self.port, 0] if self.port else [0]
        last_error: Optional[OSError] = None
        for port in ports:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            try:
                sock.bind((self.host, port))
                return sock
            except OSError as e:
                sock.close()
                last_error = e
                logger.warning(f"Portal could not bind {self.host}:{port}: {e}")
        raise StructuralAutomationError(f"Portal could not bind {self.host}: {last_error}") from last_error

    def is_open(self, session) -> bool:
        running = self._running.get(id(session))
        return running is not None and not running.task.done()

    async def open(self, session) -> str:
        if self.is_open(session):
            return self._running[id(session)].url

        sock = self._bind()
        port = sock.getsockname()[1]

        app = create_portal_app(session.page, self.frame_interval_ms)
        config = uvicorn.Config(app, log_level="warning", lifespan="off")
        server = uvicorn.Server(config)
        task = asyncio.create_task(server.serve(sockets=[sock]))

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.startup_timeout
        while not server.started:
            if task.done():
                error: Optional[BaseException] = task.exception()
                raise StructuralAutomationError(f"Portal server stopped during startup: {error}")
            if loop.time() > deadline:
                server.should_exit = True
                raise StructuralAutomationError("Portal server did not start in time")
            await asyncio.sleep(0.05)

        display_host = "localhost" if self.host in ("0.0.0.0", "127.0.0.1") else self.host
        url = f"http://{display_host}:{port}/"
        self._running[id(session)] = _RunningPortal(server=server, task=task, url=url)
        logger.info(f"Portal listening on {url}")
        return url

    async def close(self, session) -> None:
        running = self._running.pop(id(session), None)
        if running is None:
            return
        running.server.should_exit = True
        await running.task
        logger.info("Portal closed")
