"""Per-session state for the web host.

Each session id maps to one UploadSessionManager bound to an in-memory
ComposerHost (TextBuffer document + host command channel), plus the websocket
connections that follow it.

Key features:
    - Sessions created on first use and torn down on close
    - Every host notification broadcast to the session's websockets
    - Error alerts pushed to websockets as {"type": "alert", "message": ...}
    - Concurrent broadcasting with asyncio.gather()
    - Automatic dead connection cleanup

Thread Safety:
    This implementation is designed for async/await usage with a single event loop.
    It is NOT thread-safe for concurrent access from multiple threads.
"""
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Set

from fastapi import WebSocket

from ..config import AppConfig, get_config
from ..document import TextBuffer
from ..events import HostEvent, HostNotification
from ..reporting import LoggingPresenter
from ..transport import Transport
from .host import ComposerHost
from .manager import UploadSessionManager

logger = logging.getLogger(__name__)


class BroadcastPresenter(LoggingPresenter):
    """Logs alerts and pushes them to the session's websockets."""

    def __init__(self, registry: "SessionRegistry", session_id: str) -> None:
        self.registry = registry
        self.session_id = session_id
        self.alerts: List[str] = []

    def alert(self, message: str) -> None:
        super().alert(message)
        self.alerts.append(message)
        self.registry.schedule_broadcast({"type": "alert", "message": message}, self.session_id)


class SessionRegistry:
    """Upload sessions and websocket listeners keyed by session id."""

    def __init__(
        self,
        transport_factory: Callable[[], Transport],
        config: Optional[AppConfig] = None,
    ) -> None:
        self.transport_factory = transport_factory
        self.config = config or get_config()

        self.sessions: Dict[str, UploadSessionManager] = {}
        self.hosts: Dict[str, ComposerHost] = {}
        self.active_connections: Dict[str, List[WebSocket]] = {}

        # Keeps scheduled broadcast tasks alive until they finish
        self._pending: Set[asyncio.Task] = set()

    # =========================================================================
    # Sessions
    # =========================================================================

    def get(self, session_id: str) -> Optional[UploadSessionManager]:
        return self.sessions.get(session_id)

    def get_or_create(self, session_id: str) -> UploadSessionManager:
        session = self.sessions.get(session_id)
        if session is not None:
            return session

        session = UploadSessionManager.from_config(
            self.config,
            self.transport_factory,
            presenter=BroadcastPresenter(self, session_id),
            session_id=session_id,
        )
        host = ComposerHost(buffer=TextBuffer())
        session.setup(host)
        for kind in HostEvent:
            session.notifications.on(kind, self._forwarder(session_id))

        self.sessions[session_id] = session
        self.hosts[session_id] = host
        logger.info(f"Created upload session {session_id}")
        return session

    def get_host(self, session_id: str) -> Optional[ComposerHost]:
        return self.hosts.get(session_id)

    def close(self, session_id: str) -> bool:
        session = self.sessions.pop(session_id, None)
        self.hosts.pop(session_id, None)
        if session is None:
            return False
        session.teardown()
        session.notifications.clear()
        logger.info(f"Closed upload session {session_id}")
        return True

    async def close_all(self) -> None:
        for session_id in list(self.sessions):
            self.close(session_id)
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _forwarder(self, session_id: str):
        def forward(notification: HostNotification):
            return self.broadcast(
                {"type": "notification", **notification.model_dump(mode="json")},
                session_id,
            )
        return forward

    # =========================================================================
    # Websockets
    # =========================================================================

    async def connect(self, websocket: WebSocket, session_id: str) -> None:
        await websocket.accept()
        self.active_connections.setdefault(session_id, []).append(websocket)
        logger.info(f"[WS] Listener joined upload session {session_id}")

    def disconnect(self, websocket: WebSocket, session_id: str) -> None:
        connections = self.active_connections.get(session_id, [])
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self.active_connections.pop(session_id, None)

    def get_listener_count(self, session_id: str) -> int:
        return len(self.active_connections.get(session_id, []))

    def schedule_broadcast(self, message: dict, session_id: str) -> None:
        """Broadcast from synchronous code running on the event loop."""
        if not self.active_connections.get(session_id):
            return
        task = asyncio.ensure_future(self.broadcast(message, session_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def broadcast(self, message: dict, session_id: str) -> None:
        """Broadcast a message to every listener of a session concurrently.

        Failed connections are removed from the session.
        """
        connections = list(self.active_connections.get(session_id, []))
        if not connections:
            return

        results = await asyncio.gather(
            *[self._safe_send(conn, message) for conn in connections],
            return_exceptions=True
        )

        for conn, success in zip(connections, results):
            if success is False:
                self.disconnect(conn, session_id)
                logger.debug(f"Removed dead connection from upload session {session_id}")

    async def _safe_send(self, connection: WebSocket, message: dict) -> bool:
        try:
            await connection.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Failed to send to connection: {e}")
            return False
