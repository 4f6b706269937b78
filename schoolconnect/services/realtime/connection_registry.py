# schoolconnect/services/realtime/connection_registry.py
from typing import Any, Callable, Dict, List, Optional, Set
from uuid import UUID
from fastapi import WebSocket
import asyncio
import logging
import time

logger = logging.getLogger(__name__)

SHUTDOWN_CLOSE_CODE = 1001
HEARTBEAT_TIMEOUT_CLOSE_CODE = 1011


class Connection:
    def __init__(self, websocket: WebSocket, user_id: UUID, connected_at: float):
        self.websocket = websocket
        self.user_id = user_id
        self.last_heartbeat_at = connected_at

    def __repr__(self) -> str:
        return f"Connection(user_id={self.user_id})"


class ConnectionRegistry:
    """Live WebSocket sessions per user, with heartbeat-based liveness.

    A user may hold several connections at once (one per device); sends go to all of them.
    """

    def __init__(
        self,
        heartbeat_interval: float = 30.0,
        heartbeat_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.heartbeat_interval = heartbeat_interval
        self.heartbeat_timeout = heartbeat_timeout
        self._clock = clock
        # user_id -> set of Connection
        self.active_connections: Dict[UUID, Set[Connection]] = {}
        self._lock = asyncio.Lock()
        self._heartbeat_task: Optional[asyncio.Task] = None

    async def register(self, user_id: UUID, websocket: WebSocket) -> Connection:
        conn = Connection(websocket, user_id, self._clock())
        async with self._lock:
            self.active_connections.setdefault(user_id, set()).add(conn)
        logger.info(f"User {user_id} connected ({self.connection_count(user_id)} live connection(s))")
        return conn

    async def unregister(self, conn: Connection) -> bool:
        async with self._lock:
            return self._discard(conn)

    def mark_alive(self, conn: Connection):
        conn.last_heartbeat_at = self._clock()

    def is_user_connected(self, user_id: UUID) -> bool:
        return bool(self.active_connections.get(user_id))

    def connection_count(self, user_id: Optional[UUID] = None) -> int:
        if user_id is not None:
            return len(self.active_connections.get(user_id, ()))
        return sum(len(conns) for conns in self.active_connections.values())

    async def send_if_connected(self, user_id: UUID, payload: Dict[str, Any]) -> bool:
        """Deliver to every live connection of the user. True if at least one send succeeded."""
        async with self._lock:
            conns = list(self.active_connections.get(user_id, ()))
        if not conns:
            return False

        delivered = False
        for conn in conns:
            try:
                await conn.websocket.send_json(payload)
                delivered = True
            except Exception as e:
                logger.warning(f"Live send to user {user_id} failed, dropping connection: {e}")
                await self.unregister(conn)
        return delivered

    async def heartbeat_tick(self) -> List[Connection]:
        """Probe every connection; close the ones silent past the timeout. Returns the dropped ones."""
        now = self._clock()
        async with self._lock:
            conns = [conn for user_conns in self.active_connections.values() for conn in user_conns]

        dropped: List[Connection] = []
        for conn in conns:
            silence = now - conn.last_heartbeat_at
            if silence > self.heartbeat_timeout:
                logger.warning(f"Client {conn.user_id} heartbeat timeout ({silence:.1f}s). Disconnecting...")
                try:
                    await conn.websocket.close(code=HEARTBEAT_TIMEOUT_CLOSE_CODE)
                except Exception as e:
                    logger.debug(f"Close after heartbeat timeout failed for {conn.user_id}: {e}")
                dropped.append(conn)
                continue
            try:
                await conn.websocket.send_json({
                    "type": "heartbeat",
                    "timestamp": time.time(),
                    "timeout": self.heartbeat_timeout,
                })
            except Exception as e:
                logger.warning(f"Error sending heartbeat to user {conn.user_id}: {e}")
                dropped.append(conn)

        if dropped:
            async with self._lock:
                for conn in dropped:
                    self._discard(conn)
            logger.info(f"Cleaned up {len(dropped)} disconnected clients")
        return dropped

    def start(self):
        if self._heartbeat_task is None or self._heartbeat_task.done():
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
            logger.info(f"Heartbeat mechanism started (interval: {self.heartbeat_interval}s)")

    async def stop(self):
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None
            logger.info("Heartbeat mechanism stopped")

    async def shutdown(self):
        """Stop the heartbeat, tell every client the server is going away, then close and forget them"""
        logger.info("Shutting down connection registry...")
        await self.stop()
        async with self._lock:
            conns = [conn for user_conns in self.active_connections.values() for conn in user_conns]
            self.active_connections.clear()

        for conn in conns:
            try:
                await conn.websocket.send_json({
                    "type": "server_shutdown",
                    "message": "Server is shutting down",
                })
                await conn.websocket.close(code=SHUTDOWN_CLOSE_CODE)
            except Exception as e:
                logger.error(f"Error closing connection for user {conn.user_id}: {e}")
        logger.info(f"Closed {len(conns)} live connection(s)")

    async def _heartbeat_loop(self):
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await self.heartbeat_tick()
            except Exception as e:
                logger.error(f"Heartbeat tick failed: {e}")

    def _discard(self, conn: Connection) -> bool:
        user_conns = self.active_connections.get(conn.user_id)
        if not user_conns or conn not in user_conns:
            return False
        user_conns.discard(conn)
        if not user_conns:
            del self.active_connections[conn.user_id]
        logger.info(f"User {conn.user_id} disconnected")
        return True
