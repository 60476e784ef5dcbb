"""
WebSocket connection management and broadcasting for real-time task events.

Clients connect per employee. Task events go to the employees involved in
the task and to every connected admin; personal notifications go only to
the recipient's sockets.
"""

import asyncio
import json
import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set
from uuid import UUID

from fastapi import WebSocket, WebSocketDisconnect

from app.utils.time import utc_now_iso

logger = logging.getLogger(__name__)


class EventPublisher(Protocol):
    """Fire-and-forget sink for lifecycle events."""

    async def publish(
        self,
        event_kind: str,
        payload: Dict[str, Any],
        recipients: Optional[Iterable[UUID]] = None,
    ) -> None:
        ...


class ConnectionManager:
    """Manages WebSocket connections keyed by employee id."""

    def __init__(self) -> None:
        self._connections: Dict[str, List[WebSocket]] = defaultdict(list)
        self._elevated: Set[str] = set()
        self._connection_lock = asyncio.Lock()

    async def connect(self, employee_id: UUID, websocket: WebSocket, elevated: bool = False) -> None:
        """Accept ``websocket``. Elevated employees receive every task event."""
        await websocket.accept()
        key = str(employee_id)
        async with self._connection_lock:
            self._connections[key].append(websocket)
            if elevated:
                self._elevated.add(key)
            logger.info(
                "WebSocket client connected for employee %s (%d open)",
                key,
                len(self._connections[key]),
            )

    async def disconnect(self, employee_id: UUID, websocket: WebSocket) -> None:
        key = str(employee_id)
        async with self._connection_lock:
            sockets = self._connections.get(key)
            if not sockets:
                return
            try:
                sockets.remove(websocket)
            except ValueError:
                logger.warning("Attempted to remove unknown WebSocket for employee %s", key)
            if not sockets:
                del self._connections[key]
                self._elevated.discard(key)
        logger.info("WebSocket client disconnected for employee %s", key)

    def connection_count(self, employee_id: Optional[UUID] = None) -> int:
        if employee_id is not None:
            return len(self._connections.get(str(employee_id), []))
        return sum(len(sockets) for sockets in self._connections.values())

    async def publish(
        self,
        event_kind: str,
        payload: Dict[str, Any],
        recipients: Optional[Iterable[UUID]] = None,
    ) -> None:
        """
        Send an event to ``recipients`` and every connected admin.

        With no recipients given the event goes to every connected client.
        """
        async with self._connection_lock:
            if recipients is None:
                keys = set(self._connections)
            else:
                keys = {str(r) for r in recipients} | self._elevated
            targets = [(key, ws) for key in keys for ws in self._connections.get(key, [])]
        await self._send(targets, self._envelope(event_kind, payload))

    async def send_to_employee(self, employee_id: UUID, event_kind: str, payload: Dict[str, Any]) -> None:
        key = str(employee_id)
        async with self._connection_lock:
            targets = [(key, ws) for ws in self._connections.get(key, [])]
        if not targets:
            logger.debug("No WebSocket connections for employee %s", key)
            return
        await self._send(targets, self._envelope(event_kind, payload))

    def _envelope(self, event_kind: str, payload: Dict[str, Any]) -> Optional[str]:
        try:
            return json.dumps(
                {"type": event_kind, "data": payload, "timestamp": utc_now_iso()},
                default=str,
            )
        except (TypeError, ValueError) as e:
            logger.error("Failed to serialize %s event for WebSocket broadcast: %s", event_kind, e)
            return None

    async def _send(self, targets: List[tuple], message: Optional[str]) -> None:
        if message is None or not targets:
            return

        disconnected: List[tuple] = []
        for key, websocket in targets:
            try:
                await websocket.send_text(message)
            except WebSocketDisconnect:
                disconnected.append((key, websocket))
            except Exception as e:  # noqa: BLE001
                logger.error("Error broadcasting to WebSocket client %s: %s", key, e)
                disconnected.append((key, websocket))

        # Clean up disconnected clients
        for key, websocket in disconnected:
            await self.disconnect(UUID(key), websocket)
