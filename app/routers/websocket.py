"""
WebSocket endpoint for real-time task and notification events.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from app.core.permissions import Roles
from app.repositories.employee_repository import EmployeeRepository

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def events_socket(websocket: WebSocket, employee_id: UUID = Query(...)):
    """
    Stream events to one employee.

    Clients may send ``ping`` and get ``pong`` back; other input is ignored.
    """
    async with websocket.app.state.session_factory() as session:
        employee = await EmployeeRepository(session).get_by_id(employee_id)
    if employee is None or not employee.is_active:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager = websocket.app.state.connection_manager
    await manager.connect(employee_id, websocket, elevated=employee.role == Roles.ADMIN)
    try:
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.info("WebSocket closed for employee %s", employee_id)
    finally:
        await manager.disconnect(employee_id, websocket)
