import asyncio
import json
import uuid

import pytest

from app.realtime.connection_manager import ConnectionManager

pytestmark = pytest.mark.unit


class FakeSocket:
    def __init__(self, fail=False):
        self.accepted = False
        self.sent = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_text(self, message):
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(json.loads(message))


def test_publish_reaches_every_employee():
    manager = ConnectionManager()
    first, second = FakeSocket(), FakeSocket()

    async def main():
        await manager.connect(uuid.uuid4(), first)
        await manager.connect(uuid.uuid4(), second)
        await manager.publish("task_deleted", {"task_id": "abc"})

    asyncio.run(main())

    assert first.accepted and second.accepted
    for socket in (first, second):
        assert socket.sent[0]["type"] == "task_deleted"
        assert socket.sent[0]["data"] == {"task_id": "abc"}


def test_send_to_employee_is_targeted():
    manager = ConnectionManager()
    alice, bob = uuid.uuid4(), uuid.uuid4()
    alice_socket, bob_socket = FakeSocket(), FakeSocket()

    async def main():
        await manager.connect(alice, alice_socket)
        await manager.connect(bob, bob_socket)
        await manager.send_to_employee(alice, "notification", {"title": "hi"})

    asyncio.run(main())

    assert [m["type"] for m in alice_socket.sent] == ["notification"]
    assert bob_socket.sent == []


def test_dead_sockets_are_dropped_without_raising():
    manager = ConnectionManager()
    employee = uuid.uuid4()
    healthy, broken = FakeSocket(), FakeSocket(fail=True)

    async def main():
        await manager.connect(employee, healthy)
        await manager.connect(employee, broken)
        await manager.publish("task_updated", {"task": {"id": "1"}})

    asyncio.run(main())

    assert manager.connection_count(employee) == 1
    assert len(healthy.sent) == 1


def test_disconnect_forgets_employee():
    manager = ConnectionManager()
    employee = uuid.uuid4()
    socket = FakeSocket()

    async def main():
        await manager.connect(employee, socket)
        await manager.disconnect(employee, socket)
        await manager.send_to_employee(employee, "notification", {})

    asyncio.run(main())

    assert manager.connection_count() == 0
    assert socket.sent == []


def test_task_events_reach_only_recipients_and_admins():
    manager = ConnectionManager()
    creator, admin, outsider = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    creator_socket, admin_socket, outsider_socket = FakeSocket(), FakeSocket(), FakeSocket()

    async def main():
        await manager.connect(creator, creator_socket)
        await manager.connect(admin, admin_socket, elevated=True)
        await manager.connect(outsider, outsider_socket)
        await manager.publish("task_updated", {"task": {"id": "1"}}, recipients={creator})

    asyncio.run(main())

    assert [m["type"] for m in creator_socket.sent] == ["task_updated"]
    assert [m["type"] for m in admin_socket.sent] == ["task_updated"]
    assert outsider_socket.sent == []


def test_admin_flag_is_dropped_with_last_socket():
    manager = ConnectionManager()
    admin = uuid.uuid4()
    first, second = FakeSocket(), FakeSocket()

    async def main():
        await manager.connect(admin, first, elevated=True)
        await manager.disconnect(admin, first)
        await manager.connect(admin, second)
        await manager.publish("task_deleted", {"task_id": "1"}, recipients=set())

    asyncio.run(main())

    assert second.sent == []
