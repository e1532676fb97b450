"""
PushTransport con un conector falso: estados, identify y reconexión.
"""

import asyncio

from notification_client.infra.push_transport import ConnectionState, PushTransport
from tests.conftest import FakeConnector, record_payload, wait_until


async def test_connect_reaches_connected(transport, connector):
    states = []
    transport.on_state_change(states.append)

    handle = await transport.connect()
    await handle.wait_connected(timeout=1)

    assert handle.connected
    assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]
    assert connector.urls == ["ws://testserver/ws/notifications"]


async def test_identify_before_connect_is_queued(transport, connector):
    await transport.identify("alice")
    assert connector.attempts == 0

    handle = await transport.connect()
    await handle.wait_connected(timeout=1)
    await wait_until(lambda: connector.socket.sent)

    assert connector.socket.sent == [{"event": "identify", "data": "alice"}]


async def test_identify_while_connected_is_sent_now(transport, connector):
    handle = await transport.connect()
    await handle.wait_connected(timeout=1)

    await transport.identify("bob")

    assert connector.socket.sent == [{"event": "identify", "data": "bob"}]


async def test_identify_none_drops_binding(transport, connector):
    handle = await transport.connect()
    await handle.wait_connected(timeout=1)
    await transport.identify("alice")

    await transport.identify(None)

    assert transport.identity is None
    assert connector.socket.sent == [{"event": "identify", "data": "alice"}]


async def test_identify_resent_after_reconnect(transport, connector):
    states = []
    transport.on_state_change(states.append)
    await transport.identify("alice")
    handle = await transport.connect()
    await handle.wait_connected(timeout=1)
    first = connector.socket

    first.drop()
    await wait_until(lambda: len(connector.sockets) == 2 and transport.state == ConnectionState.CONNECTED)
    await wait_until(lambda: connector.socket.sent)

    assert first.sent == [{"event": "identify", "data": "alice"}]
    assert connector.socket.sent == [{"event": "identify", "data": "alice"}]
    assert states == [
        ConnectionState.CONNECTING,
        ConnectionState.CONNECTED,
        ConnectionState.DISCONNECTED,
        ConnectionState.CONNECTING,
        ConnectionState.CONNECTED,
    ]


async def test_retries_until_server_accepts():
    connector = FakeConnector(failures=2)
    transport = PushTransport("ws://testserver/ws", connector=connector, backoff=0.01)
    try:
        handle = await transport.connect()
        await handle.wait_connected(timeout=1)
    finally:
        await transport.disconnect()

    assert connector.attempts == 3


async def test_notifications_delivered_once_per_message(transport, connector):
    received = []
    transport.on_notification(received.append)
    handle = await transport.connect()
    await handle.wait_connected(timeout=1)

    payload = record_payload("n1")
    connector.socket.push("new_notification", payload)
    connector.socket.push("new_notification", payload)
    await wait_until(lambda: len(received) == 2)

    # sin deduplicar: eso lo hace el Reconciler
    assert received == [payload, payload]


async def test_async_handlers_are_awaited(transport, connector):
    received = []

    async def handler(data):
        await asyncio.sleep(0)
        received.append(data["_id"])

    transport.on_notification(handler)
    handle = await transport.connect()
    await handle.wait_connected(timeout=1)

    connector.socket.push("new_notification", record_payload("n1"))
    await wait_until(lambda: received == ["n1"])


async def test_malformed_and_unknown_messages_are_dropped(transport, connector):
    received = []
    transport.on_notification(received.append)
    handle = await transport.connect()
    await handle.wait_connected(timeout=1)

    connector.socket.push_raw("not json at all")
    connector.socket.push_raw('{"data": 1}')
    connector.socket.push("typing", {"user": "bob"})
    connector.socket.push("new_notification", record_payload("n2"))
    await wait_until(lambda: received)

    assert [p["_id"] for p in received] == ["n2"]
    assert transport.state == ConnectionState.CONNECTED


async def test_failing_handler_does_not_stop_loop(transport, connector):
    received = []

    def broken(_):
        raise RuntimeError("boom")

    transport.on_notification(broken)
    transport.on_notification(received.append)
    handle = await transport.connect()
    await handle.wait_connected(timeout=1)

    connector.socket.push("new_notification", record_payload("n1"))
    connector.socket.push("new_notification", record_payload("n2"))
    await wait_until(lambda: len(received) == 2)


async def test_disconnect_is_terminal(transport, connector):
    handle = await transport.connect()
    await handle.wait_connected(timeout=1)

    await transport.disconnect()
    await asyncio.sleep(0.05)

    assert transport.state == ConnectionState.DISCONNECTED
    assert connector.attempts == 1
    assert connector.socket.closed
