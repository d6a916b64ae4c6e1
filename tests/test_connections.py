"""Tests for ConnectionManager queueing and per-connection writers."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from connections import ConnectionManager, Outbound


def make_socket(fail=False):
    ws = AsyncMock()
    if fail:
        ws.send_text.side_effect = RuntimeError("socket closed")
    return ws


def sent_events(ws):
    return [json.loads(call.args[0])["event"] for call in ws.send_text.await_args_list]


def test_frame_shape():
    outbound = Outbound("userJoined", ["alice"], ["c1"])
    assert json.loads(outbound.frame()) == {"event": "userJoined", "data": ["alice"]}


@pytest.mark.asyncio
async def test_deliver_queues_without_sending():
    manager = ConnectionManager()
    ws = make_socket()
    manager.register("a", ws)

    manager.deliver(Outbound("roomInfo", {}, ["a"]))

    assert manager.queues["a"].qsize() == 1
    ws.send_text.assert_not_awaited()


@pytest.mark.asyncio
async def test_writer_sends_only_to_recipients():
    manager = ConnectionManager()
    sockets = {"a": make_socket(), "b": make_socket(), "c": make_socket()}
    writers = []
    for conn_id, ws in sockets.items():
        manager.register(conn_id, ws)
        writers.append(asyncio.create_task(manager.run_writer(conn_id)))

    manager.deliver(Outbound("codeUpdate", {"fileName": "x.js"}, ["a", "c", "unknown"]))
    for conn_id in sockets:
        await manager.queues[conn_id].join()

    sockets["a"].send_text.assert_awaited_once()
    sockets["c"].send_text.assert_awaited_once()
    sockets["b"].send_text.assert_not_awaited()

    for conn_id in sockets:
        manager.unregister(conn_id)
    await asyncio.gather(*writers)


@pytest.mark.asyncio
async def test_writer_preserves_order():
    manager = ConnectionManager()
    ws = make_socket()
    manager.register("a", ws)
    writer = asyncio.create_task(manager.run_writer("a"))

    manager.deliver_all([
        Outbound("userJoined", ["alice"], ["a"]),
        Outbound("fileSystemSync", {}, ["a"]),
        Outbound("codeUpdate", {}, ["a"]),
    ])
    await manager.queues["a"].join()

    assert sent_events(ws) == ["userJoined", "fileSystemSync", "codeUpdate"]
    manager.unregister("a")
    await writer


@pytest.mark.asyncio
async def test_failed_send_drops_connection_but_others_still_receive():
    manager = ConnectionManager()
    good, bad = make_socket(), make_socket(fail=True)
    manager.register("good", good)
    manager.register("bad", bad)
    bad_writer = asyncio.create_task(manager.run_writer("bad"))
    good_writer = asyncio.create_task(manager.run_writer("good"))

    manager.deliver(Outbound("fileSystemSync", {}, ["good", "bad"]))
    await bad_writer
    await manager.queues["good"].join()

    good.send_text.assert_awaited_once()
    assert "bad" not in manager.connections
    assert "good" in manager.connections

    manager.unregister("good")
    await good_writer


@pytest.mark.asyncio
async def test_unregister_stops_writer_and_is_idempotent():
    manager = ConnectionManager()
    manager.register("a", make_socket())
    writer = asyncio.create_task(manager.run_writer("a"))

    manager.unregister("a")
    manager.unregister("a")
    await asyncio.wait_for(writer, timeout=1)

    manager.deliver(Outbound("roomInfo", {}, ["a"]))
    assert manager.connections == {}
    assert manager.queues == {}
