import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

from fastapi import WebSocket

from logging_config import get_logger

logger = get_logger(__name__)

_STOP = None


@dataclass
class Outbound:
    """One server -> client message with its recipients already resolved."""

    event: str
    data: Any
    recipients: List[str] = field(default_factory=list)

    def frame(self) -> str:
        return json.dumps({"event": self.event, "data": self.data})


class ConnectionManager:
    """Tracks live websockets by connection id and fans messages out to them.

    deliver() only enqueues, it never awaits. Each connection has its own
    outgoing queue drained by run_writer(), so frames reach a client in the
    order the room state changed.
    """

    def __init__(self):
        self.connections: Dict[str, WebSocket] = {}
        self.queues: Dict[str, asyncio.Queue] = {}

    def register(self, connection_id: str, websocket: WebSocket):
        self.connections[connection_id] = websocket
        self.queues[connection_id] = asyncio.Queue()
        logger.debug(f"Registered connection {connection_id} (live connections: {len(self.connections)})")

    def unregister(self, connection_id: str):
        self.connections.pop(connection_id, None)
        queue = self.queues.pop(connection_id, None)
        if queue is not None:
            queue.put_nowait(_STOP)
            logger.debug(f"Unregistered connection {connection_id} (live connections: {len(self.connections)})")

    def deliver(self, outbound: Outbound):
        if not outbound.recipients:
            return
        text = outbound.frame()
        count = 0
        for conn_id in outbound.recipients:
            queue = self.queues.get(conn_id)
            if queue is not None:
                queue.put_nowait(text)
                count += 1
        logger.debug(f"Queued {outbound.event} for {count} connections")

    def deliver_all(self, outbounds: List[Outbound]):
        for outbound in outbounds:
            self.deliver(outbound)

    async def run_writer(self, connection_id: str):
        """Send queued frames for one connection until it is unregistered."""
        queue = self.queues.get(connection_id)
        websocket = self.connections.get(connection_id)
        if queue is None or websocket is None:
            return
        while True:
            text = await queue.get()
            try:
                if text is _STOP:
                    return
                await websocket.send_text(text)
            except Exception as e:
                # Connection is probably closed; its receive loop runs the disconnect path
                logger.warning(f"Error sending to connection {connection_id}: {e}")
                self.unregister(connection_id)
                return
            finally:
                queue.task_done()
