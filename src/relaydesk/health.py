from __future__ import annotations

import anyio
from anyio.abc import SocketAttribute, SocketStream, TaskStatus

from .logging import get_logger

logger = get_logger(__name__)

RESPONSE = (
    b"HTTP/1.1 200 OK\r\n"
    b"content-type: text/plain\r\n"
    b"content-length: 3\r\n"
    b"connection: close\r\n"
    b"\r\n"
    b"OK\n"
)


async def _handle(stream: SocketStream) -> None:
    async with stream:
        try:
            with anyio.fail_after(5):
                await stream.receive(4096)
                await stream.send(RESPONSE)
        except (TimeoutError, anyio.EndOfStream, anyio.BrokenResourceError):
            return


async def serve_health(
    port: int,
    *,
    host: str = "0.0.0.0",
    task_status: TaskStatus[int] = anyio.TASK_STATUS_IGNORED,
) -> None:
    """Answer every connection with `200 OK` until cancelled."""
    listener = await anyio.create_tcp_listener(local_host=host, local_port=port)
    bound_port = listener.extra(SocketAttribute.local_port)
    logger.info("health.listening", port=bound_port)
    task_status.started(bound_port)
    async with listener:
        await listener.serve(_handle)
