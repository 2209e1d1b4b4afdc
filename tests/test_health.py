from functools import partial

import anyio
import pytest

from relaydesk.health import serve_health


@pytest.mark.anyio
async def test_health_answers_ok() -> None:
    async with anyio.create_task_group() as tg:
        port = await tg.start(partial(serve_health, 0, host="127.0.0.1"))
        async with await anyio.connect_tcp("127.0.0.1", port) as stream:
            await stream.send(b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")
            chunks = []
            try:
                while True:
                    chunks.append(await stream.receive())
            except anyio.EndOfStream:
                pass
        tg.cancel_scope.cancel()

    response = b"".join(chunks)
    assert response.startswith(b"HTTP/1.1 200 OK")
    assert response.endswith(b"OK\n")
