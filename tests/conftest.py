"""Shared fixtures: an in-process TCP DNS server standing in for the upstream."""
import asyncio
import socket
import struct
import pytest
import pytest_asyncio
from dnslib import DNSRecord, QTYPE, RR, A


async def read_frame(reader):
    prefix = await reader.readexactly(2)
    (length,) = struct.unpack("!H", prefix)
    return await reader.readexactly(length)


def frame(data: bytes) -> bytes:
    return struct.pack("!H", len(data)) + data


@pytest_asyncio.fixture
async def upstream():
    """
    Factory starting a TCP server on 127.0.0.1 with the given client handler.

    Returns the listening port. Handlers should return once the client
    closes its side so the server can shut down cleanly.
    """
    servers = []

    async def start(handler):
        async def on_client(reader, writer):
            try:
                await handler(reader, writer)
            except (asyncio.IncompleteReadError, ConnectionError):
                pass
            finally:
                writer.close()

        server = await asyncio.start_server(on_client, "127.0.0.1", 0)
        servers.append(server)
        return server.sockets[0].getsockname()[1]

    yield start

    for server in servers:
        server.close()
        await server.wait_closed()


@pytest_asyncio.fixture
async def answering_upstream(upstream):
    """Upstream that answers every question with A 93.184.216.34."""
    received = []

    async def handler(reader, writer):
        request = DNSRecord.parse(await read_frame(reader))
        received.append(request)
        reply = request.reply()
        reply.add_answer(RR(str(request.q.qname), QTYPE.A, rdata=A("93.184.216.34"), ttl=300))
        writer.write(frame(reply.pack()))
        await writer.drain()
        await reader.read()

    port = await upstream(handler)
    return port, received


@pytest.fixture
def closed_port():
    """A local TCP port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
