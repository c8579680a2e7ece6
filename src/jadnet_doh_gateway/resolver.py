"""Upstream resolver transport over TCP (length-prefixed DNS)."""
import asyncio
import struct
import time
from dnslib import DNSRecord
from .config import logger, GatewayConfig
from .errors import (
    ConnectionFailed,
    MalformedResponse,
    ReadFailed,
    UpstreamTimeout,
    WriteFailed,
)


class UpstreamResolver:
    """
    Performs one query/response round trip per call against a single
    upstream resolver.

    A new connection is opened for every call and closed before returning,
    whatever the outcome. Connect, write and read are each bounded by their
    own timeout, so a call may take up to roughly three times ``timeout_ms``.
    """

    def __init__(self, host: str, port: int, timeout_ms: int):
        """
        Initialize the resolver transport.

        Args:
            host: Upstream resolver host or IP
            port: Upstream resolver TCP port
            timeout_ms: Timeout applied to each of connect, write and read
        """
        self.host = host
        self.port = port
        self.timeout_ms = timeout_ms

    @classmethod
    def from_config(cls, config: GatewayConfig) -> 'UpstreamResolver':
        return cls(config.upstream_host, config.upstream_port, config.timeout_ms)

    @property
    def timeout(self) -> float:
        return self.timeout_ms / 1000.0

    async def resolve(self, query: DNSRecord) -> DNSRecord:
        """
        Send ``query`` upstream and return the parsed answer.

        Raises:
            UpstreamError: on connect, write or read failure, timeout, or an
                answer that cannot be parsed
        """
        reader, writer = await self._connect()
        try:
            await self._write(writer, query)
            response = await self._read(reader)
        finally:
            writer.close()
            try:
                await asyncio.wait_for(writer.wait_closed(), self.timeout)
            except asyncio.TimeoutError:
                # close() waits for unflushed data; drop it instead
                logger.warning(f"Timed out closing connection to {self.host}:{self.port}, aborting")
                writer.transport.abort()
            except OSError as e:
                logger.debug(f"Error closing connection to {self.host}:{self.port}: {e}")

        if response.header.id != query.header.id:
            logger.warning(
                f"Upstream {self.host}:{self.port} answered id={response.header.id} "
                f"for query id={query.header.id}"
            )
        return response

    async def _connect(self):
        start_time = time.time()
        try:
            return await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port), self.timeout
            )
        except asyncio.TimeoutError as e:
            raise ConnectionFailed(
                f"Timed out connecting to {self.host}:{self.port} "
                f"after {time.time() - start_time:.3f}s"
            ) from e
        except OSError as e:
            raise ConnectionFailed(f"Failed starting resolver connection: {e}") from e

    async def _write(self, writer: asyncio.StreamWriter, query: DNSRecord):
        try:
            data = query.pack()
        except Exception as e:
            raise WriteFailed(f"Failed packing query: {e}") from e

        try:
            writer.write(struct.pack("!H", len(data)) + data)
            await asyncio.wait_for(writer.drain(), self.timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamTimeout(f"Timed out writing query to {self.host}:{self.port}") from e
        except OSError as e:
            raise WriteFailed(f"Failed writing query to {self.host}:{self.port}: {e}") from e

    async def _read(self, reader: asyncio.StreamReader) -> DNSRecord:
        try:
            data = await asyncio.wait_for(self._read_frame(reader), self.timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamTimeout(f"Timed out reading answer from {self.host}:{self.port}") from e
        except asyncio.IncompleteReadError as e:
            if e.partial:
                raise MalformedResponse(
                    f"Truncated answer from {self.host}:{self.port} "
                    f"({len(e.partial)} of {e.expected} bytes)"
                ) from e
            raise ReadFailed(f"Connection to {self.host}:{self.port} closed before answer") from e
        except OSError as e:
            raise ReadFailed(f"Failed reading answer from {self.host}:{self.port}: {e}") from e

        try:
            return DNSRecord.parse(data)
        except Exception as e:
            raise MalformedResponse(f"Failed to unpack answer: {e}") from e

    @staticmethod
    async def _read_frame(reader: asyncio.StreamReader) -> bytes:
        prefix = await reader.readexactly(2)
        (length,) = struct.unpack("!H", prefix)
        try:
            return await reader.readexactly(length)
        except asyncio.IncompleteReadError as e:
            # the length prefix already arrived, so anything short is truncation
            raise asyncio.IncompleteReadError(prefix + e.partial, length + 2) from e
