"""Configuration module for jadnet-doh-gateway."""
import os
import logging
from dataclasses import dataclass
from typing import Tuple

# --- Configuration ---
LISTEN_PORT = int(os.getenv('LISTEN_PORT', 8080))
LISTEN_HOST = os.getenv('LISTEN_HOST', '0.0.0.0')

# UPSTREAM_RESOLVER is a single host:port, e.g. 1.1.1.1:53 or [2606:4700::1111]:53
UPSTREAM_RESOLVER = os.getenv('UPSTREAM_RESOLVER', '1.1.1.1:53')
RESOLVER_TIMEOUT_MS = int(os.getenv('RESOLVER_TIMEOUT_MS', 2500))
VERBOSE = os.getenv('VERBOSE', 'true').lower() == 'true'
QUERY_PATH = os.getenv('QUERY_PATH', '/dns-query')
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

DEFAULT_DNS_PORT = 53

# --- Logging Setup ---
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger("doh-gateway")


@dataclass(frozen=True)
class GatewayConfig:
    """Static settings handed to the pipeline when it is built."""
    upstream_host: str
    upstream_port: int = DEFAULT_DNS_PORT
    timeout_ms: int = 2500
    verbose: bool = False
    query_path: str = '/dns-query'

    @property
    def timeout(self) -> float:
        """Per-phase timeout in seconds."""
        return self.timeout_ms / 1000.0

    @property
    def upstream(self) -> str:
        if ':' in self.upstream_host:
            return f"[{self.upstream_host}]:{self.upstream_port}"
        return f"{self.upstream_host}:{self.upstream_port}"


def parse_upstream(value: str) -> Tuple[str, int]:
    """
    Split an upstream address into host and port.

    Accepts ``host``, ``host:port``, ``[v6]`` and ``[v6]:port``. A bare IPv6
    address without brackets is taken as a host with the default port.

    Raises:
        ValueError: if the address is empty or the port is not a valid number
    """
    value = value.strip()
    if not value:
        raise ValueError("Upstream resolver address must not be empty")

    if value.startswith('['):
        host, sep, rest = value[1:].partition(']')
        if not sep or not host:
            raise ValueError(f"Invalid upstream resolver address: {value}")
        port = rest[1:] if rest.startswith(':') else ''
        if rest and not rest.startswith(':'):
            raise ValueError(f"Invalid upstream resolver address: {value}")
    elif value.count(':') == 1:
        host, _, port = value.partition(':')
    else:
        host, port = value, ''

    if not port:
        return host, DEFAULT_DNS_PORT

    port_num = int(port)
    if not 0 < port_num < 65536:
        raise ValueError(f"Upstream resolver port out of range: {port_num}")
    return host, port_num


def load_config() -> GatewayConfig:
    """Build the immutable gateway configuration from the environment."""
    host, port = parse_upstream(UPSTREAM_RESOLVER)
    if RESOLVER_TIMEOUT_MS <= 0:
        raise ValueError("RESOLVER_TIMEOUT_MS must be positive")
    return GatewayConfig(
        upstream_host=host,
        upstream_port=port,
        timeout_ms=RESOLVER_TIMEOUT_MS,
        verbose=VERBOSE,
        query_path=QUERY_PATH,
    )
