"""Run the DoH gateway: ``python -m jadnet_doh_gateway`` or ``jadnet-doh-gateway``."""
import asyncio
from .server import main as server_main

__all__ = ['main']


def main():
    """Serve DoH queries and forward them to the configured resolver until interrupted."""
    try:
        asyncio.run(server_main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
