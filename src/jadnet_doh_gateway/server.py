"""DoH gateway server: request pipeline and HTTP surface."""
import time
from typing import Optional
import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from .config import logger, load_config, GatewayConfig, LISTEN_HOST, LISTEN_PORT, LOG_LEVEL
from .decoder import parse_request
from .encoder import encode_response, dns_message_response
from .errors import ClientInputError, UpstreamError
from .query import create_query
from .resolver import UpstreamResolver

QUERY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


class DoHGateway:
    """Translates DoH requests into TCP queries against one upstream resolver."""

    def __init__(self, config: GatewayConfig, resolver: Optional[UpstreamResolver] = None):
        """
        Initialize the gateway.

        Args:
            config: Static gateway configuration
            resolver: Upstream transport; built from ``config`` when omitted
        """
        self.config = config
        self.resolver = resolver or UpstreamResolver.from_config(config)

    async def handle(self, request: Request) -> Response:
        """
        Run one request through decode, synthesize, resolve and encode.

        Client errors become an empty 400 response, upstream errors an
        empty 500. Nothing is retried.
        """
        verbose = self.config.verbose
        logger.info(f"Handling {self.config.query_path} request")

        try:
            query = await parse_request(request, verbose)
        except ClientInputError as e:
            logger.warning(f"Failed parsing request: {e}")
            return Response(status_code=e.status_code)

        if verbose:
            logger.info(f"{request.method} Resolving: {query.name} {query.qtype} {query.id}")

        outgoing = create_query(query.qname, query.qtype)
        start_time = time.time()
        try:
            response = await self.resolver.resolve(outgoing)
            packed = encode_response(response)
        except UpstreamError as e:
            elapsed = time.time() - start_time
            logger.error(f"Query failed after {elapsed:.3f}s: {e}")
            return Response(status_code=e.status_code)
        elapsed = time.time() - start_time

        if verbose:
            logger.info(
                f"{request.method} Query: qname='{query.name}' qtype='{query.qtype}' "
                f"qid={query.id} elapsed={elapsed:.3f}s"
            )
            logger.info(f"{request.method} Answer: {[str(rr) for rr in response.rr]}")
            logger.info(f"{request.method} Raw response: {packed.hex()}")

        return dns_message_response(packed)


def create_app(config: GatewayConfig, gateway: Optional[DoHGateway] = None) -> FastAPI:
    """
    Build the HTTP application.

    Args:
        config: Static gateway configuration
        gateway: Pipeline to serve; built from ``config`` when omitted
    """
    gateway = gateway or DoHGateway(config)
    app = FastAPI(
        title="jadnet DoH gateway",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    # Every method is routed so unsupported ones are rejected with 400 by the
    # decoder rather than 405 by the router.
    app.add_api_route(config.query_path, gateway.handle, methods=QUERY_METHODS)

    @app.get("/health", response_class=PlainTextResponse)
    async def health():
        logger.info("Received /health request")
        return "ok"

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        logger.info("Received / request")
        return f"DoH gateway, try {config.query_path} instead!"

    return app


async def main():
    """Main server entry point."""
    config = load_config()
    logger.info(
        f"Forwarding {config.query_path} to {config.upstream} "
        f"(timeout {config.timeout_ms}ms, verbose={config.verbose})"
    )

    app = create_app(config)
    server = uvicorn.Server(uvicorn.Config(
        app,
        host=LISTEN_HOST,
        port=LISTEN_PORT,
        log_level=LOG_LEVEL.lower(),
    ))

    logger.info(f"Listening on {LISTEN_HOST}:{LISTEN_PORT}")
    await server.serve()
