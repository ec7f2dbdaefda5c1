"""Product Requirements MCP Server - channels and entry point.

Two channels feed the same protocol processor:
- HTTP: ``POST {mcp_path}`` with ``Authorization: Bearer <token>``
- stdio: newline-delimited JSON-RPC, authenticated with ``stdio_token``

Logs go to stderr; stdout belongs to the stdio protocol stream.
"""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, TextIO

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from . import __version__
from .auth import Actor, StaticTokenValidator, extract_bearer_token
from .config import ServerConfig, get_config
from .database import get_db_manager
from .database.seed import generate_demo_data, seed_defaults
from .observability import (
    configure_logging,
    correlation_scope,
    get_mcp_logger,
    initialize_observability,
    normalize_correlation_id,
)
from .protocol import MCPProcessor

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


# =============================================================================
# HTTP CHANNEL
# =============================================================================


def create_app(
    processor: MCPProcessor | None = None,
    validator: StaticTokenValidator | None = None,
    config: ServerConfig | None = None,
) -> FastAPI:
    """Build the FastAPI application serving the MCP endpoint and ``/health``."""
    config = config or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        get_db_manager().close()

    app = FastAPI(
        title=config.server_title,
        description="MCP endpoint for product requirements management",
        version=config.server_version,
        lifespan=lifespan,
    )
    app.state.processor = processor or MCPProcessor(config=config)
    app.state.validator = validator or StaticTokenValidator.from_config(config)

    @app.post(config.mcp_path)
    async def mcp_endpoint(request: Request) -> Response:
        correlation_id = normalize_correlation_id(request.headers.get(CORRELATION_HEADER))
        with correlation_scope(correlation_id) as cid:
            token = extract_bearer_token(request.headers.get("Authorization"))
            actor = app.state.validator.validate(token)
            if actor is None:
                get_mcp_logger().log_security(
                    "authentication_failed",
                    {
                        "client_address": request.client.host if request.client else None,
                        "user_agent": request.headers.get("User-Agent"),
                        "token_present": token is not None,
                    },
                )

            body = await app.state.processor.handle_raw(await request.body(), actor, cid)

        headers = {CORRELATION_HEADER: cid}
        if actor is None:
            if body is None:
                return Response(status_code=401, headers=headers)
            return JSONResponse(content=body, status_code=401, headers=headers)
        if body is None:
            return Response(status_code=202, headers=headers)
        return JSONResponse(content=body, headers=headers)

    @app.get("/health")
    async def health() -> JSONResponse:
        database_ok = app.state.processor.db_manager.verify_connection()
        return JSONResponse(
            content={
                "status": "healthy" if database_ok else "unhealthy",
                "database": "connected" if database_ok else "unavailable",
                "version": config.server_version,
            },
            status_code=200 if database_ok else 503,
        )

    return app


# =============================================================================
# STDIO CHANNEL
# =============================================================================


async def run_stdio(
    processor: MCPProcessor,
    actor: Actor | None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> None:
    """Serve newline-delimited JSON-RPC until stdin closes."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    loop = asyncio.get_running_loop()

    while True:
        line = await loop.run_in_executor(None, stdin.readline)
        if not line:
            break
        if not line.strip():
            continue
        response = await processor.handle_raw(line, actor)
        if response is not None:
            stdout.write(json.dumps(response, default=str) + "\n")
            stdout.flush()

    logger.info("stdin closed; stdio channel stopped")


def _stdio_actor(config: ServerConfig) -> Actor | None:
    if not config.stdio_token:
        logger.warning("No stdio_token configured; stdio requests will be refused")
        return None
    actor = StaticTokenValidator.from_config(config).validate(config.stdio_token)
    if actor is None:
        logger.warning("stdio_token does not match any configured API token")
    return actor


# =============================================================================
# ENTRY POINT
# =============================================================================


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="requirements-mcp", description="Product Requirements MCP Server"
    )
    parser.add_argument("--transport", choices=["http", "stdio"], help="Channel to serve")
    parser.add_argument("--host", help="HTTP bind host")
    parser.add_argument("--port", type=int, help="HTTP bind port")
    parser.add_argument(
        "--init-db", action="store_true", help="Create tables and seed reference data, then exit"
    )
    parser.add_argument(
        "--seed-demo", action="store_true", help="With --init-db, also generate demo data"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def init_database(seed_demo: bool = False) -> dict[str, Any]:
    """Create the schema and seed default status models and types."""
    db_manager = get_db_manager()
    db_manager.init_database()
    with db_manager.session_scope() as session:
        seed_defaults(session)
        counts = generate_demo_data(session) if seed_demo else {}
    logger.info("Database ready at %s", db_manager.database_url)
    return counts


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    config = get_config()

    configure_logging("DEBUG" if config.debug else config.log_level)
    initialize_observability()

    if args.init_db:
        counts = init_database(seed_demo=args.seed_demo)
        if counts:
            logger.info("Demo data created: %s", counts)
        return

    transport = args.transport or config.transport
    logger.info("Starting %s v%s (%s transport)", config.server_name, config.server_version, transport)

    if transport == "stdio":
        processor = MCPProcessor(config=config)
        asyncio.run(run_stdio(processor, _stdio_actor(config)))
        return

    uvicorn.run(
        create_app(config=config),
        host=args.host or config.http_host,
        port=args.port or config.http_port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
