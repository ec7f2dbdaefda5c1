"""The ``initialize`` handshake."""

import logging
from typing import Any

from ..config import ServerConfig, get_config

logger = logging.getLogger(__name__)


def negotiate_protocol_version(requested: Any, config: ServerConfig | None = None) -> str:
    """Echo a supported client version, otherwise answer with the server's own."""
    config = config or get_config()
    if isinstance(requested, str) and requested in config.supported_protocol_versions:
        return requested
    if requested is not None:
        logger.info(
            "Client requested unsupported protocol version %r; offering %s",
            requested,
            config.protocol_version,
        )
    return config.protocol_version


def build_initialize_result(
    params: dict[str, Any],
    capabilities: dict[str, Any],
    instructions: str,
    config: ServerConfig | None = None,
) -> dict[str, Any]:
    config = config or get_config()
    client_info = params.get("clientInfo")
    if isinstance(client_info, dict):
        logger.info(
            "Initializing session for client %s %s",
            client_info.get("name", "unknown"),
            client_info.get("version", ""),
        )
    return {
        "protocolVersion": negotiate_protocol_version(params.get("protocolVersion"), config),
        "capabilities": capabilities,
        "serverInfo": config.server_info,
        "instructions": instructions,
    }
