"""JSON-RPC 2.0 processing for the MCP methods."""

from .capabilities import CapabilitiesManager
from .error_mapper import ERROR_CODES, error_code_for, map_error
from .jsonrpc import JSONRPC_VERSION, JsonRpcRequest, parse_frame
from .lifecycle import build_initialize_result, negotiate_protocol_version
from .processor import MCPProcessor

__all__ = [
    "ERROR_CODES",
    "JSONRPC_VERSION",
    "CapabilitiesManager",
    "JsonRpcRequest",
    "MCPProcessor",
    "build_initialize_result",
    "error_code_for",
    "map_error",
    "negotiate_protocol_version",
    "parse_frame",
]
