"""
JSON-RPC 2.0 framing.

A payload is either one frame object or a non-empty array of frames. A frame
without ``id`` is a notification and never gets a response slot.
"""

import json
from dataclasses import dataclass, field
from typing import Any

from ..errors import InvalidRequestError, ParseError

JSONRPC_VERSION = "2.0"

# Sentinel for frames whose id could not be read
_NO_ID = object()


@dataclass(frozen=True)
class JsonRpcRequest:
    method: str
    params: dict[str, Any] = field(default_factory=dict)
    id: Any = None
    is_notification: bool = False


@dataclass(frozen=True)
class FrameError:
    """A frame that failed validation; answered with an error unless it was a notification."""

    error: InvalidRequestError
    id: Any = None
    is_notification: bool = False


def decode_payload(raw: str | bytes) -> Any:
    """
    Decode a raw channel payload into JSON.

    Raises:
        ParseError: If the payload is not valid JSON
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError(f"Parse error: {e}") from e


def split_batch(payload: Any) -> tuple[list[Any], bool]:
    """
    Return the frames of a payload and whether it was a batch.

    Raises:
        InvalidRequestError: For an empty batch or a payload that is neither
            an object nor an array
    """
    if isinstance(payload, list):
        if not payload:
            raise InvalidRequestError("Invalid Request: empty batch")
        return payload, True
    if isinstance(payload, dict):
        return [payload], False
    raise InvalidRequestError("Invalid Request: payload must be an object or an array")


def _valid_id(value: Any) -> bool:
    # bool is an int subclass but not a valid id
    return value is None or (isinstance(value, str | int) and not isinstance(value, bool))


def parse_frame(frame: Any) -> JsonRpcRequest | FrameError:
    """Validate one frame of a payload."""
    if not isinstance(frame, dict):
        return FrameError(InvalidRequestError("Invalid Request: frame must be an object"))

    request_id = frame.get("id", _NO_ID)
    is_notification = request_id is _NO_ID
    if is_notification:
        request_id = None
    elif not _valid_id(request_id):
        return FrameError(InvalidRequestError("Invalid Request: id must be a string, number or null"))

    if frame.get("jsonrpc") != JSONRPC_VERSION:
        return FrameError(
            InvalidRequestError('Invalid Request: jsonrpc must be "2.0"'),
            request_id,
            is_notification,
        )

    method = frame.get("method")
    if not isinstance(method, str) or not method:
        return FrameError(
            InvalidRequestError("Invalid Request: method must be a non-empty string"),
            request_id,
            is_notification,
        )

    params = frame.get("params")
    if params is None:
        params = {}
    elif not isinstance(params, dict):
        return FrameError(
            InvalidRequestError("Invalid Request: params must be an object"),
            request_id,
            is_notification,
        )

    return JsonRpcRequest(
        method=method, params=params, id=request_id, is_notification=is_notification
    )


def success_response(request_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def error_response(request_id: Any, error: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}
