"""
Generic JSONRPC message framing using LSP headers.
LSP uses HTTP-style headers: Content-Length: N\r\n\r\n{json}

Outgoing messages are built as Request, Notification or Response
objects, which validate themselves on construction.  Incoming messages
are plain dicts; use classify() to tell them apart.
"""

import asyncio
import json
import sys
from dataclasses import dataclass
from typing import Any, BinaryIO, Union

JSON = dict[str, Any]  # pyright: ignore[reportExplicitAny]

JSONRPC_VERSION = '2.0'


class JsonRpcError(Exception):
    """Base class for wire-level errors."""


class FramingError(JsonRpcError):
    """Header block missing or malformed, or body cut short."""


class ParseError(JsonRpcError):
    """Frame body is not a JSON object."""


class EncodingError(JsonRpcError):
    """Message payload can't be represented as JSON."""


def _check_method(method: object):
    if not isinstance(method, str) or not method:
        raise ValueError(f"method must be a non-empty string, got {method!r}")


@dataclass(frozen=True)
class Request:
    id: int
    method: str
    params: Any = None

    def __post_init__(self):
        if isinstance(self.id, bool) or not isinstance(self.id, int) or self.id < 1:
            raise ValueError(f"request id must be a positive integer, got {self.id!r}")
        _check_method(self.method)

    def to_json(self) -> JSON:
        msg: JSON = {'jsonrpc': JSONRPC_VERSION, 'id': self.id, 'method': self.method}
        if self.params is not None:
            msg['params'] = self.params
        return msg


@dataclass(frozen=True)
class Notification:
    method: str
    params: Any = None

    def __post_init__(self):
        _check_method(self.method)

    def to_json(self) -> JSON:
        msg: JSON = {'jsonrpc': JSONRPC_VERSION, 'method': self.method}
        if self.params is not None:
            msg['params'] = self.params
        return msg


@dataclass(frozen=True)
class Response:
    id: int | str | None
    result: Any = None
    error: Any = None

    def __post_init__(self):
        if self.id is not None and (
            isinstance(self.id, bool) or not isinstance(self.id, (int, str))
        ):
            raise ValueError(f"response id must be int, str or None, got {self.id!r}")

    def to_json(self) -> JSON:
        msg: JSON = {'jsonrpc': JSONRPC_VERSION, 'id': self.id}
        if self.error is not None:
            msg['error'] = self.error
        else:
            msg['result'] = self.result
        return msg


Message = Union[Request, Notification, Response]


def classify(msg: JSON) -> str:
    """
    Tell what kind of message MSG is.
    Returns 'request', 'notification', 'response' or 'invalid'.
    """
    if msg.get('method') is not None:
        return 'request' if msg.get('id') is not None else 'notification'
    if any(k in msg for k in ('id', 'result', 'error')):
        return 'response'
    return 'invalid'


def encode(message: Message | JSON) -> bytes:
    """
    Frame MESSAGE for the wire: header plus UTF-8 JSON body.
    """
    if isinstance(message, (Request, Notification, Response)):
        obj = message.to_json()
    elif isinstance(message, dict):
        if message.get('jsonrpc') != JSONRPC_VERSION or classify(message) == 'invalid':
            raise EncodingError(f"not a JSONRPC message: {message!r}")
        obj = message
    else:
        raise EncodingError(f"not a JSONRPC message: {message!r}")

    try:
        content = json.dumps(obj, ensure_ascii=False, allow_nan=False)
        content_bytes = content.encode('utf-8')
    except (TypeError, ValueError, RecursionError) as e:
        # UnicodeEncodeError (lone surrogates) is a ValueError
        raise EncodingError(f"cannot encode message: {e}") from e

    header = f"Content-Length: {len(content_bytes)}\r\n\r\n"
    return header.encode('ascii') + content_bytes


def parse_headers(lines: list[bytes]) -> dict[str, str]:
    """Parse header lines into a dict with lower-cased names."""
    headers = {}
    for raw in lines:
        line = raw.decode('ascii', errors='replace').strip()
        if ':' not in line:
            raise FramingError(f"malformed header line: {line!r}")
        key, value = line.split(':', 1)
        headers[key.strip().lower()] = value.strip()
    return headers


def content_length(headers: dict[str, str]) -> int:
    value = headers.get('content-length')
    if value is None:
        raise FramingError("missing Content-Length header")
    if not value.isdigit():
        raise FramingError(f"bad Content-Length: {value!r}")
    return int(value)


def parse_body(content: bytes) -> JSON:
    try:
        msg = json.loads(content.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError(f"invalid JSON body: {e}") from e
    except RecursionError as e:
        raise ParseError("JSON body nested too deeply") from e
    if not isinstance(msg, dict):
        raise ParseError(f"message must be a JSON object, got {type(msg).__name__}")
    return msg


async def read_message(reader: asyncio.StreamReader) -> JSON | None:
    """
    Read a single JSONRPC message from an async stream.
    Returns None on EOF before any header byte.
    """
    lines: list[bytes] = []

    while True:
        try:
            line = await reader.readline()
        except ValueError as e:
            # StreamReader's line limit was overrun
            raise FramingError(f"header line too long: {e}") from e
        if not line:
            if not lines:
                return None
            raise FramingError("stream ended inside header block")
        if not line.strip():
            # Empty line signals end of headers
            break
        lines.append(line)

    length = content_length(parse_headers(lines))
    try:
        content = await reader.readexactly(length)
    except asyncio.IncompleteReadError as e:
        raise FramingError(
            f"stream ended after {len(e.partial)} of {length} body bytes"
        ) from e
    return parse_body(content)


def read_message_sync(stream: BinaryIO | None = None) -> JSON | None:
    """
    Read a single JSONRPC message from stdin (or provided stream) synchronously.
    Returns None on EOF before any header byte.
    """
    if stream is None:
        stream = sys.stdin.buffer

    lines: list[bytes] = []
    while True:
        line = stream.readline()
        if not line:
            if not lines:
                return None
            raise FramingError("stream ended inside header block")
        if not line.strip():
            break
        lines.append(line)

    length = content_length(parse_headers(lines))
    content = stream.read(length)
    if len(content) != length:
        raise FramingError(f"stream ended after {len(content)} of {length} body bytes")
    return parse_body(content)


def write_message_sync(message: Message | JSON, stream: BinaryIO | None = None) -> None:
    """
    Write a single JSONRPC message to stdout (or provided stream) synchronously.
    """
    if stream is None:
        stream = sys.stdout.buffer

    stream.write(encode(message))
    stream.flush()
