# Copyright (C) 2025-2026 João Távora
#
# This file is part of lspcheck.
#
# Lspcheck is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Lspcheck is distributed in the hope that it will be useful, but
# WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

import asyncio
from typing import Any, Awaitable, Optional

from .channel import Channel, TransportError
from .jsonrpc import JSON, JsonRpcError, Notification, Request, Response, classify
from .util import debug, warn

METHOD_NOT_FOUND = -32601

# Server->client requests we answer with a null result.
NULL_RESULT_METHODS = {
    'client/registerCapability',
    'client/unregisterCapability',
    'window/workDoneProgress/create',
}


class Session:
    """
    Client side of one LSP conversation.

    Owns the outgoing request counter and a table of pending responses
    keyed by request id.  A single reader task pumps incoming frames:
    responses resolve their pending future, everything else is queued
    for next_message().
    """

    def __init__(self, channel: Channel, timeout: Optional[float] = None):
        self.channel = channel
        self.timeout = timeout
        self.message_id = 0  # Last id handed out (c->s).
        self.pending_requests: dict[int, asyncio.Future] = {}
        self.incoming: asyncio.Queue = asyncio.Queue()  # s->c non-responses
        self.failure: Optional[Exception] = None
        self._reader_task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "Session":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def start(self) -> None:
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(self._pump())

    async def close(self) -> None:
        task, self._reader_task = self._reader_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def issue_request(self, method: str, params: Any = None) -> int:
        """Send a request and return its id for wait_response()."""
        self.message_id += 1
        request = Request(id=self.message_id, method=method, params=params)
        future = asyncio.get_running_loop().create_future()
        self.pending_requests[request.id] = future
        try:
            await self.channel.send_message(request)
        except BaseException:
            del self.pending_requests[request.id]
            raise
        debug(f"Issued request {method} (id={request.id})")
        return request.id

    async def issue_notification(self, method: str, params: Any = None) -> None:
        await self.channel.send_message(Notification(method=method, params=params))
        debug(f"Issued notification {method}")

    async def wait_response(self, request_id: int) -> JSON:
        """Wait for the response to REQUEST_ID, whatever order it arrives in."""
        future = self.pending_requests.get(request_id)
        if future is None:
            raise ValueError(f"no pending request with id {request_id}")
        try:
            if not future.done() and self.failure is not None:
                raise self.failure
            return await self._wait(future, f"response to request {request_id}")
        finally:
            self.pending_requests.pop(request_id, None)

    async def request(self, method: str, params: Any = None) -> JSON:
        return await self.wait_response(await self.issue_request(method, params))

    async def next_message(self) -> JSON:
        """
        Return the next server-initiated message (notification or
        request), in arrival order.
        """
        if self.failure is not None and self.incoming.empty():
            raise self.failure
        msg = await self._wait(self.incoming.get(), "message from server")
        if msg is None:
            assert self.failure is not None
            raise self.failure
        return msg

    async def _wait(self, aw: Awaitable, what: str):
        if self.timeout is None:
            return await aw
        try:
            return await asyncio.wait_for(aw, self.timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"no {what} within {self.timeout}s") from e

    async def _pump(self) -> None:
        """Read frames until the stream breaks, dispatching each one."""
        try:
            while True:
                msg = await self.channel.receive()
                kind = classify(msg)
                if kind == 'response':
                    self._on_response(msg)
                elif kind == 'request':
                    await self._on_server_request(msg)
                    await self.incoming.put(msg)
                elif kind == 'notification':
                    await self.incoming.put(msg)
                else:
                    warn(f"Ignoring unclassifiable message: {msg}")
        except (TransportError, JsonRpcError) as e:
            debug(f"Reader stopped: {e}")
            await self._fail(e)
        except Exception as e:
            warn(f"Reader crashed: {e!r}")
            failure = TransportError(f"reader failed: {e!r}")
            failure.__cause__ = e
            await self._fail(failure)

    async def _fail(self, e: Exception) -> None:
        """Record E and hand it to every current and future waiter."""
        self.failure = e
        for future in self.pending_requests.values():
            if not future.done():
                future.set_exception(e)
        await self.incoming.put(None)

    def _on_response(self, msg: JSON) -> None:
        request_id = msg.get('id')
        future = None
        if isinstance(request_id, int):
            future = self.pending_requests.get(request_id)
        if future is None or future.done():
            warn(f"Dropping response with id={request_id} but no matching request")
            return
        future.set_result(msg)

    async def _on_server_request(self, msg: JSON) -> None:
        """Answer requests the server sends us, so it doesn't stall."""
        method = msg['method']
        params = msg.get('params')
        if not isinstance(method, str):
            warn(f"Not answering server request with bad method: {method!r}")
            return
        try:
            if method == 'workspace/configuration':
                items = params.get('items') if isinstance(params, dict) else None
                count = len(items) if isinstance(items, list) else 0
                response = Response(id=msg['id'], result=[None] * count)
            elif method in NULL_RESULT_METHODS:
                response = Response(id=msg['id'], result=None)
            else:
                response = Response(
                    id=msg['id'],
                    error={'code': METHOD_NOT_FOUND, 'message': f'Unhandled method {method}'},
                )
        except ValueError as e:
            warn(f"Not answering server request {method}: {e}")
            return
        debug(f"Answering server request {method} (id={msg['id']})")
        await self.channel.send_message(response)
