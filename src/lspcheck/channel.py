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

from .jsonrpc import JSON, Message, encode, read_message
from .util import log_message


class TransportError(Exception):
    """Reading from or writing to the server streams failed."""


class Channel:
    """Framed JSONRPC traffic over a writer/reader stream pair."""

    def __init__(self, writer: asyncio.StreamWriter, reader: asyncio.StreamReader):
        self.writer = writer
        self.reader = reader

    async def send(self, data: bytes) -> None:
        """Write DATA in full, waiting for the pipe to drain."""
        if self.writer.is_closing():
            raise TransportError("server input stream is closed")
        try:
            self.writer.write(data)
            await self.writer.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise TransportError(f"write to server failed: {e}") from e

    async def send_message(self, message: Message) -> None:
        data = encode(message)
        log_message("-->", message.to_json())
        await self.send(data)

    async def receive(self) -> JSON:
        """
        Read one complete frame.
        EOF means the server went away, which is fatal.
        """
        try:
            msg = await read_message(self.reader)
        except ConnectionResetError as e:
            raise TransportError(f"read from server failed: {e}") from e
        if msg is None:
            raise TransportError("server closed its output stream")
        log_message("<--", msg)
        return msg
