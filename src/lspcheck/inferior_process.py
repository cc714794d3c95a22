# Copyright (C) 2025-2026 João Távora
# Copyright (C) 2026 Felicián Németh
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
import os
import sys
from typing import Optional

from .util import debug, log


class LaunchError(Exception):
    """The server executable could not be started."""


class InferiorProcess:
    """The server subprocess under test.

    Use as an async context manager: the process is launched on entry
    and torn down on every exit path."""

    def __init__(self, server_command: list[str], quiet: bool = False, grace: float = 0.1):
        self.process = None
        self.server_command = server_command
        self.quiet = quiet
        self.grace = grace
        self._relay_task: Optional[asyncio.Task] = None

    def __repr__(self):
        return f"InferiorProcess({self.name})"

    process: Optional[asyncio.subprocess.Process]
    server_command: list[str]

    async def __aenter__(self) -> "InferiorProcess":
        await self.launch()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.terminate()

    @property
    def name(self) -> str:
        return os.path.basename(self.server_command[0])

    async def launch(self):
        """Launch the LSP server subprocess."""
        log(f"Launching {self.name}: {' '.join(self.server_command)}")

        try:
            self.process = await asyncio.create_subprocess_exec(
                *self.server_command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL if self.quiet else asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise LaunchError(f"could not start {self.name}: {e}") from e
        if not self.quiet:
            self._relay_task = asyncio.create_task(self.relay_stderr())

    @property
    def stdin(self) -> asyncio.StreamWriter:
        return self.process.stdin  # pyright: ignore

    @property
    def stdout(self) -> asyncio.StreamReader:
        return self.process.stdout  # pyright: ignore

    @property
    def stderr(self) -> asyncio.StreamReader:
        return self.process.stderr  # pyright: ignore

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode if self.process else None

    async def poll_errors(self) -> Optional[str]:
        line = await self.stderr.readline()
        if not line:
            return

        # Decode and strip only the trailing newline (preserve other whitespace)
        return line.decode("utf-8", errors="replace").rstrip("\n\r")

    async def relay_stderr(self) -> None:
        """
        Forward server's stderr to our stderr, prefixed with its name.
        Failures here never reach the scenario.
        """
        try:
            while (line := await self.poll_errors()) is not None:
                print(f"[{self.name}] {line}", file=sys.stderr, flush=True)
        except Exception as e:
            debug(f"[{self.name}] Error reading stderr: {e}")

    async def terminate(self) -> None:
        """Give the server GRACE seconds to exit, then make it."""
        if self.process is None:
            return

        if not self.stdin.is_closing():
            self.stdin.close()
        try:
            await self.stdin.wait_closed()
        except ConnectionError:
            pass

        try:
            await asyncio.wait_for(self.process.wait(), self.grace)
        except asyncio.TimeoutError:
            log(f"{self.name} still running after {self.grace}s, terminating")
            try:
                self.process.terminate()
                await asyncio.wait_for(self.process.wait(), timeout=1.0)
            except ProcessLookupError:
                pass
            except asyncio.TimeoutError:
                self.process.kill()
                await self.process.wait()

        if self._relay_task is not None:
            try:
                await asyncio.wait_for(self._relay_task, timeout=1.0)
            except (asyncio.TimeoutError, asyncio.CancelledError):
                pass
            self._relay_task = None

        debug(f"{self.name} exited with code {self.process.returncode}")
