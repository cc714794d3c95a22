#!/usr/bin/env python3
"""
lspcheck - run a fixed LSP conformance scenario against a server.
"""

import argparse
import asyncio
import sys
from typing import Optional

from .channel import Channel, TransportError
from .inferior_process import InferiorProcess, LaunchError
from .jsonrpc import JsonRpcError
from .preset_loader import load_preset
from .scenario import Fixture, Scenario, ScenarioReport
from .session import Session
from .util import log, log_levels, set_log_level_from_string, warn

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_STEP_FAILED = 2


def say(tag: str, text: str) -> None:
    print(f"[{tag}] {text}", flush=True)


def parse_server_command(args: list[str]) -> tuple[list[str], list[str]]:
    """
    Split args on the first '--' separator.
    Returns (lspcheck_args, server_command)
    """
    if "--" not in args:
        return args, []
    sep = args.index("--")
    return args[:sep], args[sep + 1 :]


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='lspcheck',
        usage='lspcheck [OPTIONS] [-- <server-command> [args]...]',
        description='Run a conformance scenario against an LSP server.',
    )
    parser.add_argument('--preset', default='jabline', metavar='NAME_OR_PATH',
                        help='bundled preset name or path to a preset file')
    parser.add_argument('--quiet-server', action='store_true',
                        help="don't relay the server's stderr")
    parser.add_argument('--log-level', default='warn',
                        choices=[lvl[4:].lower() for lvl in log_levels])
    parser.add_argument('--diagnostics-attempts', type=int, default=5, metavar='N',
                        help='messages to read while waiting for diagnostics')
    parser.add_argument('--grace-ms', type=int, default=100, metavar='N',
                        help='time the server gets to exit before being terminated')
    parser.add_argument('--timeout', type=float, default=None, metavar='SECONDS',
                        help='give up waiting for any single server message')
    parser.add_argument('--strict', action='store_true',
                        help='exit with status 2 when any step failed')
    return parser


async def run_check(
    server_command: list[str], fixture: Fixture, opts: argparse.Namespace
) -> ScenarioReport:
    """Launch the server, run the scenario, tear everything down."""
    proc = InferiorProcess(
        server_command, quiet=opts.quiet_server, grace=opts.grace_ms / 1000.0
    )
    say('TEST', f"Starting {proc.name} lsp server...")
    async with proc:
        channel = Channel(proc.stdin, proc.stdout)
        async with Session(channel, timeout=opts.timeout) as session:
            scenario = Scenario(session, fixture, opts.diagnostics_attempts)
            report = await scenario.run()
    say('DONE', "All tests completed.")
    return report


def main(args: Optional[list[str]] = None) -> None:
    """
    Parse arguments and run the scenario.
    """
    if args is None:
        args = sys.argv[1:]

    check_args, server_command = parse_server_command(args)

    parser = make_parser()
    opts = parser.parse_args(check_args)

    if opts.diagnostics_attempts < 1:
        parser.error("--diagnostics-attempts must be at least 1")
    if opts.grace_ms < 0:
        parser.error("--grace-ms must be non-negative")
    if opts.timeout is not None and opts.timeout <= 0:
        parser.error("--timeout must be positive")

    set_log_level_from_string(opts.log_level)

    try:
        preset_command, fixture = load_preset(opts.preset)
    except Exception as e:
        # Presets are user code; any failure there is a usage error
        parser.error(f"cannot load preset '{opts.preset}': {e}")
    server_command = server_command or preset_command
    if not server_command:
        parser.error("no server command given")
    log(f"Server command: {' '.join(server_command)}")

    try:
        report = asyncio.run(run_check(server_command, fixture, opts))
    except KeyboardInterrupt:
        log("\nInterrupted.")
        sys.exit(130)
    except LaunchError as e:
        say('FAIL', f"Fatal: {e}")
        sys.exit(EXIT_FATAL)
    except (TransportError, JsonRpcError) as e:
        warn(f"Fatal error: {e}")
        say('FAIL', f"Fatal: {e}")
        sys.exit(EXIT_FATAL)

    if opts.strict and not report.passed:
        failed = ', '.join(s.name for s in report.failures)
        warn(f"Failed steps: {failed}")
        sys.exit(EXIT_STEP_FAILED)
    sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
