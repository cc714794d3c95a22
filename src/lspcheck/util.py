from datetime import datetime
import json
import sys

from .jsonrpc import JSON

# Ordered from quietest to noisiest.
log_levels = [
    'LOG_SILENT',
    'LOG_WARN',
    'LOG_INFO',
    'LOG_DEBUG',
    'LOG_EVENT',
    'LOG_TRACE',
]

_level = log_levels.index('LOG_WARN')


def set_log_level_from_string(name: str):
    """Set the log level from 'LOG_DEBUG', 'debug' or similar.

    Raises ValueError for unknown level names."""
    global _level
    key = name.upper()
    if not key.startswith('LOG_'):
        key = f'LOG_{key}'
    if key not in log_levels:
        choices = ', '.join(lvl[4:].lower() for lvl in log_levels)
        raise ValueError(f"unknown log level '{name}' (choose from {choices})")
    _level = log_levels.index(key)


def get_log_level() -> str:
    return log_levels[_level]


def _enabled(level: str) -> bool:
    return _level >= log_levels.index(level)


def _timestamp() -> str:
    # truncate microseconds to milliseconds
    return datetime.now().strftime("%H:%M:%S.%f")[:-3]


def info(s: str):
    """Log info-level message (high-level events, lifecycle)."""
    if _enabled('LOG_INFO'):
        print(f"i[{_timestamp()}] {s}", file=sys.stderr)


# Alias for backward compatibility
log = info


def debug(s: str):
    """Log debug-level message (method names, step decisions)."""
    if _enabled('LOG_DEBUG'):
        print(f"d[{_timestamp()}] {s}", file=sys.stderr)


def trace(s: str):
    """Log trace-level message (full protocol details with truncation)."""
    if _enabled('LOG_TRACE'):
        print(f"t[{_timestamp()}] {s}", file=sys.stderr)


def warn(s: str):
    """Log warning message."""
    if _enabled('LOG_WARN'):
        print(f"W[{_timestamp()}] WARN: {s}", file=sys.stderr)


def event(s: str):
    """Log JSONRPC protocol event."""
    if _enabled('LOG_EVENT'):
        print(f"e[{_timestamp()}] {s}", file=sys.stderr)


def truncate_for_log(s: str, max_len: int = 2000) -> str:
    """Truncate a string for logging, showing original length if truncated."""
    if len(s) <= max_len:
        return s
    return f"{s[:max_len]}... (truncated, {len(s)} bytes total)"


def log_message(direction: str, message: JSON) -> None:
    """
    Log a message with direction indicator.
    Method names go to the event level, full bodies to trace.
    """
    if "method" in message:
        msg_type = str(message["method"])
    elif "result" in message or "error" in message:
        msg_type = f"response id={message.get('id')}"
    else:
        msg_type = "message"

    event(f"{direction} {msg_type}")
    if _enabled('LOG_TRACE'):
        json_str = json.dumps(message, ensure_ascii=False, default=repr)
        trace(f"{direction} {truncate_for_log(json_str)}")
