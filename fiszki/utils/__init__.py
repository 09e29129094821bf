"""Utils module."""

from .helpers import (
    ensure_dir,
    utc_now_iso,
    write_json_atomic,
    read_json,
)
from .parsing import TextParser
from .logger import setup_logger

__all__ = [
    'ensure_dir',
    'utc_now_iso',
    'write_json_atomic',
    'read_json',
    'TextParser',
    'setup_logger'
]
