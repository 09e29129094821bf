"""Utility functions."""

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Union

import aiofiles

logger = logging.getLogger(__name__)


def ensure_dir(path: str) -> None:
    """Ensure directory exists."""
    Path(path).mkdir(parents=True, exist_ok=True)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


async def write_json_atomic(path: Union[str, Path], data: Any) -> None:
    """
    Write JSON to disk atomically: temp file + rename.

    The file is complete on disk when this returns, so callers can treat the
    write as durable across a process restart.

    Args:
        path: Target file
        data: JSON-serializable payload
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_path = f"{target}.{uuid.uuid4().hex[:8]}.tmp"

    try:
        async with aiofiles.open(temp_path, 'w', encoding='utf-8') as f:
            await f.write(json.dumps(data, indent=2, ensure_ascii=False))
            await f.flush()
        os.replace(temp_path, target)
    finally:
        # Clean up temp file if the rename never happened
        if os.path.exists(temp_path):
            os.remove(temp_path)


async def read_json(path: Union[str, Path], default: Any = None) -> Any:
    """
    Read a JSON file, returning ``default`` when it is missing or unreadable.

    Args:
        path: File to read
        default: Value for a missing/corrupt file
    """
    source = Path(path)
    if not source.exists():
        return default

    try:
        async with aiofiles.open(source, 'r', encoding='utf-8') as f:
            content = await f.read()
        return json.loads(content) if content.strip() else default
    except (json.JSONDecodeError, OSError) as e:
        logger.error("Could not read %s: %s", source, e)
        return default
