"""
Artifacts helpers.

Provides deterministic orjson encoding and atomic whole-file writes for
persisted snapshots.
"""

from typing import Any, Dict, Optional
import os
from pathlib import Path

import orjson


def dumps_deterministic(payload: Any) -> bytes:
    """Sorted-key compact JSON bytes with a trailing newline."""
    return orjson.dumps(payload, option=orjson.OPT_SORT_KEYS | orjson.OPT_APPEND_NEWLINE)


def write_json_atomic(path: str, payload: Dict[str, Any]) -> None:
    """Write deterministic JSON to path atomically with fsync.

    - sort_keys, compact separators, trailing \\n
    - Create parent directories as needed
    - Write to tmp then os.replace; fsync file and directory
    """
    sp = str(path)
    p = Path(sp)
    p.parent.mkdir(parents=True, exist_ok=True)
    data = dumps_deterministic(payload or {})
    tmp = sp + ".tmp"
    with open(tmp, 'wb') as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, sp)
    # Best-effort fsync on directory to persist metadata
    try:
        dirfd = os.open(str(p.parent), os.O_DIRECTORY)
    except (OSError, AttributeError):
        return
    try:
        os.fsync(dirfd)
    except OSError:
        pass
    finally:
        os.close(dirfd)


def read_json(path: str) -> Optional[Any]:
    """Read a JSON document, or None when the file does not exist."""
    p = Path(path)
    if not p.exists():
        return None
    with open(p, 'rb') as f:
        return orjson.loads(f.read())
