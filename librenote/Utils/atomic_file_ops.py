"""
Atomic file operations.

Notebook files and downloaded Drive attachments are written to a temporary
file next to the target and then renamed over it, so a crash mid-write never
leaves a truncated notebook behind.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

from loguru import logger


def _atomic_write(file_path: Path, payload: bytes, mode: int) -> None:
    parent_dir = file_path.parent
    parent_dir.mkdir(parents=True, exist_ok=True)

    temp_path = None
    try:
        fd, temp_path = tempfile.mkstemp(
            dir=parent_dir,
            prefix=f".{file_path.name}.",
            suffix=".tmp",
        )
        with os.fdopen(fd, 'wb') as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())

        os.chmod(temp_path, mode)
        # os.replace is atomic on POSIX and best-effort on Windows
        os.replace(temp_path, str(file_path))
    except Exception as e:
        if temp_path and os.path.exists(temp_path):
            try:
                os.unlink(temp_path)
            except OSError:
                pass
        logger.error(f"Failed to atomically write to {file_path}: {e}")
        raise


def atomic_write_bytes(
    file_path: Union[str, Path],
    content: bytes,
    mode: int = 0o644
) -> None:
    """
    Write binary content to a file atomically.

    Raises:
        OSError: If the write or rename operation fails
    """
    file_path = Path(file_path)
    _atomic_write(file_path, content, mode)
    logger.debug(f"Atomically wrote {len(content)} bytes to {file_path}")


def atomic_write_text(
    file_path: Union[str, Path],
    content: str,
    encoding: str = 'utf-8',
    mode: int = 0o644
) -> None:
    """
    Write text content to a file atomically.

    Args:
        file_path: Path to the target file
        content: Text content to write
        encoding: Text encoding (default: utf-8)
        mode: File permissions (default: 0o644)

    Raises:
        OSError: If the write or rename operation fails
    """
    file_path = Path(file_path)
    _atomic_write(file_path, content.encode(encoding), mode)
    logger.debug(f"Atomically wrote {len(content)} chars to {file_path}")


def atomic_write_json(
    file_path: Union[str, Path],
    data: Any,
    encoding: str = 'utf-8',
    mode: int = 0o644,
    indent: Optional[int] = 2
) -> None:
    """Serialize `data` as JSON and write it atomically."""
    content = json.dumps(data, indent=indent, ensure_ascii=False)
    atomic_write_text(file_path, content, encoding=encoding, mode=mode)
