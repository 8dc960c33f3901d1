"""Scratch directories holding temporary clones."""

import logging
import secrets
import shutil
import time
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

SCRATCH_PREFIX = "repo-"


def new_scratch_directory(root: Path, repository_id: str) -> Path:
    """Unique, not-yet-existing path for one analysis run of one repository."""
    return Path(root) / f"{SCRATCH_PREFIX}{repository_id}-{secrets.token_hex(8)}"


def remove_scratch_directory(path: Path) -> bool:
    """
    Recursively delete a scratch clone.

    Failures are logged and reported through the return value, never raised.
    """
    if not path.exists():
        return True
    try:
        shutil.rmtree(path)
    except OSError as e:
        logger.error(f"Failed to remove scratch directory {path}: {e}")
        return False
    logger.debug(f"Removed scratch directory {path}")
    return True


def find_stale_scratch_directories(root: Path, max_age_seconds: float) -> List[Path]:
    """Scratch clones under `root` last modified more than max_age_seconds ago."""
    root = Path(root)
    if not root.is_dir():
        return []
    cutoff = time.time() - max_age_seconds
    stale = []
    for entry in root.iterdir():
        if not entry.is_dir() or not entry.name.startswith(SCRATCH_PREFIX):
            continue
        try:
            if entry.stat().st_mtime < cutoff:
                stale.append(entry)
        except OSError:
            continue
    return stale
