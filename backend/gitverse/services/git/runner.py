"""
Git invocation using subprocess.

Every git call the extractor makes goes through run_git so that process
failures surface as a single ExtractionError type.
"""

import logging
import subprocess
from pathlib import Path
from typing import List

from gitverse.services.exceptions import ExtractionError

logger = logging.getLogger(__name__)


def run_git(
    repo_path: Path | None,
    args: List[str],
    timeout: int = 300,
) -> str:
    """Run a git command and return stdout."""
    command = ["git"] + args
    try:
        result = subprocess.run(
            command,
            cwd=str(repo_path) if repo_path else None,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise ExtractionError(
            f"git {args[0]} timed out after {timeout}s", command=command
        ) from e
    except OSError as e:
        raise ExtractionError(f"Unable to run git: {e}", command=command) from e

    if result.returncode != 0:
        raise ExtractionError(
            f"git {args[0]} failed with exit code {result.returncode}: {result.stderr.strip()}",
            command=command,
            returncode=result.returncode,
            stderr=result.stderr,
        )
    return result.stdout
