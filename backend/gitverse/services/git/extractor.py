"""
Git extractor.

Reads branches, commits, contributors, the tracked file tree and the
language breakdown out of a local clone. Nothing here touches the database
or the network (apart from `clone`, which creates the local copy).

Git process failures raise ExtractionError; malformed log records are
dropped and reported through the parser diagnostics instead.
"""

import logging
import math
import os
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional

from gitverse.config import settings
from gitverse.services.exceptions import CloneError, ExtractionError
from gitverse.services.git.constants import (
    ESTIMATED_BYTES_PER_LINE,
    PROTECTED_BRANCHES,
    is_ignored_path,
    language_for_extension,
)
from gitverse.services.git.log_parser import (
    COMMIT_LOG_FORMAT,
    CONTRIBUTOR_LOG_FORMAT,
    CommitLogParser,
    ContributorLogParser,
    parse_numstat,
)
from gitverse.services.git.models import (
    BranchInfo,
    CommitInfo,
    ContributorStats,
    FileChangeInfo,
    FileInfo,
    LanguageStats,
)
from gitverse.services.git.runner import run_git
from gitverse.utils.datetime import parse_datetime

logger = logging.getLogger(__name__)

REMOTE_HEAD_REF = "refs/remotes/origin/HEAD"
REMOTE_PREFIX = "refs/remotes/origin/"


def count_lines(data: bytes) -> Optional[int]:
    """
    Count lines of text content, or return None for binary content.

    A trailing line without a newline still counts; empty content has 0 lines.
    """
    if b"\x00" in data:
        return None
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return None
    if not text:
        return 0
    lines = text.count("\n")
    if not text.endswith("\n"):
        lines += 1
    return lines


def estimate_lines(size: int) -> int:
    return math.ceil(size / ESTIMATED_BYTES_PER_LINE)


class GitExtractor:
    """Runs git queries against one local working copy."""

    def __init__(self, repo_path: Path | str, timeout: int | None = None):
        self.repo_path = Path(repo_path)
        self.timeout = timeout or settings.GIT_TIMEOUT
        self.diagnostics: List[str] = []

    @classmethod
    def clone(
        cls,
        url: str,
        destination: Path,
        depth: int | None = None,
        timeout: int | None = None,
    ) -> "GitExtractor":
        """Shallow-clone `url` into `destination` and return an extractor for it."""
        depth = depth or settings.CLONE_DEPTH
        destination.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Cloning {url} to {destination} (depth={depth})")
        try:
            run_git(
                None,
                ["clone", "--depth", str(depth), url, str(destination)],
                timeout=timeout or settings.CLONE_TIMEOUT,
            )
        except ExtractionError as e:
            raise CloneError(
                f"Failed to clone repository {url}: {e}",
                command=e.command,
                returncode=e.returncode,
                stderr=e.stderr,
            ) from e
        return cls(destination)

    def _git(self, args: List[str]) -> str:
        return run_git(self.repo_path, args, timeout=self.timeout)

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def default_branch_name(self) -> Optional[str]:
        """Branch the remote HEAD points at, or None when it cannot be resolved."""
        try:
            ref = self._git(["symbolic-ref", REMOTE_HEAD_REF]).strip()
        except ExtractionError as e:
            logger.info(f"No remote HEAD in {self.repo_path}: {e}")
            return None
        if ref.startswith(REMOTE_PREFIX):
            return ref[len(REMOTE_PREFIX):] or None
        return ref or None

    def resolve_branches(self) -> List[BranchInfo]:
        """
        Local branches with their last commit time and reachable commit count.

        Costs one `rev-list --count` per branch.
        """
        default_name = self.default_branch_name()
        output = self._git(
            [
                "for-each-ref",
                "--format=%(refname:short)|%(committerdate:iso-strict)|%(objectname)",
                "refs/heads/",
            ]
        )

        branches: List[BranchInfo] = []
        for line in output.splitlines():
            if not line.strip():
                continue
            parts = line.rsplit("|", 2)
            if len(parts) < 3:
                logger.warning(f"Skipping unparseable branch ref line: {line!r}")
                continue
            name, date, sha = (part.strip() for part in parts)
            commit_count = int(self._git(["rev-list", "--count", sha]).strip() or 0)

            branches.append(
                BranchInfo(
                    name=name,
                    is_default=name == default_name,
                    is_protected=name in PROTECTED_BRANCHES,
                    commit_count=commit_count,
                    last_commit_at=parse_datetime(date, default_now=False),
                    head_sha=sha,
                )
            )
        return branches

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    def resolve_commits(
        self, branch: str = "HEAD", limit: int | None = None, ref: str | None = None
    ) -> List[CommitInfo]:
        """
        Newest-first commits of `branch`, at most `limit` of them.

        `ref` overrides what git walks while `branch` is still the name
        recorded on each commit.
        """
        limit = limit or settings.COMMIT_LIMIT
        output = self._git(
            [
                "log",
                f"--format={COMMIT_LOG_FORMAT}",
                "--shortstat",
                "-n",
                str(limit),
                ref or branch,
                "--",
            ]
        )

        parser = CommitLogParser(branch)
        commits = parser.parse_text(output)
        self.diagnostics.extend(parser.diagnostics)

        for commit in commits:
            commit.file_changes = self.file_changes(commit.hash)
        return commits

    def file_changes(self, commit_hash: str) -> List[FileChangeInfo]:
        """Per-file numstat of one commit; empty when git cannot show it."""
        try:
            output = self._git(["show", "--numstat", "--format=", commit_hash, "--"])
        except ExtractionError as e:
            logger.warning(f"Could not read file changes for {commit_hash}: {e}")
            return []
        return parse_numstat(output)

    # ------------------------------------------------------------------
    # Contributors
    # ------------------------------------------------------------------

    def resolve_contributors(self) -> List[ContributorStats]:
        """Per-email totals over every commit in the clone, not just the stored ones."""
        output = self._git(["log", f"--format={CONTRIBUTOR_LOG_FORMAT}", "--numstat"])
        parser = ContributorLogParser()
        contributors = parser.parse_text(output)
        self.diagnostics.extend(parser.diagnostics)
        return contributors

    # ------------------------------------------------------------------
    # Files and languages
    # ------------------------------------------------------------------

    def tracked_paths(self) -> List[str]:
        output = self._git(["ls-files", "-z"])
        return [path for path in output.split("\0") if path]

    def build_file_tree(self) -> List[FileInfo]:
        files: List[FileInfo] = []
        for rel_path in self.tracked_paths():
            if is_ignored_path(rel_path):
                continue

            full_path = self.repo_path / rel_path
            if full_path.is_symlink() or not full_path.is_file():
                continue
            try:
                data = full_path.read_bytes()
            except OSError as e:
                logger.debug(f"Skipping unreadable file {rel_path}: {e}")
                continue

            size = len(data)
            lines = count_lines(data)
            if lines is None:
                lines = estimate_lines(size)

            name = os.path.basename(rel_path)
            extension = os.path.splitext(name)[1] or None
            files.append(
                FileInfo(
                    path=rel_path,
                    name=name,
                    extension=extension,
                    size=size,
                    lines=lines,
                    language=language_for_extension(extension),
                )
            )
        return files

    def detect_languages(self, files: Optional[List[FileInfo]] = None) -> List[LanguageStats]:
        """
        Bytes and lines per detected language, share of bytes across all of them.

        Pass the result of build_file_tree() to avoid walking the tree twice.
        """
        if files is None:
            files = self.build_file_tree()

        totals: Dict[str, Dict[str, int]] = defaultdict(lambda: {"bytes": 0, "lines": 0})
        for file in files:
            if not file.language:
                continue
            totals[file.language]["bytes"] += file.size
            totals[file.language]["lines"] += file.lines

        total_bytes = sum(stats["bytes"] for stats in totals.values())
        languages = [
            LanguageStats(
                name=name,
                bytes=stats["bytes"],
                lines=stats["lines"],
                percentage=(stats["bytes"] / total_bytes * 100) if total_bytes else 0.0,
            )
            for name, stats in totals.items()
        ]
        return sorted(languages, key=lambda lang: lang.percentage, reverse=True)

    def repository_size(self) -> int:
        """Total bytes on disk under the clone; 0 if it cannot be measured."""
        total = 0
        try:
            for root, _dirs, filenames in os.walk(self.repo_path, onerror=_raise):
                for filename in filenames:
                    total += os.lstat(os.path.join(root, filename)).st_size
        except OSError as e:
            logger.warning(f"Could not measure size of {self.repo_path}: {e}")
            return 0
        return total


def _raise(error: OSError) -> None:
    raise error
