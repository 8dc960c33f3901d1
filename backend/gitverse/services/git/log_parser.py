"""
Streaming parsers for git log output.

Commit log records are requested with COMMIT_LOG_FORMAT and --shortstat,
which makes git print, per commit:

    \x1e<hash>|<short hash>|<author>|<email>|<iso date>|<subject>
    <body line>
    ...
    \x1f
    <blank line>
     3 files changed, 10 insertions(+), 2 deletions(-)

A record starts at the RECORD_START separator and its body runs until the
BODY_END separator. Only the header line is split on "|", and the subject
takes whatever follows the fifth separator, so "|" in a subject or body
never shifts a field.
"""

import logging
import re
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from gitverse.services.git.constants import (
    BINARY_NUMSTAT_MARKER,
    BODY_END,
    FIELD_SEPARATOR,
    RECORD_START,
)
from gitverse.services.git.models import CommitInfo, ContributorStats, FileChangeInfo
from gitverse.utils.datetime import parse_datetime

logger = logging.getLogger(__name__)

COMMIT_LOG_FORMAT = "%x1e%H|%h|%an|%ae|%aI|%s%n%b%x1f"
CONTRIBUTOR_LOG_FORMAT = "%x1e%an|%ae|%aI"

SHORTSTAT_RE = re.compile(
    r"(\d+) files? changed"
    r"(?:, (\d+) insertions?\(\+\))?"
    r"(?:, (\d+) deletions?\(-\))?"
)

MIN_HEADER_FIELDS = 6


def _parse_count(value: str) -> int:
    value = value.strip()
    if value == BINARY_NUMSTAT_MARKER:
        return 0
    try:
        return int(value)
    except ValueError:
        return 0


def parse_numstat_line(line: str) -> Optional[FileChangeInfo]:
    """Parse `additions<TAB>deletions<TAB>path`; binary markers count as zero."""
    parts = line.split("\t", 2)
    if len(parts) < 3 or not parts[2].strip():
        return None
    return FileChangeInfo(
        path=parts[2].strip(),
        additions=_parse_count(parts[0]),
        deletions=_parse_count(parts[1]),
    )


def parse_numstat(output: str) -> List[FileChangeInfo]:
    changes = []
    for line in output.splitlines():
        if not line.strip():
            continue
        change = parse_numstat_line(line)
        if change is not None:
            changes.append(change)
    return changes


class _State(Enum):
    AWAITING_HEADER = "awaiting_header"
    READING_BODY = "reading_body"
    READING_STATS = "reading_stats"


class _PendingCommit:
    def __init__(self, header: str):
        self.fields = header.split(FIELD_SEPARATOR, MIN_HEADER_FIELDS - 1)
        self.body: List[str] = []
        self.additions = 0
        self.deletions = 0
        self.files_changed = 0


class CommitLogParser:
    """
    Turns a commit log stream into CommitInfo records.

    Malformed records are dropped and described in `diagnostics`; parsing
    carries on with the next record.
    """

    def __init__(self, branch: str):
        self.branch = branch
        self.diagnostics: List[str] = []
        self._state = _State.AWAITING_HEADER
        self._pending: Optional[_PendingCommit] = None

    def parse(self, lines: Iterable[str]) -> Iterator[CommitInfo]:
        for line in lines:
            line = line.rstrip("\r\n")

            if self._state is _State.READING_BODY:
                self._read_body(line)
                continue

            if line.startswith(RECORD_START):
                commit = self._finish()
                if commit is not None:
                    yield commit
                self._pending = _PendingCommit(line[len(RECORD_START):])
                self._state = _State.READING_BODY
                continue

            if self._state is _State.READING_STATS:
                self._read_stats(line)

        if self._state is _State.READING_BODY:
            self._drop(self._pending, "record truncated before end of body")
            self._pending = None
            self._state = _State.AWAITING_HEADER
        commit = self._finish()
        if commit is not None:
            yield commit

    def parse_text(self, text: str) -> List[CommitInfo]:
        return list(self.parse(text.split("\n")))

    def _read_body(self, line: str) -> None:
        head, separator, _ = line.partition(BODY_END)
        if separator:
            if head:
                self._pending.body.append(head)
            self._state = _State.READING_STATS
        else:
            self._pending.body.append(line)

    def _read_stats(self, line: str) -> None:
        stripped = line.strip()
        if not stripped:
            return
        match = SHORTSTAT_RE.search(stripped)
        if match:
            self._pending.files_changed = int(match.group(1))
            self._pending.additions = int(match.group(2) or 0)
            self._pending.deletions = int(match.group(3) or 0)

    def _drop(self, pending: _PendingCommit, reason: str) -> None:
        fields = pending.fields
        ref = fields[0].strip() if fields and fields[0].strip() else "<unknown>"
        message = f"Dropped commit {ref}: {reason}"
        self.diagnostics.append(message)
        logger.warning(message)

    def _finish(self) -> Optional[CommitInfo]:
        pending, self._pending = self._pending, None
        self._state = _State.AWAITING_HEADER
        if pending is None:
            return None

        if len(pending.fields) < MIN_HEADER_FIELDS:
            self._drop(
                pending,
                f"expected {MIN_HEADER_FIELDS} header fields, got {len(pending.fields)}",
            )
            return None

        hash_, short_hash, author_name, author_email, date, subject = (
            field.strip() for field in pending.fields
        )
        if not (hash_ and author_name and author_email and date and subject):
            self._drop(pending, "missing hash, author, date or subject")
            return None

        committed_at = parse_datetime(date, default_now=False)
        if committed_at is None:
            self._drop(pending, f"unparseable date {date!r}")
            return None

        return CommitInfo(
            hash=hash_,
            short_hash=short_hash or hash_[:7],
            message=subject,
            description="\n".join(pending.body).strip() or None,
            author_name=author_name,
            author_email=author_email,
            committed_at=committed_at,
            branch=self.branch,
            additions=pending.additions,
            deletions=pending.deletions,
            files_changed=pending.files_changed,
        )


class ContributorLogParser:
    """
    Aggregates an author/numstat stream into per-email contributor totals.

    Every header is one commit; the numstat lines after it belong to that
    commit. First/last commit are the min/max author dates seen per email.
    """

    def __init__(self) -> None:
        self.diagnostics: List[str] = []

    def parse(self, lines: Iterable[str]) -> List[ContributorStats]:
        contributors: Dict[str, ContributorStats] = {}
        current: Optional[ContributorStats] = None

        for line in lines:
            line = line.rstrip("\r\n")
            if not line.strip():
                continue

            if line.startswith(RECORD_START):
                current = self._read_header(line[len(RECORD_START):], contributors)
                continue

            if current is None or "\t" not in line:
                continue

            change = parse_numstat_line(line)
            if change is not None:
                current.additions += change.additions
                current.deletions += change.deletions

        return list(contributors.values())

    def parse_text(self, text: str) -> List[ContributorStats]:
        return self.parse(text.split("\n"))

    def _read_header(
        self, header: str, contributors: Dict[str, ContributorStats]
    ) -> Optional[ContributorStats]:
        parts = header.rsplit(FIELD_SEPARATOR, 2)
        if len(parts) < 3:
            self._skip(f"Skipped author line with missing fields: {header!r}")
            return None

        name, email, date = (part.strip() for part in parts)
        authored_at = parse_datetime(date, default_now=False)
        if not email or authored_at is None:
            self._skip(f"Skipped author line without email or date: {header!r}")
            return None

        existing = contributors.get(email)
        if existing is None:
            existing = ContributorStats(
                name=name,
                email=email,
                commits=0,
                additions=0,
                deletions=0,
                first_commit=authored_at,
                last_commit=authored_at,
            )
            contributors[email] = existing

        existing.commits += 1
        existing.first_commit = min(existing.first_commit, authored_at)
        existing.last_commit = max(existing.last_commit, authored_at)
        return existing

    def _skip(self, message: str) -> None:
        self.diagnostics.append(message)
        logger.warning(message)
