import shutil
import tempfile
import unittest
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

from bson import ObjectId
from pymongo.errors import PyMongoError

from gitverse.core.tracing import TracingContext
from gitverse.entities import AnalysisRun, AnalysisRunStatus, Repository, RepositoryStatus
from gitverse.services.analysis_service import RepositoryAnalysisService, chunked
from gitverse.services.exceptions import (
    AnalysisInProgressError,
    CloneError,
    ExtractionError,
    RepositoryNotFoundError,
)
from gitverse.services.git.models import (
    BranchInfo,
    CommitInfo,
    ContributorStats,
    FileChangeInfo,
    FileInfo,
    LanguageStats,
)
from gitverse.utils.datetime import utc_now

WHEN = datetime(2024, 1, 2, 10, 0)
HASH_A = "a" * 40
HASH_B = "b" * 40


class FakeAnalysisStore:
    """In-memory stand-in for AnalysisStore enforcing the same natural keys."""

    def __init__(self):
        self.repositories = {}
        self.status_history = []
        self.branches = {}
        self.commits = {}
        self.file_changes = []
        self.files = {}
        self.contributors = []
        self.languages = []
        self.runs = []
        self.failing_hashes = set()
        self.failing_change_hashes = set()
        self.fail_start_run = False
        self.insert_files_calls = []

    def add_repository(self, **fields):
        repository = Repository(
            user_id="user-1",
            url="https://example.com/acme/demo.git",
            name="demo",
            **fields,
        )
        self.repositories[str(repository.id)] = repository
        return repository

    def get_repository(self, repository_id):
        return self.repositories.get(str(repository_id))

    def set_status(self, repository_id, status, **fields):
        self.status_history.append(status.value)
        repository = self.repositories[str(repository_id)]
        updated = repository.model_copy(update={"status": status.value, **fields})
        self.repositories[str(repository_id)] = updated
        return updated

    def start_run(self, repository_id, correlation_id):
        if self.fail_start_run:
            raise PyMongoError("run record rejected")
        run = AnalysisRun(
            repository_id=ObjectId(str(repository_id)),
            correlation_id=correlation_id,
            status=AnalysisRunStatus.RUNNING,
            started_at=utc_now(),
        )
        self.runs.append({"run": run, "status": AnalysisRunStatus.RUNNING.value})
        return run

    def finish_run(self, run, status, counters, error_message=None):
        for entry in self.runs:
            if entry["run"].id == run.id:
                entry.update(status=status.value, counters=counters, error_message=error_message)

    def insert_branches(self, repository_id, branches):
        inserted = 0
        for branch in branches:
            key = (str(repository_id), branch.name)
            if key not in self.branches:
                self.branches[key] = branch
                inserted += 1
        return inserted

    def known_commit_hashes(self, repository_id):
        return {h for (repo, h) in self.commits if repo == str(repository_id)}

    def insert_commit(self, repository_id, commit):
        key = (str(repository_id), commit.hash)
        if commit.hash in self.failing_hashes or key in self.commits:
            raise PyMongoError(f"rejected {commit.hash}")
        self.commits[key] = commit
        return commit

    def insert_file_changes(self, commit, changes):
        if commit.hash in self.failing_change_hashes:
            # Bulk insert dies after the first row
            self.file_changes.append((commit.hash, changes[0].path))
            raise PyMongoError(f"file changes of {commit.hash} rejected")
        self.file_changes.extend((commit.hash, change.path) for change in changes)
        return len(changes)

    def discard_commit(self, commit):
        self.commits = {key: c for key, c in self.commits.items() if key[1] != commit.hash}
        self.file_changes = [fc for fc in self.file_changes if fc[0] != commit.hash]

    def known_file_paths(self, repository_id):
        return {p for (repo, p) in self.files if repo == str(repository_id)}

    def insert_files(self, repository_id, files):
        self.insert_files_calls.append([f.path for f in files])
        for file in files:
            self.files[(str(repository_id), file.path)] = file
        return len(files)

    def replace_contributors(self, repository_id, contributors):
        self.contributors = list(contributors)
        return len(self.contributors)

    def replace_languages(self, repository_id, languages):
        self.languages = list(languages)
        return len(self.languages)


class StubExtractor:
    """Extractor double returning canned results; configure via make_extractor()."""

    branches = []
    commits = []
    files = []
    contributors = []
    languages = []
    dropped = []
    fail_on = None
    clone_calls = None
    commit_calls = None

    def __init__(self, repo_path):
        self.repo_path = repo_path
        self.diagnostics = []

    @classmethod
    def clone(cls, url, destination, depth=None):
        cls.clone_calls.append((url, destination, depth))
        destination.mkdir(parents=True)
        (destination / "README.md").write_text("# demo\n")
        if cls.fail_on == "clone":
            raise CloneError(f"Failed to clone repository {url}")
        return cls(destination)

    def _maybe_fail(self, step):
        if self.fail_on == step:
            raise ExtractionError(f"{step} failed")

    def repository_size(self):
        return 1234

    def resolve_branches(self):
        self._maybe_fail("branches")
        return list(self.branches)

    def resolve_commits(self, branch="HEAD", limit=None, ref=None):
        self.commit_calls.append((branch, limit, ref))
        self._maybe_fail("commits")
        self.diagnostics.extend(self.dropped)
        return list(self.commits)

    def build_file_tree(self):
        self._maybe_fail("files")
        return list(self.files)

    def resolve_contributors(self):
        self._maybe_fail("contributors")
        return list(self.contributors)

    def detect_languages(self, files=None):
        self._maybe_fail("languages")
        return list(self.languages)


def make_extractor(**overrides):
    attrs = {
        "branches": [
            BranchInfo("main", True, True, 2, WHEN, "sha-main"),
            BranchInfo("feature", False, False, 1, WHEN, "sha-feature"),
        ],
        "commits": [
            CommitInfo(
                hash=HASH_B,
                short_hash=HASH_B[:7],
                message="Edit a.py",
                author_name="Bob",
                author_email="bob@example.com",
                committed_at=WHEN,
                branch="main",
                file_changes=[FileChangeInfo("a.py", 2, 3), FileChangeInfo("notes.md", 0, 4)],
            ),
            CommitInfo(
                hash=HASH_A,
                short_hash=HASH_A[:7],
                message="Add a.py",
                author_name="Ann",
                author_email="ann@example.com",
                committed_at=WHEN,
                branch="main",
                file_changes=[FileChangeInfo("a.py", 10, 0)],
            ),
        ],
        "files": [
            FileInfo("a.py", "a.py", ".py", 600, 9, "Python"),
            FileInfo("web/app.ts", "app.ts", ".ts", 300, 12, "TypeScript"),
            FileInfo("package.json", "package.json", ".json", 9000, 300, "JSON"),
        ],
        "contributors": [
            ContributorStats("Ann", "ann@example.com", 2, 10, 0, WHEN, WHEN),
            ContributorStats("Bob", "bob@example.com", 1, 2, 7, WHEN, WHEN),
        ],
        "languages": [
            LanguageStats("JSON", 9000, 300, 90.91),
            LanguageStats("Python", 600, 9, 6.06),
            LanguageStats("TypeScript", 300, 12, 3.03),
        ],
        "dropped": [],
        "fail_on": None,
        "clone_calls": [],
        "commit_calls": [],
    }
    attrs.update(overrides)
    return type("Extractor", (StubExtractor,), attrs)


class TestRepositoryAnalysisService(unittest.TestCase):
    def setUp(self):
        self.scratch_root = Path(tempfile.mkdtemp())
        self.store = FakeAnalysisStore()
        self.repository = self.store.add_repository()
        self.repo_id = str(self.repository.id)

    def tearDown(self):
        TracingContext.clear()
        shutil.rmtree(self.scratch_root, ignore_errors=True)

    def _service(self, extractor_cls, **kwargs):
        options = {
            "scratch_root": self.scratch_root,
            "clone_depth": 50,
            "commit_limit": 100,
            "file_batch_size": 500,
        }
        options.update(kwargs)
        return RepositoryAnalysisService(self.store, extractor_cls=extractor_cls, **options)

    def _scratch_dirs(self):
        return list(self.scratch_root.iterdir())

    def test_successful_analysis(self):
        extractor_cls = make_extractor()

        summary = self._service(extractor_cls).analyze(self.repo_id)

        self.assertEqual(self.store.status_history, ["analyzing", "completed"])
        repository = self.store.get_repository(self.repo_id)
        self.assertEqual(repository.status, "completed")
        self.assertEqual(repository.default_branch, "main")
        self.assertEqual(repository.size, 1234)
        self.assertIsNotNone(repository.last_analyzed_at)
        self.assertIsNone(repository.last_error)

        url, destination, depth = extractor_cls.clone_calls[0]
        self.assertEqual(url, "https://example.com/acme/demo.git")
        self.assertEqual(depth, 50)
        self.assertTrue(destination.name.startswith(f"repo-{self.repo_id}-"))
        self.assertEqual(extractor_cls.commit_calls, [("main", 100, "main")])

        self.assertEqual(len(self.store.branches), 2)
        self.assertEqual(self.store.known_commit_hashes(self.repo_id), {HASH_A, HASH_B})
        self.assertEqual(
            sorted(self.store.file_changes),
            [(HASH_A, "a.py"), (HASH_B, "a.py"), (HASH_B, "notes.md")],
        )
        self.assertEqual(len(self.store.files), 3)

        shares = {stats.email: pct for stats, pct in self.store.contributors}
        self.assertAlmostEqual(shares["ann@example.com"], 200 / 3)
        self.assertAlmostEqual(shares["bob@example.com"], 100 / 3)

        self.assertEqual(
            [(lang.name, lang.percentage) for lang in self.store.languages],
            [("Python", Decimal("66.67")), ("TypeScript", Decimal("33.33"))],
        )

        self.assertEqual(summary.commits_inserted, 2)
        self.assertEqual(summary.files_inserted, 3)
        self.assertEqual(summary.contributors, 2)
        self.assertEqual(summary.languages, 2)
        self.assertEqual(self.store.runs[0]["status"], "completed")
        self.assertEqual(self.store.runs[0]["counters"]["commits_inserted"], 2)
        self.assertEqual(self._scratch_dirs(), [])

    def test_missing_default_branch_falls_back_to_main_and_head(self):
        extractor_cls = make_extractor(
            branches=[BranchInfo("develop", False, True, 2, WHEN, "sha-dev")]
        )

        self._service(extractor_cls).analyze(self.repo_id)

        self.assertEqual(extractor_cls.commit_calls, [("main", 100, "HEAD")])
        self.assertEqual(self.store.get_repository(self.repo_id).default_branch, "main")

    def test_extraction_failure_marks_failed_and_cleans_up(self):
        extractor_cls = make_extractor(fail_on="files")

        with self.assertRaises(ExtractionError):
            self._service(extractor_cls).analyze(self.repo_id)

        self.assertEqual(self.store.status_history, ["analyzing", "failed"])
        repository = self.store.get_repository(self.repo_id)
        self.assertEqual(repository.last_error, "files failed")
        self.assertEqual(self.store.runs[0]["status"], "failed")
        self.assertEqual(self.store.runs[0]["error_message"], "files failed")
        # Facts stored before the failure are kept
        self.assertEqual(len(self.store.commits), 2)
        self.assertEqual(self._scratch_dirs(), [])

    def test_clone_failure_marks_failed_and_cleans_up(self):
        with self.assertRaises(CloneError):
            self._service(make_extractor(fail_on="clone")).analyze(self.repo_id)

        self.assertEqual(self.store.get_repository(self.repo_id).status, "failed")
        self.assertEqual(self.store.commits, {})
        self.assertEqual(self._scratch_dirs(), [])

    def test_run_record_failure_marks_failed(self):
        self.store.fail_start_run = True
        extractor_cls = make_extractor()

        with self.assertRaises(PyMongoError):
            self._service(extractor_cls).analyze(self.repo_id)

        self.assertEqual(self.store.status_history, ["analyzing", "failed"])
        self.assertEqual(self.store.get_repository(self.repo_id).last_error, "run record rejected")
        self.assertEqual(self.store.runs, [])
        self.assertEqual(extractor_cls.clone_calls, [])
        self.assertEqual(self._scratch_dirs(), [])

    @patch("gitverse.services.scratch.shutil.rmtree", side_effect=OSError("busy"))
    def test_cleanup_failure_does_not_mask_pipeline_error(self, mock_rmtree):
        with self.assertRaises(CloneError):
            self._service(make_extractor(fail_on="clone")).analyze(self.repo_id)

        mock_rmtree.assert_called_once()
        self.assertEqual(self.store.get_repository(self.repo_id).status, "failed")

    @patch("gitverse.services.scratch.shutil.rmtree", side_effect=OSError("busy"))
    def test_cleanup_failure_does_not_fail_successful_run(self, mock_rmtree):
        summary = self._service(make_extractor()).analyze(self.repo_id)

        mock_rmtree.assert_called_once()
        self.assertEqual(summary.commits_inserted, 2)
        self.assertEqual(self.store.get_repository(self.repo_id).status, "completed")

    def test_reanalysis_is_idempotent(self):
        service = self._service(make_extractor())

        service.analyze(self.repo_id)
        summary = service.analyze(self.repo_id)

        self.assertEqual(summary.commits_inserted, 0)
        self.assertEqual(summary.commits_failed, 0)
        self.assertEqual(summary.files_inserted, 0)
        self.assertEqual(len(self.store.commits), 2)
        self.assertEqual(len(self.store.file_changes), 3)
        self.assertEqual(len(self.store.files), 3)
        self.assertEqual(len(self.store.contributors), 2)
        self.assertEqual(len(self.store.languages), 2)
        self.assertEqual(
            self.store.status_history, ["analyzing", "completed", "analyzing", "completed"]
        )

    def test_failed_run_then_success_adds_no_duplicates(self):
        with self.assertRaises(ExtractionError):
            self._service(make_extractor(fail_on="contributors")).analyze(self.repo_id)
        self.assertEqual(len(self.store.commits), 2)

        summary = self._service(make_extractor()).analyze(self.repo_id)

        self.assertEqual(summary.commits_inserted, 0)
        self.assertEqual(len(self.store.commits), 2)
        self.assertEqual(len(self.store.file_changes), 3)
        repository = self.store.get_repository(self.repo_id)
        self.assertEqual(repository.status, "completed")
        self.assertIsNone(repository.last_error)

    def test_single_commit_failure_is_counted_and_skipped(self):
        self.store.failing_hashes = {HASH_B}

        summary = self._service(make_extractor()).analyze(self.repo_id)

        self.assertEqual(summary.commits_inserted, 1)
        self.assertEqual(summary.commits_failed, 1)
        self.assertEqual(self.store.known_commit_hashes(self.repo_id), {HASH_A})
        self.assertEqual(self.store.file_changes, [(HASH_A, "a.py")])
        self.assertEqual(self.store.get_repository(self.repo_id).status, "completed")

    def test_file_change_failure_removes_commit_so_next_run_retries(self):
        self.store.failing_change_hashes = {HASH_B}
        service = self._service(make_extractor())

        summary = service.analyze(self.repo_id)

        self.assertEqual(summary.commits_inserted, 1)
        self.assertEqual(summary.commits_failed, 1)
        self.assertEqual(self.store.known_commit_hashes(self.repo_id), {HASH_A})
        self.assertEqual(self.store.file_changes, [(HASH_A, "a.py")])

        self.store.failing_change_hashes = set()
        summary = service.analyze(self.repo_id)

        self.assertEqual(summary.commits_inserted, 1)
        self.assertEqual(summary.commits_failed, 0)
        self.assertEqual(self.store.known_commit_hashes(self.repo_id), {HASH_A, HASH_B})
        self.assertEqual(
            sorted(self.store.file_changes),
            [(HASH_A, "a.py"), (HASH_B, "a.py"), (HASH_B, "notes.md")],
        )

    def test_dropped_commits_are_counted(self):
        extractor_cls = make_extractor(dropped=["Dropped commit x: missing hash, author, date or subject"])

        summary = self._service(extractor_cls).analyze(self.repo_id)

        self.assertEqual(summary.commits_dropped, 1)
        self.assertEqual(summary.commits_found, 2)

    def test_files_are_inserted_in_batches(self):
        files = [FileInfo(f"f{i}.py", f"f{i}.py", ".py", 10, 1, "Python") for i in range(5)]

        summary = self._service(make_extractor(files=files), file_batch_size=2).analyze(self.repo_id)

        self.assertEqual([len(batch) for batch in self.store.insert_files_calls], [2, 2, 1])
        self.assertEqual(summary.files_inserted, 5)

    def test_only_new_files_are_inserted(self):
        self._service(make_extractor()).analyze(self.repo_id)
        extra = FileInfo("new.py", "new.py", ".py", 5, 1, "Python")
        extractor_cls = make_extractor(files=make_extractor().files + [extra])

        summary = self._service(extractor_cls).analyze(self.repo_id)

        self.assertEqual(summary.files_inserted, 1)
        self.assertEqual(self.store.insert_files_calls[-1], ["new.py"])

    def test_lock_contention_leaves_repository_untouched(self):
        @contextmanager
        def busy_lock(repository_id):
            raise AnalysisInProgressError(repository_id)
            yield

        extractor_cls = make_extractor()
        service = self._service(extractor_cls, lock_factory=busy_lock)

        with self.assertRaises(AnalysisInProgressError):
            service.analyze(self.repo_id)

        self.assertEqual(self.store.status_history, [])
        self.assertEqual(extractor_cls.clone_calls, [])
        self.assertEqual(self.store.runs, [])

    def test_lock_is_held_for_the_whole_run(self):
        events = []

        @contextmanager
        def recording_lock(repository_id):
            events.append(("acquire", repository_id))
            yield
            events.append(("release", repository_id))

        self._service(make_extractor(), lock_factory=recording_lock).analyze(self.repo_id)

        self.assertEqual(events, [("acquire", self.repo_id), ("release", self.repo_id)])

    def test_unknown_repository(self):
        extractor_cls = make_extractor()

        with self.assertRaises(RepositoryNotFoundError):
            self._service(extractor_cls).analyze(str(ObjectId()))

        self.assertEqual(self.store.status_history, [])
        self.assertEqual(extractor_cls.clone_calls, [])


class TestChunked(unittest.TestCase):
    def test_chunked(self):
        self.assertEqual(list(chunked([1, 2, 3, 4, 5], 2)), [[1, 2], [3, 4], [5]])
        self.assertEqual(list(chunked([], 3)), [])


if __name__ == "__main__":
    unittest.main()
