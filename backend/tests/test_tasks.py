import unittest
from pathlib import Path
from unittest.mock import MagicMock, PropertyMock, patch

from bson import ObjectId

from gitverse.core.tracing import TracingContext
from gitverse.entities import Repository, RepositoryStatus
from gitverse.services.analysis_service import AnalysisSummary
from gitverse.services.exceptions import (
    AnalysisInProgressError,
    ExtractionError,
    RepositoryNotFoundError,
)
from gitverse.tasks.analysis import analyze_repository
from gitverse.tasks.base import PipelineTask
from gitverse.tasks.maintenance import (
    STALE_ANALYSIS_ERROR,
    cleanup_analysis_runs,
    cleanup_scratch_directories,
    fail_stale_analyses,
)


class TestAnalyzeRepositoryTask(unittest.TestCase):
    def setUp(self):
        patcher = patch.object(PipelineTask, "analysis_service")
        self.mock_factory = patcher.start()
        self.addCleanup(patcher.stop)
        self.service = self.mock_factory.return_value
        self.repo_id = str(ObjectId())

    def test_returns_summary(self):
        self.service.analyze.return_value = AnalysisSummary(commits_inserted=3, files_inserted=4)

        result = analyze_repository(self.repo_id)

        self.service.analyze.assert_called_once_with(self.repo_id)
        self.assertEqual(result["status"], "completed")
        self.assertEqual(result["commits_inserted"], 3)
        self.assertEqual(result["files_inserted"], 4)

    def test_sets_and_clears_tracing_context(self):
        seen = {}

        def analyze(repository_id):
            seen.update(TracingContext.get())
            return AnalysisSummary()

        self.service.analyze.side_effect = analyze

        analyze_repository(self.repo_id)

        self.assertEqual(seen["repo_id"], self.repo_id)
        self.assertEqual(seen["task_name"], "analyze_repository")
        self.assertTrue(seen["correlation_id"])
        self.assertEqual(TracingContext.get()["repo_id"], "")

    def test_in_progress_is_skipped(self):
        self.service.analyze.side_effect = AnalysisInProgressError(self.repo_id)

        result = analyze_repository(self.repo_id)

        self.assertEqual(result, {"repository_id": self.repo_id, "status": "skipped", "reason": "in_progress"})

    def test_deleted_repository_is_skipped(self):
        self.service.analyze.side_effect = RepositoryNotFoundError(self.repo_id)

        result = analyze_repository(self.repo_id)

        self.assertEqual(result["reason"], "not_found")

    def test_pipeline_errors_propagate(self):
        self.service.analyze.side_effect = ExtractionError("git log failed")

        with self.assertRaises(ExtractionError):
            analyze_repository(self.repo_id)
        self.assertEqual(TracingContext.get()["correlation_id"], "")


class TestPipelineTaskServiceFactory(unittest.TestCase):
    @patch.object(PipelineTask, "redis", new_callable=PropertyMock)
    @patch.object(PipelineTask, "db", new_callable=PropertyMock)
    def test_service_uses_redis_lock(self, mock_db, mock_redis):
        mock_db.return_value = MagicMock()
        client = MagicMock()
        client.lock.return_value.acquire.return_value = False
        mock_redis.return_value = client

        service = analyze_repository.analysis_service()

        with self.assertRaises(AnalysisInProgressError):
            service.analyze("abc")
        client.lock.assert_called_once()


class TestMaintenanceTasks(unittest.TestCase):
    @patch("gitverse.tasks.maintenance.remove_scratch_directory")
    @patch("gitverse.tasks.maintenance.find_stale_scratch_directories")
    def test_cleanup_scratch_directories(self, mock_find, mock_remove):
        mock_find.return_value = [Path("/tmp/repo-a-1"), Path("/tmp/repo-b-2")]
        mock_remove.side_effect = [True, False]

        result = cleanup_scratch_directories(max_age_hours=3)

        self.assertEqual(mock_find.call_args[0][1], 3 * 3600)
        self.assertEqual(result["removed_count"], 1)
        self.assertEqual(result["failed_count"], 1)
        self.assertEqual(result["status"], "partial")

    @patch.object(PipelineTask, "redis", new_callable=PropertyMock)
    @patch.object(PipelineTask, "db", new_callable=PropertyMock)
    @patch("gitverse.tasks.maintenance.AnalysisStore")
    def test_fail_stale_analyses(self, MockStore, mock_db, mock_redis):
        stuck = Repository(user_id="u", url="https://x/a.git", name="a", status=RepositoryStatus.ANALYZING)
        running = Repository(user_id="u", url="https://x/b.git", name="b", status=RepositoryStatus.ANALYZING)
        store = MockStore.return_value
        store.find_stale_analyzing.return_value = [stuck, running]
        client = MagicMock()
        client.exists.side_effect = lambda key: key.endswith(str(running.id))
        mock_redis.return_value = client

        result = fail_stale_analyses(max_age_hours=2)

        store.set_status.assert_called_once_with(
            str(stuck.id), RepositoryStatus.FAILED, last_error=STALE_ANALYSIS_ERROR
        )
        self.assertEqual(result["repository_ids"], [str(stuck.id)])
        self.assertEqual(result["failed_count"], 1)

    @patch.object(PipelineTask, "db", new_callable=PropertyMock)
    @patch("gitverse.tasks.maintenance.AnalysisRunRepository")
    def test_cleanup_analysis_runs(self, MockRuns, mock_db):
        MockRuns.return_value.cleanup_old_runs.return_value = 7

        result = cleanup_analysis_runs(days=30)

        MockRuns.return_value.cleanup_old_runs.assert_called_once_with(days=30)
        self.assertEqual(result["status"], "success")
        self.assertEqual(result["deleted_count"], 7)

    @patch.object(PipelineTask, "db", new_callable=PropertyMock)
    @patch("gitverse.tasks.maintenance.AnalysisRunRepository")
    def test_cleanup_analysis_runs_failure_is_reported(self, MockRuns, mock_db):
        MockRuns.return_value.cleanup_old_runs.side_effect = RuntimeError("mongo down")

        result = cleanup_analysis_runs()

        self.assertEqual(result["status"], "failed")
        self.assertIn("mongo down", result["error"])


if __name__ == "__main__":
    unittest.main()
