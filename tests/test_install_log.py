"""Tests for the install history log."""

import json

from ace_skills.install_log import InstallLogManager, categorize_error
from ace_skills.models import ErrorCategory, InstallOutcome, InstallStatus


def _outcome(name, status, error_message=None):
    return InstallOutcome(
        name=name,
        source=f"acme/{name}",
        status=status,
        error=categorize_error(error_message) if error_message else None,
        duration_seconds=0.5,
    )


class TestCategorizeError:
    """Error message classification."""

    def test_permission(self):
        assert categorize_error("Permission denied: '/x'").category == ErrorCategory.PERMISSION_ERROR

    def test_network(self):
        error = categorize_error("fatal: Could not resolve host: github.com")
        assert error.category == ErrorCategory.NETWORK_ERROR
        assert error.suggestion

    def test_not_found(self):
        assert categorize_error("repository not found").category == ErrorCategory.SOURCE_NOT_FOUND

    def test_filesystem(self):
        assert categorize_error("No space left on device").category == ErrorCategory.FILESYSTEM_ERROR

    def test_unknown(self):
        assert categorize_error("something odd").category == ErrorCategory.UNKNOWN

    def test_long_message_truncated(self):
        assert len(categorize_error("x" * 2000).message) == 500


class TestInstallLogManager:
    """Session lifecycle and statistics."""

    def test_session_written(self, tmp_path):
        manager = InstallLogManager(tmp_path)
        session_id = manager.start_session("/proj", "project", ["cursor"])
        manager.record_attempt(_outcome("a", InstallStatus.INSTALLED))
        manager.record_attempt(_outcome("b", InstallStatus.FAILED, "repository not found"))
        session = manager.end_session()

        assert session.session_id == session_id
        assert session.success is False
        assert manager.current_session is None

        details = manager.get_session_details(session_id)
        assert details["agents"] == ["cursor"]
        assert [a["status"] for a in details["attempts"]] == ["installed", "failed"]

        lines = (tmp_path / "install_attempts.jsonl").read_text().splitlines()
        assert [json.loads(line)["skill"] for line in lines] == ["a", "b"]

    def test_stats_aggregate(self, tmp_path):
        manager = InstallLogManager(tmp_path)
        for names in (["a", "b"], ["c"]):
            manager.start_session("/proj", "project", ["cursor"])
            for name in names:
                status = InstallStatus.FAILED if name == "b" else InstallStatus.INSTALLED
                manager.record_attempt(
                    _outcome(name, status, "Could not resolve host" if name == "b" else None)
                )
            manager.end_session()

        stats = manager.get_installation_stats()
        assert stats["total_attempts"] == 3
        assert stats["sessions"] == 2
        assert stats["by_status"]["installed"] == 2
        assert stats["by_status"]["failed"] == 1
        assert stats["error_categories"] == {"network_error": 1}
        assert len(stats["recent_attempts"]) == 3

    def test_stats_without_log(self, tmp_path):
        stats = InstallLogManager(tmp_path / "nothing").get_installation_stats()
        assert stats["total_attempts"] == 0
        assert stats["recent_attempts"] == []

    def test_corrupt_lines_skipped(self, tmp_path):
        (tmp_path / "install_attempts.jsonl").write_text(
            'not json\n{"session_id": "s", "skill": "a", "status": "installed"}\n'
        )
        stats = InstallLogManager(tmp_path).get_installation_stats()
        assert stats["total_attempts"] == 1

    def test_end_without_session(self, tmp_path):
        assert InstallLogManager(tmp_path).end_session() is None

    def test_record_without_session_dropped(self, tmp_path):
        manager = InstallLogManager(tmp_path)
        manager.record_attempt(_outcome("a", InstallStatus.INSTALLED))
        assert manager.current_session is None

    def test_unwritable_log_dir_does_not_raise(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        manager = InstallLogManager(blocker / "logs")
        manager.start_session("/proj", "project", ["cursor"])
        manager.record_attempt(_outcome("a", InstallStatus.INSTALLED))
        assert manager.end_session() is not None

    def test_unknown_session(self, tmp_path):
        assert InstallLogManager(tmp_path).get_session_details("nope") is None

    def test_session_id_cannot_escape_sessions_dir(self, tmp_path):
        logs = tmp_path / "logs"
        (logs / "sessions").mkdir(parents=True)
        (tmp_path / "secret.json").write_text('{"leaked": true}')

        manager = InstallLogManager(logs)
        assert manager.get_session_details("../../secret") is None
        assert manager.get_session_details("../sessions/x") is None
