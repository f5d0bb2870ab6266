"""
Install history for ace.

Every ``install_skills`` run is a session: each skill attempt is recorded
with its outcome, duration and (on failure) a categorized error.  Sessions
are stored as individual JSON files and every attempt is appended to a JSONL
log that backs ``ace stats``.  Problems writing the history are logged and
never interrupt an installation.
"""

import json
import logging
import platform
import sys
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from .models import (
    ErrorCategory,
    InstallationError,
    InstallOutcome,
    InstallSession,
    InstallStatus,
    Scope,
)

logger = logging.getLogger(__name__)

RECENT_ATTEMPTS_LIMIT = 20


def categorize_error(message: str) -> InstallationError:
    """Classify a fetch failure message and attach a suggested fix."""
    text = message.lower()

    if "permission denied" in text or "eacces" in text or "operation not permitted" in text:
        category = ErrorCategory.PERMISSION_ERROR
        suggestion = "Check write permissions on the skills directory"
    elif (
        "could not resolve host" in text
        or "network" in text
        or "connection" in text
        or "timed out" in text
        or "timeout" in text
    ):
        category = ErrorCategory.NETWORK_ERROR
        suggestion = "Check internet connection and try again"
    elif (
        "not found" in text
        or "404" in text
        or "does not exist" in text
        or "authentication failed" in text
    ):
        category = ErrorCategory.SOURCE_NOT_FOUND
        suggestion = "The skill source may have moved or been removed"
    elif "no space" in text or "disk" in text or "file exists" in text:
        category = ErrorCategory.FILESYSTEM_ERROR
        suggestion = "Free up disk space or remove the conflicting path"
    else:
        category = ErrorCategory.UNKNOWN
        suggestion = "Re-run with --verbose for the full error output"

    return InstallationError(category=category, message=message[:500], suggestion=suggestion)


class InstallLogManager:
    """Records install sessions under ``log_dir``."""

    def __init__(self, log_dir: Optional[Union[str, Path]] = None) -> None:
        self.log_dir = Path(log_dir) if log_dir else Path.home() / ".ace" / "logs"
        self.attempts_log = self.log_dir / "install_attempts.jsonl"
        self.sessions_dir = self.log_dir / "sessions"

        self.current_session: Optional[InstallSession] = None

    # -- session lifecycle ----------------------------------------------------

    def start_session(
        self,
        project_dir: Union[str, Path],
        scope: Union[str, Scope],
        agents: Sequence[str],
    ) -> str:
        """Start a new install session and return its id."""
        if self.current_session is not None:
            logger.warning(
                "Session %s was not ended; starting a new one", self.current_session.session_id
            )

        session_id = str(uuid.uuid4())
        self.current_session = InstallSession(
            session_id=session_id,
            project_dir=str(project_dir),
            scope=Scope(scope),
            agents=list(agents),
            started_at=datetime.now(),
            system_info=self._get_system_info(),
        )
        logger.info("Started install session %s", session_id)
        return session_id

    def record_attempt(self, outcome: InstallOutcome) -> None:
        if self.current_session is None:
            logger.warning("No active install session; dropping record for %s", outcome.name)
            return
        self.current_session.attempts.append(outcome)

    def end_session(self) -> Optional[InstallSession]:
        """Finish the current session and persist it."""
        session = self.current_session
        if session is None:
            logger.warning("No active session to end")
            return None

        session.ended_at = datetime.now()
        session.duration_seconds = (session.ended_at - session.started_at).total_seconds()

        self._save_session_log(session)
        self._append_attempts(session)

        logger.info(
            "Ended install session %s - %d attempt(s), success: %s",
            session.session_id,
            len(session.attempts),
            session.success,
        )
        self.current_session = None
        return session

    # -- persistence ----------------------------------------------------------

    def _get_system_info(self) -> Dict[str, str]:
        return {
            "platform": platform.platform(),
            "python_version": sys.version.split()[0],
            "system": platform.system(),
        }

    def _save_session_log(self, session: InstallSession) -> None:
        session_file = self.sessions_dir / f"{session.session_id}.json"
        try:
            self.sessions_dir.mkdir(parents=True, exist_ok=True)
            with open(session_file, "w", encoding="utf-8") as f:
                json.dump(session.model_dump(mode="json"), f, indent=2)
        except OSError as exc:
            logger.error("Failed to save session log %s: %s", session_file, exc)

    def _append_attempts(self, session: InstallSession) -> None:
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            with open(self.attempts_log, "a", encoding="utf-8") as f:
                for attempt in session.attempts:
                    entry = {
                        "session_id": session.session_id,
                        "project_dir": session.project_dir,
                        "scope": session.scope.value,
                        "skill": attempt.name,
                        "source": attempt.source,
                        "status": attempt.status.value,
                        "error_category": attempt.error.category.value if attempt.error else None,
                        "duration_seconds": attempt.duration_seconds,
                        "timestamp": session.started_at.isoformat(),
                    }
                    f.write(json.dumps(entry) + "\n")
        except OSError as exc:
            logger.error("Failed to update attempts log: %s", exc)

    # -- queries --------------------------------------------------------------

    def get_installation_stats(self) -> Dict[str, Any]:
        """Aggregate the attempts log."""
        stats: Dict[str, Any] = {
            "total_attempts": 0,
            "by_status": {status.value: 0 for status in InstallStatus},
            "error_categories": {},
            "sessions": 0,
            "recent_attempts": [],
        }
        if not self.attempts_log.exists():
            return stats

        sessions = set()
        recent: List[Dict[str, Any]] = []
        try:
            with open(self.attempts_log, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entry = json.loads(line)
                    except json.JSONDecodeError:
                        logger.debug("Skipping corrupt attempts log line")
                        continue
                    if not isinstance(entry, dict):
                        continue

                    stats["total_attempts"] += 1
                    sessions.add(entry.get("session_id"))
                    status = entry.get("status", "unknown")
                    stats["by_status"][status] = stats["by_status"].get(status, 0) + 1

                    category = entry.get("error_category")
                    if category:
                        stats["error_categories"][category] = (
                            stats["error_categories"].get(category, 0) + 1
                        )

                    recent.append(
                        {
                            "skill": entry.get("skill"),
                            "status": status,
                            "timestamp": entry.get("timestamp") or "",
                            "duration": entry.get("duration_seconds"),
                        }
                    )
        except OSError as exc:
            logger.error("Failed to read attempts log: %s", exc)

        stats["sessions"] = len(sessions)
        stats["recent_attempts"] = sorted(
            recent[-RECENT_ATTEMPTS_LIMIT:],
            key=lambda x: x["timestamp"],
            reverse=True,
        )
        return stats

    def get_session_details(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Return a stored session, or ``None`` if unknown."""
        try:
            session_id = str(uuid.UUID(session_id))
        except ValueError:
            logger.warning("Invalid session id %r", session_id)
            return None

        session_file = self.sessions_dir / f"{session_id}.json"
        if not session_file.exists():
            return None
        try:
            with open(session_file, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Failed to read session %s: %s", session_id, exc)
            return None
