"""
JSON-file store for interview sessions and reports.

The store is the sole owner of session and report state. Pipeline components
read and upsert through it and never keep authoritative copies between calls.
"""
import os
import json
import uuid
import logging
import threading
from typing import Dict, List, Optional, Any

from ...interview.models import (
    InterviewSession, InterviewReport, SessionStatus, Difficulty, VisaTypeConfig,
    ARTIFACT_FIELDS, can_transition, utc_now
)
from ...interview.errors import NotFound, InvalidTransition

logger = logging.getLogger("store")


class SessionStore:
    """
    Persists sessions under ``<root>/sessions`` and reports under ``<root>/reports``,
    one JSON file per entity. Visa type configs are read from ``<root>/visa_types``.
    """

    def __init__(self, root_dir: str):
        self.root_dir = root_dir
        self.sessions_dir = os.path.join(root_dir, "sessions")
        self.reports_dir = os.path.join(root_dir, "reports")
        self.visa_types_dir = os.path.join(root_dir, "visa_types")
        # Analysis may run in an executor thread next to the event loop
        self._lock = threading.RLock()

        for directory in (self.sessions_dir, self.reports_dir, self.visa_types_dir):
            os.makedirs(directory, exist_ok=True)

    def _session_path(self, session_id: str) -> str:
        return os.path.join(self.sessions_dir, f"{session_id}.json")

    def _report_path(self, session_id: str) -> str:
        return os.path.join(self.reports_dir, f"{session_id}.json")

    def _read_json(self, path: str) -> Optional[Dict[str, Any]]:
        if not os.path.exists(path):
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def _write_json(self, path: str, data: Dict[str, Any]) -> None:
        tmp_path = f"{path}.tmp"
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)

    # -- sessions -------------------------------------------------------------

    def create_session(self,
                       user_id: str,
                       country_id: str,
                       visa_type_id: str,
                       difficulty: Difficulty = Difficulty.MEDIUM,
                       name: Optional[str] = None,
                       session_id: Optional[str] = None) -> InterviewSession:
        """Create a new pending session."""
        session = InterviewSession(
            id=session_id or str(uuid.uuid4()),
            user_id=user_id,
            country_id=country_id,
            visa_type_id=visa_type_id,
            difficulty=Difficulty(difficulty),
            name=name,
        )
        with self._lock:
            if os.path.exists(self._session_path(session.id)):
                raise InvalidTransition(f"Session {session.id} already exists")
            self._write_json(self._session_path(session.id), session.to_dict())
        logger.info(f"Created session {session.id} for user {user_id}")
        return session

    def get_session(self, session_id: str) -> Optional[InterviewSession]:
        with self._lock:
            data = self._read_json(self._session_path(session_id))
        return InterviewSession.from_dict(data) if data else None

    def require_session(self, session_id: str) -> InterviewSession:
        session = self.get_session(session_id)
        if session is None:
            raise NotFound(f"Session {session_id} not found")
        return session

    def list_sessions(self, user_id: Optional[str] = None) -> List[InterviewSession]:
        """List sessions, newest first, optionally for a single user."""
        with self._lock:
            filenames = [f for f in os.listdir(self.sessions_dir) if f.endswith('.json')]
            sessions = [InterviewSession.from_dict(self._read_json(os.path.join(self.sessions_dir, f)))
                        for f in filenames]
        if user_id is not None:
            sessions = [s for s in sessions if s.user_id == user_id]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    def update_session(self, session_id: str, **changes: Any) -> InterviewSession:
        """
        Apply changes to a session.

        Raises:
            NotFound: If the session does not exist
            InvalidTransition: If the status would move backwards, the provider call id
                would be replaced, or already written artifacts would change
        """
        with self._lock:
            session = self.require_session(session_id)

            if "status" in changes:
                target = SessionStatus(changes["status"])
                if not can_transition(session.status, target):
                    raise InvalidTransition(
                        f"Session {session_id} cannot move from {session.status.value} to {target.value}"
                    )
                changes["status"] = target

            new_call_id = changes.get("provider_call_id")
            if new_call_id is not None and session.provider_call_id not in (None, new_call_id):
                raise InvalidTransition(f"Session {session_id} already has provider call {session.provider_call_id}")

            if session.artifacts_written:
                for name in ARTIFACT_FIELDS:
                    if name in changes and changes[name] != getattr(session, name):
                        raise InvalidTransition(f"Artifacts of session {session_id} are already written")

            for name, value in changes.items():
                if name not in InterviewSession.__dataclass_fields__ or name == "id":
                    raise ValueError(f"Unknown session field: {name}")
                setattr(session, name, value)

            self._write_json(self._session_path(session_id), session.to_dict())

        logger.debug(f"Updated session {session_id}: {sorted(changes)}")
        return session

    def set_public(self, session_id: str, is_public: bool) -> InterviewSession:
        """Flip the sharing flag owned by the sharing surface."""
        return self.update_session(session_id, is_public=bool(is_public))

    # -- reports --------------------------------------------------------------

    def get_report(self, session_id: str) -> Optional[InterviewReport]:
        with self._lock:
            data = self._read_json(self._report_path(session_id))
        return InterviewReport.from_dict(data) if data else None

    def upsert_report(self, report: InterviewReport) -> InterviewReport:
        """Insert or overwrite the single report of a session."""
        with self._lock:
            session = self.require_session(report.session_id)
            if session.status == SessionStatus.FAILED:
                raise InvalidTransition(f"Session {session.id} failed; reports are not written for failed calls")

            existing = self._read_json(self._report_path(report.session_id))
            if existing:
                report.created_at = existing.get("created_at", report.created_at)
                report.updated_at = utc_now()
            self._write_json(self._report_path(report.session_id), report.to_dict())

        logger.info(f"{'Updated' if existing else 'Created'} report for session {report.session_id}")
        return report

    def get_public_report(self, session_id: str) -> Optional[InterviewReport]:
        """Return the report only when its session is shared publicly."""
        session = self.get_session(session_id)
        if session is None or not session.is_public:
            return None
        return self.get_report(session_id)

    # -- visa type configuration (read only) ----------------------------------

    def get_visa_type(self, visa_type_id: str) -> Optional[VisaTypeConfig]:
        data = self._read_json(os.path.join(self.visa_types_dir, f"{visa_type_id}.json"))
        return VisaTypeConfig.from_dict(data) if data else None
