"""Utility helpers for persisting exams, submissions and session metadata.

The production deployment should ideally swap this module for a proper
database-backed implementation.  For now we use simple JSON files stored on
disk so that submissions survive restarts and results can be routed by id.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


log = logging.getLogger(__name__)

DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
EXAMS_DIR = DATA_ROOT / "exams"
SUBMISSIONS_DIR = DATA_ROOT / "submissions"
SUBMISSION_INDEX_PATH = DATA_ROOT / "submissions_index.json"
ACTIVE_SESSIONS_PATH = DATA_ROOT / "sessions_active.json"

_LOCK = threading.Lock()


def _ensure_dirs() -> None:
    SUBMISSIONS_DIR.mkdir(parents=True, exist_ok=True)
    EXAMS_DIR.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError:
        log.warning("unreadable json at %s, using default", path)
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---- exams (written by the authoring side, read here) ----
def load_exam_payload(exam_id: str) -> Optional[Dict[str, Any]]:
    path = EXAMS_DIR / f"{exam_id}.json"
    if not path.exists():
        return None
    return _read_json(path, None)


def save_exam_payload(exam_id: str, payload: Dict[str, Any]) -> None:
    _ensure_dirs()
    _write_json(EXAMS_DIR / f"{exam_id}.json", payload)


# ---- submissions ----
def save_submission(payload: Dict[str, Any]) -> str:
    """Persist one submission and index it; returns the new id."""

    _ensure_dirs()
    submission_id = str(uuid.uuid4())
    record = dict(payload)
    record["id"] = submission_id
    record.setdefault("submittedAt", utcnow_iso())

    _write_json(SUBMISSIONS_DIR / f"{submission_id}.json", record)
    with _LOCK:
        index: Dict[str, Dict[str, Any]] = _read_json(SUBMISSION_INDEX_PATH, {})
        index[submission_id] = {
            "examId": record.get("examId"),
            "studentId": record.get("studentId"),
            "submittedAt": record.get("submittedAt"),
            "score": record.get("score"),
        }
        _write_json(SUBMISSION_INDEX_PATH, index)
    return submission_id


def update_submission(submission_id: str, payload: Dict[str, Any]) -> None:
    record = dict(payload)
    record["id"] = submission_id
    _write_json(SUBMISSIONS_DIR / f"{submission_id}.json", record)
    with _LOCK:
        index: Dict[str, Dict[str, Any]] = _read_json(SUBMISSION_INDEX_PATH, {})
        if submission_id in index:
            index[submission_id]["score"] = record.get("score")
            _write_json(SUBMISSION_INDEX_PATH, index)


def load_submission(submission_id: str) -> Optional[Dict[str, Any]]:
    path = SUBMISSIONS_DIR / f"{submission_id}.json"
    if not path.exists():
        return None
    return _read_json(path, None)


def list_submissions_for_student(student_id: str) -> List[Dict[str, Any]]:
    index: Dict[str, Dict[str, Any]] = _read_json(SUBMISSION_INDEX_PATH, {})
    out: List[Dict[str, Any]] = []
    for sid, meta in index.items():
        if meta.get("studentId") == student_id:
            item = {"id": sid}
            item.update({k: v for k, v in meta.items() if k != "id"})
            out.append(item)
    out.sort(key=lambda r: r.get("submittedAt") or "", reverse=True)
    return out


# ---- active sessions ----
def _load_sessions() -> Dict[str, Dict[str, Any]]:
    return _read_json(ACTIVE_SESSIONS_PATH, {})


def record_active_session(session_id: str, payload: Dict[str, Any]) -> None:
    if not payload.get("studentId"):
        return
    with _LOCK:
        sessions = _load_sessions()
        sessions[session_id] = payload
        _write_json(ACTIVE_SESSIONS_PATH, sessions)


def update_active_session(session_id: str, updates: Dict[str, Any]) -> None:
    with _LOCK:
        sessions = _load_sessions()
        if session_id not in sessions:
            return
        sessions[session_id].update(updates)
        _write_json(ACTIVE_SESSIONS_PATH, sessions)


def clear_active_session(session_id: str) -> None:
    with _LOCK:
        sessions = _load_sessions()
        if session_id in sessions:
            sessions.pop(session_id, None)
            _write_json(ACTIVE_SESSIONS_PATH, sessions)


def active_sessions_for_student(student_id: str) -> List[Dict[str, Any]]:
    sessions = _load_sessions()
    out: List[Dict[str, Any]] = []
    for payload in sessions.values():
        if payload.get("studentId") == student_id:
            out.append(payload)
    out.sort(key=lambda r: r.get("startedAt", ""), reverse=True)
    return out
