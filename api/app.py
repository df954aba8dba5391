from __future__ import annotations
from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import uuid, os, json, time, pathlib, logging, typing as t

# ---- Azure autoload from .azure_config.json (only if env is missing) ----
def _load_azure_from_json(path: str = ".azure_config.json") -> None:
    need = ["AZURE_OPENAI_ENDPOINT","AZURE_OPENAI_API_KEY","AZURE_OPENAI_API_VERSION","AZURE_OPENAI_DEPLOYMENT"]
    if all(os.getenv(k) for k in need):
        return
    p = pathlib.Path(path)
    if not p.exists():
        return
    try:
        cfg = json.loads(p.read_text(encoding="utf-8"))
    except ValueError:
        logging.getLogger(__name__).warning("ignoring unreadable %s", path)
        return
    os.environ.setdefault("LLM_BACKEND", "azure")
    os.environ.setdefault("AZURE_OPENAI_ENDPOINT",   str(cfg.get("endpoint","")))
    os.environ.setdefault("AZURE_OPENAI_API_KEY",    str(cfg.get("api_key","")))
    os.environ.setdefault("AZURE_OPENAI_API_VERSION",str(cfg.get("api_version","")))
    os.environ.setdefault("AZURE_OPENAI_DEPLOYMENT", str(cfg.get("deployment","")))

_load_azure_from_json()

# ---- Engine imports ----
from exam_core import config
from exam_core.azure_cfg import is_configured as azure_configured
from exam_core.audit_export import to_csv as infractions_to_csv, to_json as infractions_to_json
from exam_core.evaluation import evaluate, rescore_answer
from exam_core.exam_bank import parse_exam
from exam_core.llm_bridge import grade_essay
from exam_core.session import ExamSession, SessionClosedError, SubmissionError
from exam_core.types import Submission, UnknownQuestionType, submission_from_dict
from .storage import (
    active_sessions_for_student,
    clear_active_session,
    list_submissions_for_student,
    load_exam_payload,
    load_submission,
    record_active_session,
    save_submission,
    update_active_session,
    update_submission,
    utcnow_iso,
)

log = logging.getLogger(__name__)

SESS: dict[str, ExamSession] = {}

app = FastAPI(title="Exam Session API")


@app.get("/")
def root():
    return {"status": "ok", "service": "exam-session-api"}


ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,  # keep False unless you use cookies
)

# ---- Schemas ----
class StartReq(BaseModel):
    exam_id: str
    student_id: str

class AnswerReq(BaseModel):
    question_id: str
    value: t.Any = None

class NavigateReq(BaseModel):
    index: int

class IntegrityReq(BaseModel):
    signal: str             # "copy" | "paste" | "blur" | "visibilitychange" | "focus-lost"
    hidden: bool = True
    content: str | None = None

class ScoreReq(BaseModel):
    score: float

# ---- Helpers ----
def _clock_now() -> float:
    return time.monotonic()


def _persist(submission: Submission) -> str:
    return save_submission(submission.to_dict())


def _session(sid: str) -> ExamSession:
    sess = SESS.get(sid)
    if not sess:
        raise HTTPException(404, "session not found")
    sess.sync_clock(_clock_now())
    if sess.submission_id:
        clear_active_session(sid)
    return sess


def _exam(exam_id: str):
    payload = load_exam_payload(exam_id)
    if payload is None:
        raise HTTPException(404, "exam not found")
    try:
        return parse_exam(payload)
    except (UnknownQuestionType, KeyError) as e:
        raise HTTPException(422, f"exam definition unreadable: {e}")


def _submission(submission_id: str) -> dict[str, t.Any]:
    stored = load_submission(submission_id)
    if not stored:
        raise HTTPException(404, "submission not found")
    return stored


def _choices(options, order: list[str]) -> list[dict[str, t.Any]]:
    by_id = {o.id: o for o in options}
    ids = order or list(by_id)
    return [{"id": oid, "text": by_id[oid].text} for oid in ids if oid in by_id]


def _serialize_question(sess: ExamSession, q) -> dict[str, t.Any] | None:
    """Question as shown to the examinee: display order, no answer keys."""
    if q is None: return None
    order = sess.display.option_ids.get(q.id, [])
    out: dict[str, t.Any] = {"id": q.id, "type": q.type, "text": q.text, "points": q.points}
    if q.type in ("multiple-choice", "multiple-response", "weighted-choice"):
        out["options"] = _choices(q.options, order)
    if q.type == "weighted-choice":
        out["allow_multiple_selections"] = q.allow_multiple_selections
    elif q.type == "argument-reconstruction":
        out["items"] = _choices(q.items, order)
    elif q.type == "true-false-justification":
        out["affirmation"] = q.affirmation
        out["justification_options"] = _choices(q.justification_options, order)
    elif q.type == "true-false-complex":
        out["statement"] = q.statement
    elif q.type == "cloze":
        out["text_with_placeholders"] = q.text_with_placeholders
        out["sub_questions"] = [
            {
                "id": s.id,
                "placeholder_label": s.placeholder_label,
                "type": s.type,
                "allow_multiple_selections": s.allow_multiple_selections,
                "options": _choices(s.options, []),
            }
            for s in q.sub_questions
        ]
    return out


def _submit_payload(res) -> dict[str, t.Any]:
    return {
        "status": res.status,
        "submission_id": res.submission_id,
        "score": res.submission.score if res.submission else None,
        "message": res.message,
    }

# ---- Health ----
@app.get("/health")
def health():
    return {
        "llm_backend": os.getenv("LLM_BACKEND", "none"),
        "essay_grading_enabled": config.ESSAY_GRADING_ENABLED,
        "azure_config_present": azure_configured(),
        "active_sessions": len(SESS),
    }

# ---- Session endpoints ----
@app.post("/session/start")
def start(req: StartReq):
    exam = _exam(req.exam_id)
    sid = str(uuid.uuid4())
    sess = ExamSession(
        exam,
        req.student_id,
        _persist,
        grade_essay if config.ESSAY_GRADING_ENABLED else None,
        rng=config.make_rng(config.load_config()),
    )
    sess.start(_clock_now())
    SESS[sid] = sess
    started_at = utcnow_iso()
    record_active_session(
        sid,
        {
            "sessionId": sid,
            "studentId": req.student_id,
            "examId": exam.id,
            "startedAt": started_at,
            "lastUpdated": started_at,
        },
    )
    return {"session_id": sid, "state": sess.state(), "question": _serialize_question(sess, sess.current_question())}

@app.get("/session/{sid}")
def session_state(sid: str):
    sess = _session(sid)
    return {"state": sess.state(), "question": _serialize_question(sess, sess.current_question())}

@app.post("/session/{sid}/answer")
def answer(sid: str, req: AnswerReq):
    sess = _session(sid)
    try:
        accepted = sess.set_answer(req.question_id, req.value)
    except KeyError:
        raise HTTPException(422, f"unknown question: {req.question_id}")
    if accepted:
        update_active_session(sid, {"lastUpdated": utcnow_iso()})
    return {"accepted": accepted, "phase": sess.phase.value, "answered": sess.is_answered(req.question_id)}

@app.post("/session/{sid}/navigate")
def navigate(sid: str, req: NavigateReq):
    sess = _session(sid)
    idx = sess.go_to_question(req.index)
    return {"index": idx, "question": _serialize_question(sess, sess.current_question())}

@app.post("/session/{sid}/integrity")
def integrity(sid: str, req: IntegrityReq):
    sess = _session(sid)
    signal = "blur" if req.signal == "focus-lost" else req.signal
    try:
        evt = sess.monitor.handle(signal, hidden=req.hidden, content=req.content)
    except ValueError as e:
        raise HTTPException(422, str(e))
    except SessionClosedError as e:
        raise HTTPException(409, str(e))
    except SubmissionError as e:
        raise HTTPException(502, str(e))
    if sess.submission_id:
        clear_active_session(sid)
    return {
        "infraction": {"type": evt.type, "timestamp": evt.timestamp} if evt else None,
        "phase": sess.phase.value,
        "submission_id": sess.submission_id,
    }

@app.post("/session/{sid}/submit")
def submit(sid: str):
    sess = _session(sid)
    try:
        res = sess.submit("user")
    except SessionClosedError as e:
        raise HTTPException(409, str(e))
    except SubmissionError as e:
        raise HTTPException(502, str(e))
    if res.ok:
        clear_active_session(sid)
    return _submit_payload(res)

# ---- Submissions ----
@app.get("/submissions/{submission_id}")
def get_submission(submission_id: str):
    return _submission(submission_id)

@app.get("/submissions/{submission_id}/evaluation")
def get_evaluation(submission_id: str):
    stored = _submission(submission_id)
    exam = _exam(stored["examId"])
    ev = evaluate(stored.get("score"), exam)
    return {
        "submission_id": submission_id,
        "status": ev.status,
        "label": ev.label,
        "percentage": ev.percentage,
        "scaled_score": ev.scaled_score,
        "total_points": ev.total_points,
    }

@app.post("/submissions/{submission_id}/answers/{question_id}/score")
def set_question_score(submission_id: str, question_id: str, req: ScoreReq):
    stored = _submission(submission_id)
    exam = _exam(stored["examId"])
    try:
        patched = rescore_answer(submission_from_dict(stored), exam, question_id, req.score)
    except KeyError:
        raise HTTPException(404, f"question not in submission: {question_id}")
    payload = patched.to_dict()
    update_submission(submission_id, payload)
    return {"submission_id": submission_id, "score": patched.score}

@app.get("/submissions/{submission_id}/infractions.json")
def get_infractions_json(submission_id: str):
    if not config.AUDIT_EXPORT_ENABLED:
        raise HTTPException(404, "infraction export disabled")
    stored = _submission(submission_id)
    return {"submission_id": submission_id, **infractions_to_json(stored.get("infractions") or [])}

@app.get("/submissions/{submission_id}/infractions.csv")
def get_infractions_csv(submission_id: str):
    if not config.AUDIT_EXPORT_ENABLED:
        raise HTTPException(404, "infraction export disabled")
    stored = _submission(submission_id)
    body = infractions_to_csv(stored.get("infractions") or [])
    filename = f"{submission_id}_infractions.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{filename}\""},
    )

@app.get("/students/{student_id}/submissions")
def list_submissions(student_id: str):
    return {"submissions": list_submissions_for_student(student_id)}

@app.get("/students/{student_id}/sessions/active")
def list_active_sessions(student_id: str):
    return {"sessions": active_sessions_for_student(student_id)}
