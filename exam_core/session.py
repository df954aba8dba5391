# exam_core/session.py
from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Union
import copy, logging, random, threading

from .clock import Phase, SessionClock, TERMINAL_PHASES
from .integrity import IntegrityMonitor, utcnow_iso
from .presentation import DisplayOrder, build_display_order, is_answered
from .scoring import aggregate_score, score_question
from .types import (
    Answer,
    EssayFeedback,
    ExamDefinition,
    Infraction,
    Question,
    Submission,
    SubmitTrigger,
    default_answer_value,
)


log = logging.getLogger(__name__)

SaveSubmission = Callable[[Submission], Union[str, Dict[str, Any]]]
GradeEssay = Callable[[str, str], EssayFeedback]

# guard states
_IDLE = "idle"
_SUBMITTING = "submitting"
_SUBMITTED = "submitted"
_FAILED = "failed"


class SubmissionError(RuntimeError):
    """The persistence collaborator rejected the submission."""


class SessionClosedError(SubmissionError):
    """The session is terminal and can no longer produce a submission."""


@dataclass(frozen=True)
class SubmitResult:
    status: str  # "submitted" | "in-progress" | "completed"
    submission_id: Optional[str] = None
    submission: Optional[Submission] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "submitted"


def _saved_id(saved: Union[str, Dict[str, Any], None]) -> str:
    if isinstance(saved, dict):
        sid = saved.get("id")
    else:
        sid = saved
    if not sid:
        raise SubmissionError("saving the submission did not return an id")
    return str(sid)


class ExamSession:
    """
    One examinee taking one exam.

    Answers live in a map keyed by question id; display order is kept apart
    so shuffling never touches scoring. All three submission triggers (user,
    timer expiry, focus loss) go through ``submit``, which lets exactly one
    caller build and save the submission.
    """

    def __init__(
        self,
        exam: ExamDefinition,
        student_id: str,
        save_submission: SaveSubmission,
        grade_essay: Optional[GradeEssay] = None,
        *,
        rng: Optional[random.Random] = None,
        now: Callable[[], str] = utcnow_iso,
        monitor_enabled: bool = True,
    ):
        self.exam = exam
        self.student_id = student_id
        self._save_submission = save_submission
        self._grade_essay = grade_essay
        self._now = now

        self._questions: Dict[str, Question] = {q.id: q for q in exam.questions}
        self._answers: Dict[str, Answer] = {
            q.id: Answer(question_id=q.id, value=default_answer_value(q)) for q in exam.questions
        }
        self.display: DisplayOrder = build_display_order(exam, rng)
        self.current_index = 0
        self.infractions: List[Infraction] = []

        self.clock = SessionClock(
            exam.duration_minutes,
            on_time_up=exam.on_time_up_action,
            grace_period_minutes=exam.grace_period_minutes,
            on_expire=self._on_clock_expire,
        )
        self.monitor = IntegrityMonitor(self.report_integrity_event, enabled=monitor_enabled, now=now)

        self._guard = threading.Lock()
        self._clock_lock = threading.RLock()
        self._submit_state = _IDLE
        self._last_sync: Optional[float] = None
        self._carry = 0.0

        self.submission: Optional[Submission] = None
        self.submission_id: Optional[str] = None
        self.last_error: Optional[str] = None

    # ---- phase ----
    @property
    def phase(self) -> Phase:
        return self.clock.phase

    @property
    def is_terminal(self) -> bool:
        return self.clock.phase in TERMINAL_PHASES

    @property
    def accepting_answers(self) -> bool:
        return self.phase in (Phase.MAIN, Phase.GRACE) and self._submit_state == _IDLE

    # ---- clock driving ----
    def start(self, monotonic_now: Optional[float] = None) -> None:
        with self._clock_lock:
            self.clock.start()
            self._last_sync = monotonic_now
        log.info("session started exam=%s student=%s duration=%ds", self.exam.id, self.student_id, self.clock.duration_seconds)

    def advance_clock(self, seconds: int) -> Phase:
        with self._clock_lock:
            return self.clock.advance(seconds)

    def sync_clock(self, monotonic_now: float) -> Phase:
        """Tick once per whole second of wall time since the previous sync."""
        with self._clock_lock:
            if self._last_sync is None:
                self._last_sync = monotonic_now
                return self.clock.phase
            delta = max(0.0, monotonic_now - self._last_sync) + self._carry
            self._last_sync = monotonic_now
            whole = int(delta)
            self._carry = delta - whole
            if whole:
                self.clock.advance(whole)
            return self.clock.phase

    def _on_clock_expire(self) -> None:
        try:
            self.submit("timer")
        except SubmissionError as e:
            log.exception("automatic submission failed exam=%s student=%s", self.exam.id, self.student_id)
            self.last_error = str(e)

    # ---- answers & navigation ----
    def answer(self, question_id: str) -> Answer:
        return copy.deepcopy(self._answers[question_id])

    def answers(self) -> List[Answer]:
        """Copies of the answers in canonical exam order."""
        return [copy.deepcopy(self._answers[q.id]) for q in self.exam.questions]

    def set_answer(self, question_id: str, value: Any) -> bool:
        if question_id not in self._answers:
            raise KeyError(question_id)
        with self._guard:
            if not self.accepting_answers:
                log.debug("answer ignored question=%s phase=%s state=%s", question_id, self.phase.value, self._submit_state)
                return False
            self._answers[question_id] = Answer(question_id=question_id, value=copy.deepcopy(value))
        return True

    def is_answered(self, question_id: str) -> bool:
        return is_answered(self._questions[question_id], self._answers[question_id].value)

    def current_question(self) -> Optional[Question]:
        qids = self.display.question_ids
        if not qids:
            return None
        return self._questions[qids[self.current_index]]

    def go_to_question(self, index: int) -> int:
        if self.is_terminal or not self.display.question_ids:
            return self.current_index
        self.current_index = max(0, min(int(index), len(self.display.question_ids) - 1))
        return self.current_index

    def next_question(self) -> int:
        return self.go_to_question(self.current_index + 1)

    def previous_question(self) -> int:
        return self.go_to_question(self.current_index - 1)

    # ---- integrity ----
    def report_integrity_event(self, infraction: Infraction) -> Optional[SubmitResult]:
        self.infractions.append(infraction)
        if infraction.type != "focus-lost" or not self.exam.auto_submit_on_focus_loss:
            return None
        if self.is_terminal or self._submit_state != _IDLE:
            log.debug("focus lost again, submission already triggered or session closed")
            return None
        log.info("focus lost with auto-submit enabled, submitting exam=%s", self.exam.id)
        return self.submit("focusLoss")

    # ---- submission ----
    def _begin(self, trigger: SubmitTrigger) -> Optional[SubmitResult]:
        """Compare-and-swap idle -> submitting. Returns a result for losers."""
        with self._guard:
            if self._submit_state == _SUBMITTED:
                return SubmitResult("completed", self.submission_id, self.submission,
                                    "submission already in progress or completed")
            if self._submit_state == _SUBMITTING:
                return SubmitResult("in-progress", message="submission already in progress or completed")
            if self._submit_state == _FAILED:
                raise SessionClosedError("session ended and its submission failed; no retry possible")
            phase = self.clock.phase
            if phase == Phase.PREVENTED:
                raise SessionClosedError("time is up; submission is not allowed")
            if phase == Phase.ENDED and trigger != "timer":
                # the timer path owns the submission once the clock has ended
                return SubmitResult("in-progress", message="submission already in progress or completed")
            self._submit_state = _SUBMITTING
            return None

    def submit(self, trigger: SubmitTrigger = "user") -> SubmitResult:
        lost = self._begin(trigger)
        if lost is not None:
            return lost

        try:
            submission = self._build_submission(trigger)
            saved_id = _saved_id(self._save_submission(submission))
        except Exception as e:
            with self._guard:
                terminal = self.is_terminal
                self._submit_state = _FAILED if terminal else _IDLE
            log.exception("saving submission failed exam=%s student=%s trigger=%s", self.exam.id, self.student_id, trigger)
            if terminal:
                raise SessionClosedError(f"submission failed after the session ended: {e}") from e
            raise SubmissionError(f"submission failed, please retry: {e}") from e

        with self._guard:
            self.submission = submission
            self.submission_id = saved_id
            self._submit_state = _SUBMITTED
        with self._clock_lock:
            self.clock.finish()
        log.info("submission saved id=%s exam=%s score=%d trigger=%s", saved_id, self.exam.id, submission.score, trigger)
        return SubmitResult("submitted", saved_id, submission)

    def _build_submission(self, trigger: SubmitTrigger) -> Submission:
        scored: List[Answer] = []
        essays: Dict[str, EssayFeedback] = {}
        for q in self.exam.questions:
            current = self._answers[q.id]
            value = copy.deepcopy(current.value)
            snap = Answer(question_id=q.id, value=value)
            snap = replace(snap, score=score_question(q, snap))
            scored.append(snap)
            if q.type == "free-text" and isinstance(value, str) and value.strip():
                fb = self._essay_feedback(q, value)
                if fb is not None:
                    essays[q.id] = fb
        return Submission(
            exam_id=self.exam.id,
            student_id=self.student_id,
            answers=scored,
            score=aggregate_score(a.score for a in scored),
            elapsed_seconds=self.clock.elapsed_seconds,
            infractions=list(self.infractions),
            trigger=trigger,
            essay_feedback=essays,
            submitted_at=self._now(),
        )

    def _essay_feedback(self, q: Question, text: str) -> Optional[EssayFeedback]:
        if self._grade_essay is None:
            return None
        try:
            return self._grade_essay(q.text, text)
        except Exception as e:
            log.warning("essay grading failed question=%s: %s", q.id, e)
            return None

    # ---- read-only projection ----
    def state(self) -> Dict[str, Any]:
        current = self.current_question()
        return {
            "examId": self.exam.id,
            "studentId": self.student_id,
            "phase": self.phase.value,
            "remainingSeconds": self.clock.remaining,
            "formattedTime": self.clock.formatted_time(),
            "currentIndex": self.current_index,
            "currentQuestionId": current.id if current else None,
            "questionOrder": list(self.display.question_ids),
            "optionOrder": {k: list(v) for k, v in self.display.option_ids.items()},
            "answered": {qid: self.is_answered(qid) for qid in self.display.question_ids},
            "infractionCount": len(self.infractions),
            "submitting": self._submit_state == _SUBMITTING,
            "submissionId": self.submission_id,
            "lastError": self.last_error,
        }
