from __future__ import annotations

import itertools
from typing import Any

import pytest

from exam_core.exam_bank import parse_exam
from exam_core.types import ExamDefinition, Submission


def build_exam_payload(
    *,
    exam_id: str = "exam-1",
    duration_minutes: int = 30,
    on_time_up_action: str = "auto-submit",
    grace_period_minutes: int | None = None,
    auto_submit_on_focus_loss: bool = False,
    randomize_questions: bool = False,
) -> dict[str, Any]:
    """Deterministic exam covering every question type, in authoring (camelCase) form."""

    payload: dict[str, Any] = {
        "id": exam_id,
        "title": "Sample exam",
        "durationMinutes": duration_minutes,
        "onTimeUpAction": on_time_up_action,
        "autoSubmitOnFocusLoss": auto_submit_on_focus_loss,
        "randomizeQuestions": randomize_questions,
        "questions": [
            {
                "id": "mc",
                "type": "multiple-choice",
                "text": "Pick the capital of France",
                "points": 10,
                "options": [
                    {"id": "a", "text": "Paris", "isCorrect": True},
                    {"id": "b", "text": "Lyon"},
                    {"id": "c", "text": "Nice"},
                ],
            },
            {
                "id": "mr",
                "type": "multiple-response",
                "text": "Pick the prime numbers",
                "points": 10,
                "options": [
                    {"id": "a", "text": "2", "isCorrect": True},
                    {"id": "b", "text": "4"},
                    {"id": "c", "text": "3", "isCorrect": True},
                ],
            },
            {
                "id": "wc",
                "type": "weighted-choice",
                "text": "Best first step",
                "points": 10,
                "options": [
                    {"id": "a", "text": "Ask", "percentage": 100},
                    {"id": "b", "text": "Guess", "percentage": 50},
                    {"id": "c", "text": "Ignore", "percentage": 0},
                ],
            },
            {
                "id": "arg",
                "type": "argument-reconstruction",
                "text": "Rebuild the argument",
                "points": 10,
                "items": [
                    {"id": "p1", "text": "All men are mortal"},
                    {"id": "p2", "text": "Socrates is a man"},
                    {"id": "c", "text": "Socrates is mortal"},
                    {"id": "d", "text": "Socrates is Greek"},
                ],
                "correctOrder": ["p1", "p2", "c", "d"],
            },
            {
                "id": "tfc",
                "type": "true-false-complex",
                "text": "Judge the statement",
                "points": 5,
                "statement": "Water boils at 100C at sea level",
                "isStatementTrue": True,
            },
            {
                "id": "tfj",
                "type": "true-false-justification",
                "text": "Judge and justify",
                "points": 5,
                "affirmation": "The sun is a star",
                "isAffirmationTrue": True,
                "pointsForAffirmation": 2,
                "pointsForJustification": 3,
                "justificationOptions": [
                    {"id": "j1", "text": "It fuses hydrogen", "isCorrect": True},
                    {"id": "j2", "text": "It is yellow"},
                ],
            },
            {
                "id": "essay",
                "type": "free-text",
                "text": "Explain the causes of inflation",
                "points": 20,
            },
            {
                "id": "gap",
                "type": "cloze",
                "text": "Fill the gaps",
                "points": 5,
                "textWithPlaceholders": "The {{1}} is blue",
                "subQuestions": [
                    {"id": "s1", "placeholderLabel": "1", "type": "short-answer", "correctAnswer": "sky", "points": 5},
                ],
            },
        ],
    }
    if grace_period_minutes is not None:
        payload["gracePeriodMinutes"] = grace_period_minutes
    return payload


def build_exam(**kwargs: Any) -> ExamDefinition:
    return parse_exam(build_exam_payload(**kwargs))


PERFECT_ANSWERS: dict[str, Any] = {
    "mc": "a",
    "mr": ["c", "a"],
    "wc": "a",
    "arg": ["p2", "p1", "c", "d"],
    "tfc": True,
    "tfj": {"affirmation": True, "justification_id": "j1"},
}


class RecordingStore:
    """Stands in for persistence: keeps submissions, can be told to fail."""

    def __init__(self, fail_times: int = 0):
        self.saved: list[Submission] = []
        self.calls = 0
        self.fail_times = fail_times
        self._ids = itertools.count(1)

    def __call__(self, submission: Submission) -> str:
        self.calls += 1
        if self.calls <= self.fail_times:
            raise IOError("disk full")
        self.saved.append(submission)
        return f"sub-{next(self._ids)}"


class FixedClock:
    def __init__(self, stamp: str = "2024-01-01T00:00:00+00:00"):
        self.stamp = stamp

    def __call__(self) -> str:
        return self.stamp


@pytest.fixture
def sample_exam() -> ExamDefinition:
    return build_exam()


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()
