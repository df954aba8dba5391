from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

QuestionType = Literal[
    "multiple-choice",
    "multiple-response",
    "free-text",
    "weighted-choice",
    "argument-reconstruction",
    "true-false-justification",
    "true-false-complex",
    "cloze",
]
QUESTION_TYPES: tuple[str, ...] = (
    "multiple-choice",
    "multiple-response",
    "free-text",
    "weighted-choice",
    "argument-reconstruction",
    "true-false-justification",
    "true-false-complex",
    "cloze",
)

InfractionType = Literal["copy", "paste", "focus-lost"]
INFRACTION_TYPES: tuple[str, ...] = ("copy", "paste", "focus-lost")

SubmitTrigger = Literal["user", "timer", "focusLoss"]


class UnknownQuestionType(ValueError):
    """Raised when a question carries a tag outside the closed set."""


@dataclass(frozen=True)
class ChoiceOption:
    id: str; text: str; is_correct: bool = False


@dataclass(frozen=True)
class WeightedOption:
    id: str; text: str; percentage: float = 0.0


@dataclass(frozen=True)
class ArgumentItem:
    id: str; text: str


@dataclass(frozen=True)
class ClozeSubQuestion:
    id: str
    placeholder_label: str
    type: Literal["multiple-choice", "short-answer", "numerical"]
    points: float = 0.0
    options: List[WeightedOption] = field(default_factory=list)
    correct_answer: Optional[Union[str, float]] = None
    correct_option_ids: List[str] = field(default_factory=list)
    allow_multiple_selections: bool = False


@dataclass(frozen=True)
class MultipleChoiceQuestion:
    id: str; text: str
    options: List[ChoiceOption] = field(default_factory=list)
    points: float = 0.0
    feedback: Optional[str] = None
    randomize_options: bool = False
    type: Literal["multiple-choice"] = "multiple-choice"


@dataclass(frozen=True)
class MultipleResponseQuestion:
    id: str; text: str
    options: List[ChoiceOption] = field(default_factory=list)
    points: float = 0.0
    feedback: Optional[str] = None
    randomize_options: bool = False
    type: Literal["multiple-response"] = "multiple-response"


@dataclass(frozen=True)
class FreeTextQuestion:
    id: str; text: str
    points: float = 0.0
    feedback: Optional[str] = None
    type: Literal["free-text"] = "free-text"


@dataclass(frozen=True)
class WeightedChoiceQuestion:
    id: str; text: str
    options: List[WeightedOption] = field(default_factory=list)
    points: float = 0.0
    feedback: Optional[str] = None
    allow_multiple_selections: bool = False
    randomize_options: bool = False
    type: Literal["weighted-choice"] = "weighted-choice"


@dataclass(frozen=True)
class ArgumentReconstructionQuestion:
    id: str; text: str
    items: List[ArgumentItem] = field(default_factory=list)
    correct_order: List[str] = field(default_factory=list)
    points: float = 0.0
    feedback: Optional[str] = None
    type: Literal["argument-reconstruction"] = "argument-reconstruction"


@dataclass(frozen=True)
class TrueFalseJustificationQuestion:
    id: str; text: str
    affirmation: str = ""
    is_affirmation_true: bool = True
    justification_options: List[ChoiceOption] = field(default_factory=list)
    points_for_affirmation: float = 0.0
    points_for_justification: float = 0.0
    points: float = 0.0
    feedback: Optional[str] = None
    randomize_justification_options: bool = False
    type: Literal["true-false-justification"] = "true-false-justification"


@dataclass(frozen=True)
class TrueFalseComplexQuestion:
    id: str; text: str
    statement: str = ""
    is_statement_true: bool = True
    points: float = 0.0
    feedback: Optional[str] = None
    type: Literal["true-false-complex"] = "true-false-complex"


@dataclass(frozen=True)
class ClozeQuestion:
    id: str; text: str
    text_with_placeholders: str = ""
    sub_questions: List[ClozeSubQuestion] = field(default_factory=list)
    points: float = 0.0
    feedback: Optional[str] = None
    type: Literal["cloze"] = "cloze"


Question = Union[
    MultipleChoiceQuestion,
    MultipleResponseQuestion,
    FreeTextQuestion,
    WeightedChoiceQuestion,
    ArgumentReconstructionQuestion,
    TrueFalseJustificationQuestion,
    TrueFalseComplexQuestion,
    ClozeQuestion,
]


@dataclass(frozen=True)
class QualitativeRating:
    label: str; min_percentage: float; is_passing: Optional[bool] = None


@dataclass(frozen=True)
class ExamDefinition:
    id: str
    duration_minutes: int
    questions: List[Question] = field(default_factory=list)
    on_time_up_action: str = "auto-submit"
    grace_period_minutes: Optional[int] = None
    auto_submit_on_focus_loss: bool = False
    randomize_questions: bool = False
    title: str = ""
    evaluation_type: Literal["quantitative", "qualitative"] = "quantitative"
    approval_threshold: Optional[float] = None
    qualitative_ratings: List[QualitativeRating] = field(default_factory=list)

    def question(self, question_id: str) -> Question:
        for q in self.questions:
            if q.id == question_id:
                return q
        raise KeyError(question_id)


@dataclass(frozen=True)
class Answer:
    question_id: str; value: Any = None; score: Optional[float] = None


@dataclass(frozen=True)
class Infraction:
    type: InfractionType; timestamp: str


@dataclass(frozen=True)
class EssayFeedback:
    key_themes: List[str] = field(default_factory=list)
    key_facts: List[str] = field(default_factory=list)
    grade_suggestion: float = 0.0


@dataclass(frozen=True)
class Submission:
    exam_id: str
    student_id: str
    answers: List[Answer]
    score: int
    elapsed_seconds: int
    infractions: List[Infraction] = field(default_factory=list)
    trigger: SubmitTrigger = "user"
    essay_feedback: Dict[str, EssayFeedback] = field(default_factory=dict)
    submitted_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "examId": self.exam_id,
            "studentId": self.student_id,
            "answers": [
                {"questionId": a.question_id, "value": a.value, "score": a.score}
                for a in self.answers
            ],
            "score": self.score,
            "elapsedSeconds": self.elapsed_seconds,
            "infractions": [infraction_to_dict(i) for i in self.infractions],
            "trigger": self.trigger,
            "essayFeedback": [
                {"questionId": qid, "feedback": essay_feedback_to_dict(fb)}
                for qid, fb in self.essay_feedback.items()
            ],
            "submittedAt": self.submitted_at,
        }


def infraction_to_dict(infraction: Infraction) -> Dict[str, str]:
    return {"type": infraction.type, "timestamp": infraction.timestamp}


def essay_feedback_to_dict(fb: EssayFeedback) -> Dict[str, Any]:
    return {
        "keyThemes": list(fb.key_themes),
        "keyFacts": list(fb.key_facts),
        "gradeSuggestion": fb.grade_suggestion,
    }


def submission_from_dict(raw: Dict[str, Any]) -> Submission:
    """Inverse of ``Submission.to_dict`` for stored payloads."""
    essays: Dict[str, EssayFeedback] = {}
    for entry in raw.get("essayFeedback") or []:
        fb = entry.get("feedback") or {}
        essays[str(entry.get("questionId"))] = EssayFeedback(
            key_themes=list(fb.get("keyThemes") or []),
            key_facts=list(fb.get("keyFacts") or []),
            grade_suggestion=float(fb.get("gradeSuggestion") or 0.0),
        )
    return Submission(
        exam_id=str(raw["examId"]),
        student_id=str(raw["studentId"]),
        answers=[
            Answer(question_id=str(a["questionId"]), value=a.get("value"), score=a.get("score"))
            for a in raw.get("answers") or []
        ],
        score=int(raw.get("score") or 0),
        elapsed_seconds=int(raw.get("elapsedSeconds") or 0),
        infractions=[Infraction(type=i["type"], timestamp=i["timestamp"]) for i in raw.get("infractions") or []],
        trigger=raw.get("trigger") or "user",
        essay_feedback=essays,
        submitted_at=str(raw.get("submittedAt") or ""),
    )


def default_answer_value(question: Question) -> Any:
    """Empty value an examinee starts from, shaped for the question's tag."""

    t = question.type
    if t in ("multiple-response", "argument-reconstruction"):
        return []
    if t == "weighted-choice":
        return [] if question.allow_multiple_selections else ""
    if t == "true-false-justification":
        return {"affirmation": None, "justification_id": None}
    if t == "true-false-complex":
        return None
    if t == "cloze":
        return {}
    if t in ("multiple-choice", "free-text"):
        return ""
    raise UnknownQuestionType(t)


def tfj_parts(value: Any) -> tuple[Any, Any]:
    """(affirmation, justification id) from a true-false-justification value.

    Both the snake_case keys and the authoring tool's camelCase
    ``affirmationResponse``/``justificationId`` are read.
    """
    if not isinstance(value, dict):
        return None, None
    aff = value.get("affirmation", value.get("affirmationResponse"))
    just = value.get("justification_id", value.get("justificationId"))
    return aff, just
