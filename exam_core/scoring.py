from __future__ import annotations
from typing import Any, Callable, Dict, Iterable, List, Optional
import math

from .config import ARGUMENT_PREMISE_COUNT, ARGUMENT_CONCLUSION_COUNT
from .types import (
    QUESTION_TYPES,
    Answer,
    ArgumentReconstructionQuestion,
    ClozeQuestion,
    FreeTextQuestion,
    MultipleChoiceQuestion,
    MultipleResponseQuestion,
    Question,
    TrueFalseComplexQuestion,
    TrueFalseJustificationQuestion,
    UnknownQuestionType,
    WeightedChoiceQuestion,
    tfj_parts,
)


def _clamp(x: float, lo: float, hi: float) -> float:
    if x < lo: return lo
    if x > hi: return hi
    return x


def _id_list(value: Any) -> Optional[List[str]]:
    if not isinstance(value, (list, tuple)):
        return None
    if not all(isinstance(v, str) for v in value):
        return None
    return list(value)


def _score_multiple_choice(q: MultipleChoiceQuestion, value: Any) -> float:
    correct = next((o for o in q.options if o.is_correct), None)
    if correct is None or not isinstance(value, str):
        return 0.0
    return q.points if value == correct.id else 0.0


def _score_multiple_response(q: MultipleResponseQuestion, value: Any) -> float:
    chosen = _id_list(value)
    correct = {o.id for o in q.options if o.is_correct}
    if chosen is None or not correct:
        return 0.0
    return q.points if set(chosen) == correct else 0.0


def _score_weighted_choice(q: WeightedChoiceQuestion, value: Any) -> float:
    by_id = {o.id: o for o in q.options}
    if q.allow_multiple_selections:
        chosen = _id_list(value)
        if chosen is None:
            return 0.0
        total = 0.0
        # each option counts once no matter how often it was sent
        for oid in dict.fromkeys(chosen):
            opt = by_id.get(oid)
            if opt is not None:
                total += opt.percentage
        return q.points * _clamp(total, 0.0, 100.0) / 100.0
    if not isinstance(value, str):
        return 0.0
    opt = by_id.get(value)
    if opt is None:
        return 0.0
    return q.points * max(0.0, opt.percentage) / 100.0


def _score_argument(q: ArgumentReconstructionQuestion, value: Any) -> float:
    order = _id_list(value)
    canon = list(q.correct_order)
    p, c = ARGUMENT_PREMISE_COUNT, ARGUMENT_CONCLUSION_COUNT
    if order is None or len(canon) < p + c or len(order) != len(canon):
        return 0.0
    premises_ok = set(order[:p]) == set(canon[:p])
    conclusion_ok = order[p:p + c] == canon[p:p + c]
    distractors_ok = set(order[p + c:]) == set(canon[p + c:])
    return q.points if (premises_ok and conclusion_ok and distractors_ok) else 0.0


def _score_true_false_complex(q: TrueFalseComplexQuestion, value: Any) -> float:
    if not isinstance(value, bool):
        return 0.0
    return q.points if value == q.is_statement_true else 0.0


def _score_true_false_justification(q: TrueFalseJustificationQuestion, value: Any) -> float:
    aff, just = tfj_parts(value)
    score = 0.0
    if isinstance(aff, bool) and aff == q.is_affirmation_true:
        score += q.points_for_affirmation
    correct = next((o for o in q.justification_options if o.is_correct), None)
    if correct is not None and isinstance(just, str) and just == correct.id:
        score += q.points_for_justification
    return score


def _score_free_text(q: FreeTextQuestion, value: Any) -> float:
    # essays only get advisory feedback; a human grader sets the score later
    return 0.0


def _score_cloze(q: ClozeQuestion, value: Any) -> float:
    # TODO: define per-gap rules for cloze sub-questions before awarding credit
    return 0.0


_SCORERS: Dict[str, Callable[[Any, Any], float]] = {
    "multiple-choice": _score_multiple_choice,
    "multiple-response": _score_multiple_response,
    "free-text": _score_free_text,
    "weighted-choice": _score_weighted_choice,
    "argument-reconstruction": _score_argument,
    "true-false-justification": _score_true_false_justification,
    "true-false-complex": _score_true_false_complex,
    "cloze": _score_cloze,
}
if set(_SCORERS) != set(QUESTION_TYPES):
    raise RuntimeError(f"scorer table out of sync with question types: {sorted(set(QUESTION_TYPES) ^ set(_SCORERS))}")


def score_question(question: Question, answer: Optional[Answer]) -> float:
    """
    Returns the score in [0, question.points] for one answer.
    A missing answer, or a value of the wrong shape, scores 0.
    """
    scorer = _SCORERS.get(getattr(question, "type", None))
    if scorer is None:
        raise UnknownQuestionType(f"unknown question type: {getattr(question, 'type', None)!r}")
    if answer is None or answer.question_id != question.id:
        return 0.0
    points = max(0.0, float(question.points or 0.0))
    return _clamp(float(scorer(question, answer.value)), 0.0, points)


def aggregate_score(scores: Iterable[float]) -> int:
    """Sum per-question scores, round half up to a whole point, floor at 0."""
    total = sum(float(s or 0.0) for s in scores)
    return max(0, int(math.floor(total + 0.5)))
