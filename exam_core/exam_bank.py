"""Read exam definitions produced by the authoring side.

Exams arrive as JSON with camelCase keys; snake_case keys are accepted too so
that fixtures and hand-written files can use either. Nothing here validates
the authored content beyond the question tag.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .config import DEFAULT_ON_TIME_UP_ACTION
from .types import (
    ArgumentItem,
    ArgumentReconstructionQuestion,
    ChoiceOption,
    ClozeQuestion,
    ClozeSubQuestion,
    ExamDefinition,
    FreeTextQuestion,
    MultipleChoiceQuestion,
    MultipleResponseQuestion,
    QualitativeRating,
    Question,
    TrueFalseComplexQuestion,
    TrueFalseJustificationQuestion,
    UnknownQuestionType,
    WeightedChoiceQuestion,
    WeightedOption,
)


def _get(raw: Mapping[str, Any], camel: str, snake: Optional[str] = None, default: Any = None) -> Any:
    if camel in raw:
        return raw[camel]
    if snake and snake in raw:
        return raw[snake]
    return default


def _num(val: Any, default: float = 0.0) -> float:
    try:
        return float(val)
    except (TypeError, ValueError):
        return default


def _choice_options(raw: Any) -> List[ChoiceOption]:
    return [
        ChoiceOption(id=str(o["id"]), text=str(o.get("text", "")), is_correct=bool(_get(o, "isCorrect", "is_correct", False)))
        for o in (raw or [])
    ]


def _weighted_options(raw: Any) -> List[WeightedOption]:
    return [
        WeightedOption(id=str(o["id"]), text=str(o.get("text", "")), percentage=_num(o.get("percentage")))
        for o in (raw or [])
    ]


def _mc(raw: Mapping[str, Any], base: Dict[str, Any]) -> Question:
    return MultipleChoiceQuestion(
        options=_choice_options(raw.get("options")),
        randomize_options=bool(_get(raw, "randomizeOptions", "randomize_options", False)),
        **base,
    )


def _mr(raw: Mapping[str, Any], base: Dict[str, Any]) -> Question:
    return MultipleResponseQuestion(
        options=_choice_options(raw.get("options")),
        randomize_options=bool(_get(raw, "randomizeOptions", "randomize_options", False)),
        **base,
    )


def _free(raw: Mapping[str, Any], base: Dict[str, Any]) -> Question:
    return FreeTextQuestion(**base)


def _weighted(raw: Mapping[str, Any], base: Dict[str, Any]) -> Question:
    return WeightedChoiceQuestion(
        options=_weighted_options(raw.get("options")),
        allow_multiple_selections=bool(_get(raw, "allowMultipleSelections", "allow_multiple_selections", False)),
        randomize_options=bool(_get(raw, "randomizeOptions", "randomize_options", False)),
        **base,
    )


def _argument(raw: Mapping[str, Any], base: Dict[str, Any]) -> Question:
    items = [ArgumentItem(id=str(i["id"]), text=str(i.get("text", ""))) for i in (raw.get("items") or [])]
    order = [str(x) for x in (_get(raw, "correctOrder", "correct_order", []) or [])]
    return ArgumentReconstructionQuestion(items=items, correct_order=order, **base)


def _tf_justification(raw: Mapping[str, Any], base: Dict[str, Any]) -> Question:
    p_aff = _num(_get(raw, "pointsForAffirmation", "points_for_affirmation"))
    p_just = _num(_get(raw, "pointsForJustification", "points_for_justification"))
    if "points" not in raw:
        base = dict(base, points=p_aff + p_just)
    return TrueFalseJustificationQuestion(
        affirmation=str(raw.get("affirmation", "")),
        is_affirmation_true=bool(_get(raw, "isAffirmationTrue", "is_affirmation_true", True)),
        justification_options=_choice_options(_get(raw, "justificationOptions", "justification_options")),
        points_for_affirmation=p_aff,
        points_for_justification=p_just,
        randomize_justification_options=bool(
            _get(raw, "randomizeJustificationOptions", "randomize_justification_options", False)
        ),
        **base,
    )


def _tf_complex(raw: Mapping[str, Any], base: Dict[str, Any]) -> Question:
    return TrueFalseComplexQuestion(
        statement=str(raw.get("statement", "")),
        is_statement_true=bool(_get(raw, "isStatementTrue", "is_statement_true", True)),
        **base,
    )


def _cloze(raw: Mapping[str, Any], base: Dict[str, Any]) -> Question:
    subs: List[ClozeSubQuestion] = []
    for s in _get(raw, "subQuestions", "sub_questions", []) or []:
        correct_ids = _get(s, "correctOptionIds", "correct_option_ids") or []
        single = _get(s, "correctOptionId", "correct_option_id")
        if single and single not in correct_ids:
            correct_ids = [single, *correct_ids]
        subs.append(
            ClozeSubQuestion(
                id=str(s["id"]),
                placeholder_label=str(_get(s, "placeholderLabel", "placeholder_label", "")),
                type=s.get("type", "short-answer"),
                points=_num(s.get("points")),
                options=_weighted_options(s.get("options")),
                correct_answer=_get(s, "correctAnswer", "correct_answer"),
                correct_option_ids=[str(x) for x in correct_ids],
                allow_multiple_selections=bool(
                    _get(s, "allowMultipleSelectionsInSubQuestion", "allow_multiple_selections", False)
                ),
            )
        )
    return ClozeQuestion(
        text_with_placeholders=str(_get(raw, "textWithPlaceholders", "text_with_placeholders", "")),
        sub_questions=subs,
        **base,
    )


_PARSERS: Dict[str, Callable[[Mapping[str, Any], Dict[str, Any]], Question]] = {
    "multiple-choice": _mc,
    "multiple-response": _mr,
    "free-text": _free,
    "weighted-choice": _weighted,
    "argument-reconstruction": _argument,
    "true-false-justification": _tf_justification,
    "true-false-complex": _tf_complex,
    "cloze": _cloze,
}


def parse_question(raw: Mapping[str, Any]) -> Question:
    qtype = raw.get("type")
    parser = _PARSERS.get(qtype)
    if parser is None:
        raise UnknownQuestionType(f"unknown question type: {qtype!r}")
    base = {
        "id": str(raw["id"]),
        "text": str(raw.get("text", "")),
        "points": max(0.0, _num(raw.get("points"))),
        "feedback": raw.get("feedback"),
    }
    return parser(raw, base)


def parse_exam(raw: Mapping[str, Any]) -> ExamDefinition:
    ratings = [
        QualitativeRating(
            label=str(r.get("label", "")),
            min_percentage=_num(_get(r, "minPercentage", "min_percentage")),
            is_passing=_get(r, "isPassing", "is_passing"),
        )
        for r in (_get(raw, "qualitativeRatings", "qualitative_ratings", []) or [])
    ]
    grace = _get(raw, "gracePeriodMinutes", "grace_period_minutes")
    threshold = _get(raw, "approvalThreshold", "approval_threshold")
    return ExamDefinition(
        id=str(raw["id"]),
        duration_minutes=int(_get(raw, "durationMinutes", "duration_minutes", 0) or 0),
        questions=[parse_question(q) for q in (raw.get("questions") or [])],
        on_time_up_action=str(_get(raw, "onTimeUpAction", "on_time_up_action") or DEFAULT_ON_TIME_UP_ACTION),
        grace_period_minutes=int(grace) if grace is not None else None,
        auto_submit_on_focus_loss=bool(_get(raw, "autoSubmitOnFocusLoss", "auto_submit_on_focus_loss", False)),
        randomize_questions=bool(_get(raw, "randomizeQuestions", "randomize_questions", False)),
        title=str(raw.get("title") or ""),
        evaluation_type=_get(raw, "evaluationType", "evaluation_type") or "quantitative",
        approval_threshold=_num(threshold) if threshold is not None else None,
        qualitative_ratings=ratings,
    )


def load_exam(path: Union[str, Path]) -> ExamDefinition:
    data = Path(path).read_text(encoding="utf-8")
    return parse_exam(json.loads(data))
