from __future__ import annotations

import json

import pytest

from exam_core.exam_bank import load_exam, parse_exam, parse_question
from exam_core.presentation import is_answered
from exam_core.types import UnknownQuestionType, default_answer_value

from tests.conftest import build_exam_payload


def test_parse_every_question_type():
    exam = parse_exam(build_exam_payload(grace_period_minutes=3))
    assert [q.type for q in exam.questions] == [
        "multiple-choice",
        "multiple-response",
        "weighted-choice",
        "argument-reconstruction",
        "true-false-complex",
        "true-false-justification",
        "free-text",
        "cloze",
    ]
    assert exam.grace_period_minutes == 3
    assert exam.on_time_up_action == "auto-submit"
    assert exam.question("mc").options[0].is_correct is True
    assert exam.question("arg").correct_order == ["p1", "p2", "c", "d"]
    assert exam.question("gap").sub_questions[0].placeholder_label == "1"


def test_unknown_tag_is_rejected():
    with pytest.raises(UnknownQuestionType):
        parse_question({"id": "x", "type": "matching", "points": 1})


def test_snake_case_keys_are_accepted():
    q = parse_question({
        "id": "w",
        "type": "weighted-choice",
        "points": 4,
        "allow_multiple_selections": True,
        "options": [{"id": "a", "text": "A", "percentage": "40"}],
    })
    assert q.allow_multiple_selections is True
    assert q.options[0].percentage == 40.0


def test_justification_points_default_to_parts_sum():
    q = parse_question({
        "id": "j",
        "type": "true-false-justification",
        "pointsForAffirmation": 1,
        "pointsForJustification": 2.5,
    })
    assert q.points == 3.5


def test_negative_points_are_floored():
    q = parse_question({"id": "m", "type": "multiple-choice", "points": -5})
    assert q.points == 0.0


def test_missing_question_raises_key_error():
    exam = parse_exam(build_exam_payload())
    with pytest.raises(KeyError):
        exam.question("nope")


def test_load_exam_from_file(tmp_path):
    path = tmp_path / "exam.json"
    path.write_text(json.dumps(build_exam_payload(exam_id="from-disk")), encoding="utf-8")
    exam = load_exam(path)
    assert exam.id == "from-disk"
    assert exam.duration_minutes == 30


def test_default_values_are_unanswered():
    exam = parse_exam(build_exam_payload())
    for q in exam.questions:
        assert is_answered(q, default_answer_value(q)) is False, q.id


def test_answered_detection_per_shape():
    exam = parse_exam(build_exam_payload())
    assert is_answered(exam.question("tfc"), False) is True
    assert is_answered(exam.question("tfj"), {"affirmation": False, "justification_id": None}) is True
    assert is_answered(exam.question("gap"), {"1": ""}) is False
    assert is_answered(exam.question("gap"), {"1": "sky"}) is True
    assert is_answered(exam.question("mr"), ["a"]) is True


def test_justification_answer_keys_in_either_case():
    q = parse_exam(build_exam_payload()).question("tfj")
    assert is_answered(q, {"affirmationResponse": False}) is True
    assert is_answered(q, {"justificationId": "j2"}) is True
    assert is_answered(q, {"affirmationResponse": None, "justificationId": None}) is False
