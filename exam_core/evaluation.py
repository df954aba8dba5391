"""Turn a numeric submission score into the result an examinee or grader sees."""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Optional

from .config import DEFAULT_APPROVAL_THRESHOLD, SCALED_SCORE_MAX
from .scoring import aggregate_score
from .types import ExamDefinition, Submission


log = logging.getLogger(__name__)

PASSED = "passed"
FAILED = "failed"
IN_REVIEW = "in-review"


@dataclass(frozen=True)
class Evaluation:
    status: str
    label: str
    percentage: Optional[float]
    scaled_score: Optional[float]
    total_points: float


def total_points(exam: ExamDefinition) -> float:
    return float(sum(max(0.0, q.points or 0.0) for q in exam.questions))


def _approval_threshold(exam: ExamDefinition) -> float:
    t = exam.approval_threshold
    if t is None or not (0.0 <= t <= 100.0):
        return DEFAULT_APPROVAL_THRESHOLD
    return float(t)


def evaluate(score: Optional[float], exam: ExamDefinition) -> Evaluation:
    """
    Quantitative exams pass at the approval threshold (percent of total
    points). Qualitative exams take the highest rating whose minimum
    percentage is reached; its ``is_passing`` flag decides the status, and an
    unset flag leaves the result in review.
    """
    total = total_points(exam)
    if score is None:
        return Evaluation(IN_REVIEW, "N/A", None, None, total)

    if total > 0:
        pct = score / total * 100.0
        scaled = score / total * SCALED_SCORE_MAX
    else:
        pct = 100.0 if score > 0 else 0.0
        scaled = SCALED_SCORE_MAX if score > 0 else 0.0

    if exam.evaluation_type == "qualitative":
        if total <= 0 or not exam.qualitative_ratings:
            return Evaluation(IN_REVIEW, "N/A", pct, scaled, total)
        for rating in sorted(exam.qualitative_ratings, key=lambda r: r.min_percentage, reverse=True):
            if pct >= rating.min_percentage:
                status = IN_REVIEW
                if rating.is_passing is True: status = PASSED
                elif rating.is_passing is False: status = FAILED
                return Evaluation(status, rating.label, pct, scaled, total)
        return Evaluation(IN_REVIEW, "uncategorized", pct, scaled, total)

    status = PASSED if pct >= _approval_threshold(exam) else FAILED
    return Evaluation(status, status, pct, scaled, total)


def rescore_answer(submission: Submission, exam: ExamDefinition, question_id: str, score: float) -> Submission:
    """Patch one per-question score (manual grading) and recompute the aggregate."""
    question = exam.question(question_id)
    points = max(0.0, float(question.points or 0.0))
    new_score = max(0.0, min(points, float(score)))
    answers = []
    found = False
    for a in submission.answers:
        if a.question_id == question_id:
            found = True
            answers.append(dataclasses.replace(a, score=new_score))
        else:
            answers.append(dataclasses.replace(a))
    if not found:
        raise KeyError(question_id)
    log.info("rescored exam=%s student=%s question=%s -> %.2f", exam.id, submission.student_id, question_id, new_score)
    return dataclasses.replace(
        submission,
        answers=answers,
        score=aggregate_score(a.score for a in answers),
    )
