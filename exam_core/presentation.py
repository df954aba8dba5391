from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, TypeVar
import random

from .clock import format_seconds
from .types import ExamDefinition, Question, tfj_parts

T = TypeVar("T")

__all__ = ["DisplayOrder", "build_display_order", "is_answered", "format_seconds", "shuffled"]


def shuffled(items: Sequence[T], rng: random.Random) -> List[T]:
    out = list(items)
    rng.shuffle(out)
    return out


@dataclass
class DisplayOrder:
    """Presentation-only permutation of canonical ids."""
    question_ids: List[str] = field(default_factory=list)
    option_ids: Dict[str, List[str]] = field(default_factory=dict)


def _option_ids(q: Question, rng: random.Random) -> Optional[List[str]]:
    t = q.type
    if t in ("multiple-choice", "multiple-response", "weighted-choice"):
        ids = [o.id for o in q.options]
        return shuffled(ids, rng) if q.randomize_options else ids
    if t == "true-false-justification":
        ids = [o.id for o in q.justification_options]
        return shuffled(ids, rng) if q.randomize_justification_options else ids
    if t == "argument-reconstruction":
        # items start scrambled; the examinee's order becomes the answer
        return shuffled([i.id for i in q.items], rng)
    return None


def build_display_order(exam: ExamDefinition, rng: Optional[random.Random] = None) -> DisplayOrder:
    rng = rng or random.Random()
    qids = [q.id for q in exam.questions]
    if exam.randomize_questions:
        qids = shuffled(qids, rng)
    order = DisplayOrder(question_ids=qids)
    for q in exam.questions:
        ids = _option_ids(q, rng)
        if ids is not None:
            order.option_ids[q.id] = ids
    return order


def _filled(v: Any) -> bool:
    if v is None:
        return False
    if isinstance(v, str):
        return v != ""
    if isinstance(v, (list, tuple)):
        return len(v) > 0
    return True


def is_answered(question: Question, value: Any) -> bool:
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    if isinstance(value, dict):
        if question.type == "true-false-justification":
            aff, just = tfj_parts(value)
            return aff is not None or bool(just)
        if question.type == "cloze":
            return any(_filled(v) for v in value.values())
        return len(value) > 0
    return value is not None and value != ""
