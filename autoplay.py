# autoplay.py
from __future__ import annotations
import argparse, json, logging, random, uuid
from typing import Any, Dict, List, Optional
from exam_core.config import DEBUG_TRACE
from exam_core.exam_bank import load_exam
from exam_core.llm_bridge import grade_essay
from exam_core.session import ExamSession
from exam_core.types import Question, Submission, default_answer_value

ESSAY_TEXT = ("The main cause is the change in incentives, because prices rose faster than wages. "
              "According to the 2019 data, consumption fell 4% while savings grew. "
              "Therefore the policy should target incomes before prices.")

def _correct_ids(options) -> List[str]:
    return [o.id for o in options if getattr(o, "is_correct", False)]

def _wrong_id(options) -> Optional[str]:
    for o in options:
        if not getattr(o, "is_correct", False) and getattr(o, "percentage", 0) <= 0: return o.id
    return options[0].id if options else None

def _best_weighted(q) -> Any:
    if q.allow_multiple_selections:
        return [o.id for o in q.options if o.percentage > 0]
    best = max(q.options, key=lambda o: o.percentage, default=None)
    return best.id if best else ""

def _answer_for(q: Question, profile: str) -> Any:
    t = q.type
    if profile == "blank":
        return default_answer_value(q)
    if profile == "perfect":
        if t == "multiple-choice":   return (_correct_ids(q.options) or [""])[0]
        if t == "multiple-response": return _correct_ids(q.options)
        if t == "weighted-choice":   return _best_weighted(q)
        if t == "argument-reconstruction": return list(q.correct_order)
        if t == "true-false-complex": return q.is_statement_true
        if t == "true-false-justification":
            just = _correct_ids(q.justification_options)
            return {"affirmation": q.is_affirmation_true, "justification_id": just[0] if just else None}
        if t == "free-text": return ESSAY_TEXT
        return default_answer_value(q)
    # all-wrong
    if t == "multiple-choice":   return _wrong_id(q.options) or ""
    if t == "multiple-response": return [o.id for o in q.options if not o.is_correct]
    if t == "weighted-choice":
        wrong = _wrong_id(q.options)
        return ([wrong] if wrong else []) if q.allow_multiple_selections else (wrong or "")
    if t == "argument-reconstruction": return list(reversed(q.correct_order))
    if t == "true-false-complex": return not q.is_statement_true
    if t == "true-false-justification":
        return {"affirmation": not q.is_affirmation_true, "justification_id": _wrong_id(q.justification_options)}
    if t == "free-text": return "I don't know."
    return default_answer_value(q)

def run(exam_path: str, profile: str, seed: Optional[int], student: str = "autoplay") -> Submission:
    exam = load_exam(exam_path)
    saved: Dict[str, Submission] = {}
    def _save(sub: Submission) -> str:
        sid = str(uuid.uuid4()); saved[sid] = sub; return sid
    sess = ExamSession(exam, student, _save, grade_essay, rng=random.Random(seed or 1234))
    sess.start()
    for qid in sess.display.question_ids:
        q = exam.question(qid)
        sess.set_answer(qid, _answer_for(q, profile))
        sess.advance_clock(5); sess.next_question()
    if not sess.is_terminal:
        sess.submit("user")
    if sess.submission is None:
        raise RuntimeError(f"Driver produced no submission (phase={sess.phase.value}).")
    return sess.submission

def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--exam", required=True, help="path to an exam JSON file")
    ap.add_argument("--profile", choices=["perfect", "all-wrong", "blank"], default="perfect")
    ap.add_argument("--seed", type=int, default=1337)
    a = ap.parse_args()
    logging.basicConfig(level=logging.INFO if DEBUG_TRACE else logging.WARNING, format="[%(levelname)s] %(message)s")
    sub = run(a.exam, a.profile, a.seed)
    print(json.dumps(sub.to_dict(), indent=2, ensure_ascii=False))

if __name__ == "__main__":
    main()
