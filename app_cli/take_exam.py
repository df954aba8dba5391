from __future__ import annotations
import argparse, json, logging, os, time, uuid
from pathlib import Path
from exam_core.config import DEBUG_TRACE, get_backend, load_config, make_rng
from exam_core.exam_bank import load_exam
from exam_core.llm_bridge import grade_essay
from exam_core.session import ExamSession, SubmissionError

def _save_local(sub) -> str:
    os.makedirs("submissions", exist_ok=True)
    sid = str(uuid.uuid4())
    Path("submissions", f"{sid}.json").write_text(json.dumps(sub.to_dict(), indent=2), encoding="utf-8")
    return sid

def _ids(raw: str, options: list[str]) -> list[str]:
    out = []
    for tok in raw.replace(",", " ").split():
        if tok.isdigit() and 0 <= int(tok) < len(options): out.append(options[int(tok)])
    return out

def _show_options(q, ids: list[str]) -> None:
    labels = {}
    for attr in ("options", "justification_options", "items"):
        for o in getattr(q, attr, None) or []: labels[o.id] = o.text
    for i, oid in enumerate(ids): print(f"  [{i}] {labels.get(oid, oid)}")

def _setup_logging() -> None:
    logging.basicConfig(level=logging.WARNING, format="[%(levelname)s] %(message)s")
    if DEBUG_TRACE:
        logging.getLogger("exam_core").setLevel(logging.DEBUG)

def choose_backend(cfg: dict) -> None:
    b = get_backend(cfg)
    if b: print(f"Using essay grader: {b}"); return
    c = input("Essay feedback: [0] offline heuristic  [1] Azure OpenAI: ").strip()
    if c == "1": os.environ["LLM_BACKEND"] = "azure"

def ask(sess: ExamSession, q) -> object:
    ids = sess.display.option_ids.get(q.id, [])
    t = q.type
    if t == "multiple-choice" or (t == "weighted-choice" and not q.allow_multiple_selections):
        _show_options(q, ids); got = _ids(input("Your choice (index): "), ids)
        return got[0] if got else ""
    if t in ("multiple-response", "weighted-choice"):
        _show_options(q, ids); return _ids(input("Your choices (indexes, space separated): "), ids)
    if t == "argument-reconstruction":
        _show_options(q, ids); return _ids(input("Order: premise, premise, conclusion, rest: "), ids)
    if t == "true-false-complex":
        print(f"  {q.statement}"); return input("True or false? [t/f]: ").strip().lower().startswith("t")
    if t == "true-false-justification":
        print(f"  {q.affirmation}")
        aff = input("True or false? [t/f]: ").strip().lower().startswith("t")
        _show_options(q, ids); got = _ids(input("Justification (index): "), ids)
        return {"affirmation": aff, "justification_id": got[0] if got else None}
    if t == "cloze":
        print(f"  {q.text_with_placeholders}")
        return {s.placeholder_label: input(f"  {s.placeholder_label}: ").strip() for s in q.sub_questions}
    return input("Your answer: ").strip()

def main():
    ap = argparse.ArgumentParser(description="Take an exam in the terminal.")
    ap.add_argument("exam", help="path to the exam JSON file")
    ap.add_argument("--student", default="local-student")
    a = ap.parse_args()
    _setup_logging()
    cfg = load_config(); choose_backend(cfg)
    exam = load_exam(a.exam)
    sess = ExamSession(exam, a.student, _save_local, grade_essay, rng=make_rng(cfg))
    sess.start(time.monotonic())
    print(f"{exam.title or exam.id}: {len(exam.questions)} questions, {exam.duration_minutes} min")
    while not sess.is_terminal:
        q = sess.current_question()
        if q is None: break
        n = len(sess.display.question_ids)
        print(f"\n[{sess.clock.formatted_time()}] Question {sess.current_index + 1}/{n} ({q.points:g} pts)\n{q.text}")
        value = ask(sess, q)
        sess.sync_clock(time.monotonic())
        if sess.is_terminal: break
        sess.set_answer(q.id, value)
        if sess.current_index + 1 < n:
            sess.next_question(); continue
        if input("Submit now? [y/N]: ").strip().lower() == "y":
            try: sess.submit("user")
            except SubmissionError as e: print(f"Submit failed: {e}")
        else:
            sess.go_to_question(0)
    if sess.submission is not None:
        print(f"Done. Score {sess.submission.score}, saved as submissions/{sess.submission_id}.json")
    else:
        print(f"Session closed in phase '{sess.phase.value}' without a submission.")
if __name__ == "__main__": main()
