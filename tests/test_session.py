from __future__ import annotations

import dataclasses
import random
import threading

import pytest

from exam_core.clock import Phase
from exam_core.session import ExamSession, SessionClosedError, SubmissionError
from exam_core.types import EssayFeedback

from tests.conftest import PERFECT_ANSWERS, FixedClock, RecordingStore, build_exam


def _session(exam=None, store=None, **kwargs) -> ExamSession:
    sess = ExamSession(
        exam or build_exam(),
        "student-1",
        store if store is not None else RecordingStore(),
        rng=random.Random(7),
        now=FixedClock(),
        **kwargs,
    )
    sess.start()
    return sess


def _answer_all(sess: ExamSession) -> None:
    for qid, value in PERFECT_ANSWERS.items():
        assert sess.set_answer(qid, value)


def test_user_submit_scores_and_closes(store):
    sess = _session(store=store)
    _answer_all(sess)
    sess.advance_clock(90)
    res = sess.submit("user")
    assert res.ok and res.submission_id == "sub-1"
    sub = store.saved[0]
    assert sub.score == 50
    assert sub.trigger == "user"
    assert sub.elapsed_seconds == 90
    assert [a.question_id for a in sub.answers] == [q.id for q in sess.exam.questions]
    assert sess.phase is Phase.ENDED
    assert sess.set_answer("mc", "b") is False
    assert sess.answer("mc").value == "a"


def test_second_submit_reports_completed(store):
    sess = _session(store=store)
    first = sess.submit()
    again = sess.submit()
    assert again.status == "completed"
    assert again.submission_id == first.submission_id
    assert store.calls == 1


def test_blank_session_scores_zero(store):
    sess = _session(store=store)
    sess.submit()
    assert store.saved[0].score == 0
    assert all(a.score == 0 for a in store.saved[0].answers)


def test_answer_snapshot_is_isolated_from_caller():
    sess = _session()
    chosen = ["a", "c"]
    sess.set_answer("mr", chosen)
    chosen.append("b")
    assert sess.answer("mr").value == ["a", "c"]


def test_unknown_question_is_rejected():
    sess = _session()
    with pytest.raises(KeyError):
        sess.set_answer("nope", 1)


def test_timer_expiry_auto_submits_once():
    store = RecordingStore()
    sess = _session(build_exam(duration_minutes=1), store)
    sess.set_answer("mc", "a")
    sess.advance_clock(61)
    assert sess.phase is Phase.ENDED
    assert len(store.saved) == 1
    sub = store.saved[0]
    assert sub.trigger == "timer"
    assert sub.score == 10
    assert sub.elapsed_seconds == 60
    assert sess.submit("user").status == "completed"


def test_prevent_submit_closes_without_saving():
    store = RecordingStore()
    sess = _session(build_exam(duration_minutes=1, on_time_up_action="prevent-submit"), store)
    sess.advance_clock(60)
    assert sess.phase is Phase.PREVENTED
    assert sess.set_answer("mc", "a") is False
    with pytest.raises(SessionClosedError):
        sess.submit("user")
    assert store.calls == 0


def test_grace_period_allows_late_manual_submit():
    store = RecordingStore()
    exam = build_exam(duration_minutes=1, on_time_up_action="allow-submission-grace-period", grace_period_minutes=5)
    sess = _session(exam, store)
    sess.advance_clock(60)
    assert sess.phase is Phase.GRACE
    assert sess.set_answer("tfc", True)
    sess.advance_clock(120)
    res = sess.submit("user")
    assert res.ok
    assert store.saved[0].elapsed_seconds == 60
    assert store.saved[0].score == 5
    sess.advance_clock(600)
    assert len(store.saved) == 1


def test_grace_period_expiry_auto_submits():
    store = RecordingStore()
    exam = build_exam(duration_minutes=1, on_time_up_action="allow-submission-grace-period", grace_period_minutes=5)
    sess = _session(exam, store)
    sess.advance_clock(60 + 300)
    assert sess.phase is Phase.ENDED
    assert [s.trigger for s in store.saved] == ["timer"]


def test_focus_loss_submits_once_when_enabled():
    store = RecordingStore()
    sess = _session(build_exam(auto_submit_on_focus_loss=True), store)
    sess.monitor.copy()
    sess.monitor.blur()
    sess.monitor.visibility_change(hidden=True)
    assert len(store.saved) == 1
    sub = store.saved[0]
    assert sub.trigger == "focusLoss"
    assert [i.type for i in sub.infractions] == ["copy", "focus-lost"]
    assert sess.phase is Phase.ENDED


def test_focus_loss_only_records_when_disabled(store):
    sess = _session(store=store)
    sess.monitor.blur()
    assert store.calls == 0
    assert [i.type for i in sess.infractions] == ["focus-lost"]
    assert sess.phase is Phase.MAIN


def test_failed_manual_submit_can_be_retried():
    store = RecordingStore(fail_times=1)
    sess = _session(store=store)
    with pytest.raises(SubmissionError) as err:
        sess.submit("user")
    assert not isinstance(err.value, SessionClosedError)
    assert sess.phase is Phase.MAIN
    assert sess.set_answer("mc", "a")
    res = sess.submit("user")
    assert res.ok
    assert store.saved[0].score == 10


def test_failed_timer_submit_closes_the_session():
    store = RecordingStore(fail_times=1)
    sess = _session(build_exam(duration_minutes=1), store)
    sess.advance_clock(60)
    assert sess.phase is Phase.ENDED
    assert sess.last_error
    assert sess.submission_id is None
    with pytest.raises(SessionClosedError):
        sess.submit("user")
    assert store.calls == 1


def test_concurrent_triggers_produce_one_submission():
    entered = threading.Event()
    release = threading.Event()
    saved = []

    def slow_save(sub):
        entered.set()
        release.wait(5)
        saved.append(sub)
        return {"id": "only-one"}

    sess = _session(build_exam(auto_submit_on_focus_loss=True), slow_save)
    results = []
    worker = threading.Thread(target=lambda: results.append(sess.submit("user")))
    worker.start()
    assert entered.wait(5)

    assert sess.submit("user").status == "in-progress"
    assert sess.monitor.blur().type == "focus-lost"
    assert sess.set_answer("mc", "a") is False
    assert sess.state()["submitting"] is True

    release.set()
    worker.join(5)
    assert len(saved) == 1
    assert results[0].submission_id == "only-one"
    assert sess.state()["submitting"] is False


def test_many_threads_race_to_submit():
    store = RecordingStore()
    sess = _session(store=store)
    barrier = threading.Barrier(8)
    statuses = []

    def go():
        barrier.wait()
        statuses.append(sess.submit("user").status)

    threads = [threading.Thread(target=go) for _ in range(8)]
    for t in threads: t.start()
    for t in threads: t.join(5)
    assert store.calls == 1
    assert statuses.count("submitted") == 1


def test_essay_feedback_attached_but_score_untouched(store):
    calls = []

    def grader(question, answer):
        calls.append((question, answer))
        return EssayFeedback(key_themes=["inflation"], key_facts=[], grade_suggestion=80.0)

    sess = ExamSession(build_exam(), "s", store, grader, rng=random.Random(1), now=FixedClock())
    sess.start()
    sess.set_answer("essay", "Prices rise because money supply grows.")
    sess.submit()
    sub = store.saved[0]
    assert sub.essay_feedback["essay"].grade_suggestion == 80.0
    assert sub.score == 0
    assert calls == [("Explain the causes of inflation", "Prices rise because money supply grows.")]


def test_essay_grader_failure_does_not_block_submission(store):
    def broken(question, answer):
        raise RuntimeError("llm down")

    sess = ExamSession(build_exam(), "s", store, broken, rng=random.Random(1))
    sess.set_answer("essay", "some text")
    assert sess.submit().ok
    assert store.saved[0].essay_feedback == {}


def test_blank_essay_is_not_graded(store):
    calls = []
    sess = ExamSession(build_exam(), "s", store, lambda q, a: calls.append(a), rng=random.Random(1))
    sess.set_answer("essay", "   ")
    sess.submit()
    assert calls == []


def test_navigation_clamps_and_freezes_when_terminal():
    sess = _session()
    n = len(sess.exam.questions)
    assert sess.go_to_question(99) == n - 1
    assert sess.go_to_question(-4) == 0
    assert sess.next_question() == 1
    assert sess.previous_question() == 0
    sess.next_question()
    sess.submit()
    assert sess.go_to_question(5) == 1


def test_randomized_order_is_display_only():
    exam = build_exam(randomize_questions=True)
    sess = ExamSession(exam, "s", RecordingStore(), rng=random.Random(3))
    assert sorted(sess.display.question_ids) == sorted(q.id for q in exam.questions)
    assert sorted(sess.display.option_ids["arg"]) == ["c", "d", "p1", "p2"]
    assert [a.question_id for a in sess.answers()] == [q.id for q in exam.questions]


def test_sync_clock_carries_fractions():
    sess = ExamSession(build_exam(duration_minutes=1), "s", RecordingStore())
    sess.start(100.0)
    sess.sync_clock(100.6)
    assert sess.clock.remaining == 60
    sess.sync_clock(101.2)
    assert sess.clock.remaining == 59
    sess.sync_clock(101.0)
    assert sess.clock.remaining == 59


def test_state_projection(store):
    sess = _session(store=store)
    sess.set_answer("tfc", False)
    state = sess.state()
    assert state["phase"] == "main"
    assert state["formattedTime"] == "30:00"
    assert state["answered"]["tfc"] is True
    assert state["answered"]["mc"] is False
    assert state["submissionId"] is None
    sess.submit()
    assert sess.state()["submissionId"] == "sub-1"


def test_camel_case_justification_answer_counts_as_answered():
    sess = _session()
    sess.set_answer("tfj", {"affirmationResponse": True, "justificationId": "j1"})
    assert sess.is_answered("tfj") is True
    assert sess.state()["answered"]["tfj"] is True
    assert sess.submit().submission.answers[5].score == 5


def test_answer_accessors_hand_out_copies(store):
    sess = _session(store=store)
    sess.set_answer("mr", ["a"])
    sess.answer("mr").value.append("b")
    sess.answers()[1].value.append("c")
    assert sess.answer("mr").value == ["a"]

    sess.submit()
    with pytest.raises(dataclasses.FrozenInstanceError):
        sess.answer("mc").value = "a"
    with pytest.raises(dataclasses.FrozenInstanceError):
        sess.submission.answers[0].score = 10
    assert store.saved[0].answers[0].score == 0


def test_in_flight_save_that_outlives_the_clock_ends_the_session():
    entered = threading.Event()
    release = threading.Event()

    def slow_save(sub):
        entered.set()
        release.wait(5)
        return "late-but-saved"

    exam = build_exam(duration_minutes=1, on_time_up_action="prevent-submit")
    sess = _session(exam, slow_save)
    results = []
    worker = threading.Thread(target=lambda: results.append(sess.submit("user")))
    worker.start()
    assert entered.wait(5)

    sess.advance_clock(60)
    assert sess.phase is Phase.PREVENTED

    release.set()
    worker.join(5)
    assert results[0].ok
    assert sess.phase is Phase.ENDED
    assert sess.state()["submissionId"] == "late-but-saved"
