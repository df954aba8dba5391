from __future__ import annotations

import json

import autoplay
from exam_core import config

from tests.conftest import build_exam_payload


def _exam_file(tmp_path):
    path = tmp_path / "exam.json"
    path.write_text(json.dumps(build_exam_payload(randomize_questions=True)), encoding="utf-8")
    return path


def test_profiles_bracket_the_score(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "ESSAY_LOG_PATH", str(tmp_path / "essay.jsonl"))
    monkeypatch.delenv("LLM_BACKEND", raising=False)
    path = _exam_file(tmp_path)

    perfect = autoplay.run(str(path), "perfect", seed=5)
    assert perfect.score == 50
    assert perfect.elapsed_seconds == 40
    assert "essay" in perfect.essay_feedback

    assert autoplay.run(str(path), "all-wrong", seed=5).score == 0
    blank = autoplay.run(str(path), "blank", seed=5)
    assert blank.score == 0
    assert blank.essay_feedback == {}
