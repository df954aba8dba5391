from __future__ import annotations
import json, time, logging
from typing import Any, Dict, List

from . import config
from .azure_cfg import client as azure_client, settings as azure_settings
from .heuristics import heuristic_essay_feedback
from .types import EssayFeedback

log = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an assistant that grades essay questions. Identify the key themes and key facts "
    "presented in the student's answer and suggest a grade between 0 and 100. "
    "Return ONLY compact JSON with keys: keyThemes (list of strings), keyFacts (list of strings), "
    "gradeSuggestion (number). No explanations."
)

def backend_in_use() -> str:
    return config.get_backend(config.load_config()) or "none"

def _grade_azure(question: str, answer: str) -> str:
    s = azure_settings(); cli = azure_client(s)
    user = f"Essay question:\n{(question or '').strip()}\n\nStudent answer:\n{(answer or '').strip()}"
    resp = cli.chat.completions.create(
        model=s.deployment, messages=[{"role":"system","content":SYSTEM_PROMPT},{"role":"user","content":user}],
        temperature=0.0, max_tokens=400, top_p=1.0,
    )
    return resp.choices[0].message.content or "{}"

def _str_list(raw: Any) -> List[str]:
    if not isinstance(raw, list): return []
    return [str(x).strip() for x in raw if str(x).strip()]

def parse_feedback(raw_json: Dict[str, Any]) -> EssayFeedback:
    try:
        grade = float(raw_json.get("gradeSuggestion", raw_json.get("grade_suggestion", 0.0)))
    except (TypeError, ValueError):
        grade = 0.0
    return EssayFeedback(
        key_themes=_str_list(raw_json.get("keyThemes", raw_json.get("key_themes"))),
        key_facts=_str_list(raw_json.get("keyFacts", raw_json.get("key_facts"))),
        grade_suggestion=max(0.0, min(config.ESSAY_GRADE_MAX, grade)),
    )

def grade_essay(question: str, answer: str) -> EssayFeedback:
    """
    Advisory feedback for one essay answer. Never affects the stored score.
    Azure failures fall back to the offline heuristic.
    """
    t0 = time.time()
    backend = backend_in_use()
    raw_json: Dict[str, Any] | None = None
    if backend == "azure":
        try:
            raw_json = json.loads(_grade_azure(question or "", answer or ""))
            fb = parse_feedback(raw_json)
        except Exception as e:
            log.warning("azure essay grading failed, using heuristic: %s", e)
            fb = heuristic_essay_feedback(question or "", answer or ""); raw_json = {"error": str(e)}
    else:
        fb = heuristic_essay_feedback(question or "", answer or "")
    limit = config.ESSAY_LOG_MAX_CHARS
    try:
        entry = {
            "ts": round(time.time(), 3),
            "backend": backend,
            "question": (question or "")[:limit],
            "answer": (answer or "")[:limit],
            "raw": raw_json,
            "grade_suggestion": fb.grade_suggestion,
            "rt_ms": int((time.time()-t0)*1000),
        }
        with open(config.ESSAY_LOG_PATH, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")
    except OSError as e:
        log.debug("essay log not written: %s", e)
    return fb
