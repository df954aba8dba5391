from __future__ import annotations
import os, json, pathlib, random


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


TICK_SECONDS: int = 1

ARGUMENT_PREMISE_COUNT: int = 2
ARGUMENT_CONCLUSION_COUNT: int = 1

DEFAULT_ON_TIME_UP_ACTION: str = "auto-submit"

DEFAULT_APPROVAL_THRESHOLD: float = 60.0
SCALED_SCORE_MAX: float = 10.0

ESSAY_GRADING_ENABLED: bool = True
ESSAY_LOG_PATH: str = "essay_grading_log.jsonl"
ESSAY_LOG_MAX_CHARS: int = 1200
ESSAY_GRADE_MAX: float = 100.0
ESSAY_GRADER_TIMEOUT: float = 20.0
ESSAY_GRADER_MAX_RETRIES: int = 1

AUDIT_EXPORT_ENABLED: bool = True

DEBUG_TRACE: bool = False
# // env overrides for staging/ops; defaults remain conservative.
ESSAY_GRADING_ENABLED = _env_bool("ESSAY_GRADING_ENABLED", ESSAY_GRADING_ENABLED)
ESSAY_LOG_PATH = os.getenv("ESSAY_LOG_PATH", ESSAY_LOG_PATH)
ESSAY_GRADER_TIMEOUT = _env_float("ESSAY_GRADER_TIMEOUT", ESSAY_GRADER_TIMEOUT)
ESSAY_GRADER_MAX_RETRIES = _env_int("ESSAY_GRADER_MAX_RETRIES", ESSAY_GRADER_MAX_RETRIES)
DEFAULT_APPROVAL_THRESHOLD = _env_float("DEFAULT_APPROVAL_THRESHOLD", DEFAULT_APPROVAL_THRESHOLD)
ARGUMENT_PREMISE_COUNT = _env_int("ARGUMENT_PREMISE_COUNT", ARGUMENT_PREMISE_COUNT)
AUDIT_EXPORT_ENABLED = _env_bool("AUDIT_EXPORT_ENABLED", AUDIT_EXPORT_ENABLED)
DEBUG_TRACE = _env_bool("DEBUG_TRACE", False)

def _env_true(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1","true","yes","on")
def load_config() -> dict:
    cfg = {}
    p = pathlib.Path("config.json")
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except ValueError: cfg = {}
    e = os.environ
    if e.get("ESSAY_GRADING_ENABLED"): cfg["ESSAY_GRADING_ENABLED"] = _env_true("ESSAY_GRADING_ENABLED")
    if e.get("LLM_BACKEND"): cfg["LLM_BACKEND"] = e.get("LLM_BACKEND")
    for k in ("AZURE_OPENAI_ENDPOINT","AZURE_OPENAI_API_VERSION","AZURE_OPENAI_API_KEY","AZURE_OPENAI_DEPLOYMENT"):
        if e.get(k): cfg[k] = e.get(k)
    if e.get("SEED"): cfg["SEED"] = int(e.get("SEED"))
    return cfg
def get_backend(cfg: dict) -> str|None:
    if not cfg.get("ESSAY_GRADING_ENABLED", ESSAY_GRADING_ENABLED): return None
    b = (cfg.get("LLM_BACKEND") or "").lower().strip()
    return b if b == "azure" else None
def make_rng(cfg: dict) -> random.Random:
    s = cfg.get("SEED")
    return random.Random(int(s)) if s is not None else random.Random()
