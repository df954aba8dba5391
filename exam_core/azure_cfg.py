"""Azure OpenAI connection for the essay grader.

Values come from the environment first and fall back to
``.azure_config.json``. ``ESSAY_GRADER_DEPLOYMENT`` (or ``essay_deployment``
in the JSON file) points essay grading at its own deployment; otherwise the
shared ``AZURE_OPENAI_DEPLOYMENT`` is used.
"""
from __future__ import annotations
import os, json, pathlib
from dataclasses import dataclass
from typing import Dict
from openai import AzureOpenAI

from . import config

CONFIG_FILE = ".azure_config.json"

# field -> (env var, json key)
_SOURCES: Dict[str, tuple[str, str]] = {
    "endpoint":    ("AZURE_OPENAI_ENDPOINT", "endpoint"),
    "api_key":     ("AZURE_OPENAI_API_KEY", "api_key"),
    "api_version": ("AZURE_OPENAI_API_VERSION", "api_version"),
    "deployment":  ("AZURE_OPENAI_DEPLOYMENT", "deployment"),
}
_ESSAY_DEPLOYMENT = ("ESSAY_GRADER_DEPLOYMENT", "essay_deployment")


@dataclass(frozen=True)
class EssayGraderSettings:
    endpoint: str
    api_key: str
    api_version: str
    deployment: str          # what essay grading sends as model=
    timeout: float = 20.0
    max_retries: int = 1


def _file_values(path: str = CONFIG_FILE) -> Dict[str, str]:
    p = pathlib.Path(path)
    if not p.exists(): return {}
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except ValueError:
        return {}
    return {k: str(v) for k, v in raw.items() if v} if isinstance(raw, dict) else {}


def _resolve() -> Dict[str, str]:
    file_vals: Dict[str, str] | None = None
    out: Dict[str, str] = {}
    for field, (env, key) in {**_SOURCES, "essay_deployment": _ESSAY_DEPLOYMENT}.items():
        val = os.getenv(env, "")
        if not val:
            if file_vals is None: file_vals = _file_values()
            val = file_vals.get(key, "")
        out[field] = val
    return out


def is_configured() -> bool:
    vals = _resolve()
    return all(vals[f] for f in ("endpoint", "api_key", "api_version")) and bool(vals["essay_deployment"] or vals["deployment"])


def settings() -> EssayGraderSettings:
    vals = _resolve()
    deployment = vals.pop("essay_deployment") or vals["deployment"]
    missing = [f for f in ("endpoint", "api_key", "api_version") if not vals[f]]
    if not deployment: missing.append("deployment")
    if missing:
        raise RuntimeError(f"Essay grader (Azure OpenAI) not configured. Missing: {', '.join(missing)}")
    return EssayGraderSettings(
        endpoint=vals["endpoint"],
        api_key=vals["api_key"],
        api_version=vals["api_version"],
        deployment=deployment,
        timeout=config.ESSAY_GRADER_TIMEOUT,
        max_retries=config.ESSAY_GRADER_MAX_RETRIES,
    )


def client(s: EssayGraderSettings | None = None) -> AzureOpenAI:
    s = s or settings()
    return AzureOpenAI(
        azure_endpoint=s.endpoint,
        api_key=s.api_key,
        api_version=s.api_version,
        timeout=s.timeout,
        max_retries=s.max_retries,
    )
