# tools/essay_smoke.py
from __future__ import annotations
import json
from openai import NotFoundError
from exam_core.azure_cfg import client, settings
from exam_core.llm_bridge import SYSTEM_PROMPT, parse_feedback

SAMPLE_Q = "Explain one cause of inflation."
SAMPLE_A = "Prices rise when the money supply grows faster than output, because more money chases the same goods."

def main():
    s = settings()
    print("Endpoint :", s.endpoint)
    print("Deploy   :", s.deployment, "(deployment name passed as model=)")
    print("API ver  :", s.api_version, f"(timeout {s.timeout:g}s, retries {s.max_retries})")
    cli = client(s)
    try:
        r = cli.chat.completions.create(
            model=s.deployment,                       # deployment name, not model family
            messages=[{"role":"system","content":SYSTEM_PROMPT},
                      {"role":"user","content":f"Essay question:\n{SAMPLE_Q}\n\nStudent answer:\n{SAMPLE_A}"}],
            temperature=0.0,
            max_tokens=300,
        )
    except NotFoundError:
        print("ERROR 404: Azure cannot find the essay grader deployment for this API version.")
        print("Check ESSAY_GRADER_DEPLOYMENT (or AZURE_OPENAI_DEPLOYMENT) against the portal.")
        raise
    raw = r.choices[0].message.content or "{}"
    print("Reply    :", raw)
    fb = parse_feedback(json.loads(raw))
    print("Parsed   :", fb)

if __name__ == "__main__":
    main()
