import json
import re
from typing import Any, List

from talent_match.utils.exceptions import JSONExtractionError

FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
BRACE_SPAN = re.compile(r"\{[\s\S]*\}")

# longest comma-separated item still treated as a token, e.g. "Spring Boot 3"
MAX_TOKEN_WORDS = 3


def extract_json(text: str) -> Any:
    """
    Recover a JSON value from free-form model output.

    Tries, in order: the whole text, the interior of the first fenced code
    block (optionally tagged ``json``), then the greedy span from the first
    ``{`` to the last ``}``. Raises JSONExtractionError when all three fail.
    """
    if not isinstance(text, str):
        raise JSONExtractionError(f"Expected model output as text, got {type(text).__name__}")

    try:
        return json.loads(text)
    except ValueError:
        pass

    fenced = FENCED_BLOCK.search(text)
    if fenced:
        try:
            return json.loads(fenced.group(1))
        except ValueError:
            pass

    span = BRACE_SPAN.search(text)
    if span:
        try:
            return json.loads(span.group(0))
        except ValueError:
            pass

    raise JSONExtractionError("Could not parse JSON from response", text=text)


def _as_text(x: Any) -> str:
    if x is None:
        return ""
    if isinstance(x, list):
        # join list of sentences or tokens into one paragraph
        return " ".join([str(t).strip() for t in x if str(t).strip()])
    return str(x).strip()


def _as_list(x: Any) -> List[str]:
    if x is None:
        return []
    if isinstance(x, str):
        # "Java, Spring; SQL" is a token list; a sentence that happens to contain
        # commas stays one item and is only split on semicolons
        parts = [p.strip() for p in x.replace(";", ",").split(",")]
        parts = [p for p in parts if p]
        if all(len(p.split()) <= MAX_TOKEN_WORDS for p in parts):
            return parts
        return [p.strip() for p in x.split(";") if p.strip()]
    if isinstance(x, (list, tuple)):
        out = []
        for t in x:
            if isinstance(t, dict):
                # models sometimes answer [{"name": "Java"}] instead of ["Java"]
                t = t.get("name") or t.get("value") or " ".join(str(v) for v in t.values())
            t = str(t).strip() if t is not None else ""
            if t:
                out.append(t)
        return out
    return [str(x).strip()]
