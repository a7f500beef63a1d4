# enjoytravel_scraper/scrapers/payload.py
"""
Decoding of the page body text returned by BrowserQL.

When the browser lands on a JSON endpoint the body text is usually the raw
JSON document. If the site wraps it (challenge page, pretty-print viewer,
stray markup) the strict decode fails and we fall back to pulling the first
balanced ``{...}`` or ``[...]`` fragment out of the text.
"""
import json
import logging
from typing import Any, Optional

from enjoytravel_scraper.errors import ParseError

log = logging.getLogger("payload")

# how many opening brackets the fallback scanner will try before giving up
MAX_FRAGMENT_ATTEMPTS = 25
PREVIEW_CHARS = 200

_CLOSERS = {"{": "}", "[": "]"}


def _balanced_end(text: str, start: int) -> Optional[int]:
    """Index one past the bracket that closes ``text[start]``, or None."""
    stack = []
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in ("}", "]"):
            if not stack or stack.pop() != ch:
                return None
            if not stack:
                return i + 1
    return None


def extract_json_fragment(text: str) -> Optional[Any]:
    """Return the first balanced JSON object/array embedded in ``text`` that parses."""
    if not text:
        return None
    attempts = 0
    pos = 0
    while attempts < MAX_FRAGMENT_ATTEMPTS:
        starts = [i for i in (text.find("{", pos), text.find("[", pos)) if i != -1]
        if not starts:
            return None
        start = min(starts)
        attempts += 1
        end = _balanced_end(text, start)
        if end is not None:
            try:
                return json.loads(text[start:end])
            except ValueError:
                pass
        pos = start + 1
    return None


def decode_json_payload(text: Optional[str], what: str = "response") -> Any:
    if text is None:
        text = ""
    try:
        return json.loads(text)
    except ValueError:
        pass

    found = extract_json_fragment(text)
    if found is None:
        raise ParseError(f"Could not parse {what}: {text[:PREVIEW_CHARS]}", text=text)
    log.debug("Recovered embedded JSON from %s (%s chars of text)", what, len(text))
    return found
