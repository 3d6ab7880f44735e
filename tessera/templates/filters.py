"""
Post-filters - optional cosmetic normalisation of template markup.

- remove_html_comments: drops ``<!-- ... -->`` but keeps conditional
  comments (``<!--[if IE]>`` and ``<!--<![endif]-->``)
- collapse_whitespace: squeezes whitespace runs outside sensitive elements

Both accept a ``protect`` pattern whose matches pass through untouched;
the compiler passes the template tag pattern so code inside tags is
never rewritten.
"""

import re
from typing import Iterator, Optional, Tuple


SENSITIVE_ELEMENTS = ("pre", "code", "textarea", "script", "style")

SENSITIVE_PATTERN = (
    r"<(?P<element>" + "|".join(SENSITIVE_ELEMENTS) + r")\b[^>]*>.*?</(?P=element)\s*>"
)
HTML_COMMENT_PATTERN = r"<!--(?!<!)[^\[>].*?-->"
WHITESPACE_RUN_RE = re.compile(r"\s{2,}")


def _combine(*patterns: Optional[str]) -> re.Pattern:
    return re.compile("|".join(f"(?:{p})" for p in patterns if p), re.S | re.I)


def _spans(text: str, pattern: re.Pattern) -> Iterator[Tuple[bool, str]]:
    """Split ``text`` into (sensitive, chunk) pairs, in order."""
    pos = 0
    for match in pattern.finditer(text):
        if match.start() > pos:
            yield False, text[pos:match.start()]
        yield True, match.group(0)
        pos = match.end()
    if pos < len(text):
        yield False, text[pos:]


def remove_html_comments(text: str, protect: Optional[re.Pattern] = None) -> str:
    """Delete standard HTML comments; conditional comments survive."""
    pattern = re.compile(
        (f"(?P<keep>{protect.pattern})|" if protect is not None else "") + HTML_COMMENT_PATTERN,
        re.S,
    )

    def _replace(match: re.Match) -> str:
        if protect is not None and match.group("keep") is not None:
            return match.group("keep")
        return ""

    return pattern.sub(_replace, text)


def collapse_whitespace(text: str, protect: Optional[re.Pattern] = None) -> str:
    """
    Collapse runs of two or more whitespace characters into one space.

    Content of pre / code / textarea / script / style elements, their
    delimiting tags, and anything matching ``protect`` is left as is.
    """
    pattern = _combine(protect.pattern if protect is not None else None, SENSITIVE_PATTERN)
    return "".join(
        chunk if sensitive else WHITESPACE_RUN_RE.sub(" ", chunk)
        for sensitive, chunk in _spans(text, pattern)
    )
