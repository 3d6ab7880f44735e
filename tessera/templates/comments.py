"""
Comment stripping - removes ``{# ... #}`` regions before any other analysis.

Comments nest to any depth. The scan is a single left-to-right pass with
a depth counter; characters seen while the depth is positive are never
emitted.
"""

import logging
from typing import Optional

logger = logging.getLogger("tessera.templates.comments")

COMMENT_OPEN = "{#"
COMMENT_CLOSE = "#}"


def strip_comments(text: str, template: Optional[str] = None) -> str:
    """
    Return ``text`` with every (possibly nested) comment region removed.

    An unterminated comment discards everything from its outermost
    opening marker to the end of input. A warning is logged when that
    happens; it is not an error.
    """
    if COMMENT_OPEN not in text:
        return text

    length = len(text)
    depth = 0
    start = 0
    outer_open = 0
    output = []
    i = 0

    while i < length - 1:
        pair = text[i:i + 2]
        if pair == COMMENT_OPEN:
            if depth == 0:
                output.append(text[start:i])
                outer_open = i
            depth += 1
            i += 2
            continue
        if pair == COMMENT_CLOSE and depth > 0:
            depth -= 1
            i += 2
            start = i
            continue
        i += 1

    if depth == 0:
        output.append(text[start:])
    else:
        logger.warning(
            "Unterminated comment in %s; discarding %d trailing characters",
            template or "<string>",
            length - outer_open,
        )

    return "".join(output)
