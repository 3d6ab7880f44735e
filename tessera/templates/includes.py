"""
Include expansion - inlines ``{% include "path" %}`` recursively.

Expansion has no cross-branch visited-set (the same partial may legitimately
appear many times), so a depth ceiling is what stops cyclic includes. The
walk keeps its own stack of open templates instead of recursing, so any
ceiling is reported as IncludeDepthFault rather than hitting the
interpreter's recursion limit.
"""

import logging
import re
from typing import Iterator, List, Optional

from .comments import strip_comments
from .dependencies import INCLUDE_RE
from .faults import IncludeDepthFault
from .loader import TemplateLoader

logger = logging.getLogger("tessera.templates.includes")


class _OpenTemplate:
    """A template whose include tags are being replaced, left to right."""

    __slots__ = ("text", "depth", "pos", "parts", "_matches")

    def __init__(self, text: str, depth: int):
        self.text = text
        self.depth = depth
        self.pos = 0
        self.parts: List[str] = []
        self._matches: Iterator[re.Match] = INCLUDE_RE.finditer(text)

    def next_include(self) -> Optional[re.Match]:
        match = next(self._matches, None)
        if match is not None:
            self.parts.append(self.text[self.pos:match.start()])
            self.pos = match.end()
        return match

    def finish(self) -> str:
        self.parts.append(self.text[self.pos:])
        return "".join(self.parts)


def expand_includes(
    text: str,
    loader: TemplateLoader,
    max_depth: int = 16,
    depth: int = 0,
) -> str:
    """
    Replace every include tag with the comment-stripped, expanded content
    of the referenced template, left to right, depth first.

    Raises:
        IncludeDepthFault: Nesting goes deeper than ``max_depth``
        TemplatePathEscapeFault: An include resolves outside the root
        TemplateNotFoundFault: An included template does not exist
    """
    stack = [_OpenTemplate(text, depth)]

    while True:
        current = stack[-1]
        match = current.next_include()

        if match is None:
            expanded = stack.pop().finish()
            if not stack:
                return expanded
            stack[-1].parts.append(expanded)
            continue

        name = match.group(1)
        if current.depth + 1 > max_depth:
            raise IncludeDepthFault(name, max_depth)

        source = loader.get_source(name)
        logger.debug("Including %s at depth %d", source.name, current.depth + 1)
        stack.append(_OpenTemplate(strip_comments(source.text, source.name), current.depth + 1))
