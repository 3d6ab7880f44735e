"""
Dependency collection - the set of templates a compiled artifact depends on.

Walks one optional ``extends`` reference and every ``include`` reference,
transitively, with a visited-set shared across the whole traversal so that
cycles and diamonds terminate and each template is reported once.
"""

import logging
import re
from typing import List, Optional, Set

from .comments import strip_comments
from .loader import TemplateLoader

logger = logging.getLogger("tessera.templates.dependencies")

EXTENDS_RE = re.compile(r'\{%\s*extends\s+"([^"]+)"\s*%\}')
INCLUDE_RE = re.compile(r'\{%\s*include\s+"([^"]+)"\s*%\}')


def find_parent(text: str) -> Optional[str]:
    """First ``extends`` reference in ``text``, or None."""
    match = EXTENDS_RE.search(text)
    return match.group(1) if match else None


def find_includes(text: str) -> List[str]:
    """Every ``include`` reference in declaration order."""
    return INCLUDE_RE.findall(text)


def _references(text: str) -> List[str]:
    """Parent reference (if any) followed by include references."""
    parent = find_parent(text)
    return ([parent] if parent is not None else []) + find_includes(text)


def collect_dependencies(
    text: str,
    loader: TemplateLoader,
    visited: Optional[Set[str]] = None,
) -> List[str]:
    """
    Collect the ordered, de-duplicated dependency set of a template.

    Args:
        text: Comment-stripped template text
        loader: Loader used to resolve and read referenced templates
        visited: Identifiers already seen; mutated in place. Share one
            set across calls to de-duplicate over several roots.

    Returns:
        Normalised identifiers, parent first, then includes, each
        followed by its own dependencies.

    Raises:
        TemplatePathEscapeFault: A reference resolves outside the root
        TemplateNotFoundFault: A referenced template does not exist
    """
    if visited is None:
        visited = set()

    # Depth-first pre-order on an explicit stack
    pending = list(reversed(_references(text)))
    result: List[str] = []
    while pending:
        name = loader.normalize(pending.pop())
        if name in visited:
            continue
        visited.add(name)
        result.append(name)

        source = loader.get_source(name)
        pending.extend(reversed(_references(strip_comments(source.text, name))))

    logger.debug("Collected %d dependencies", len(result))
    return result
