"""
Inheritance resolution - merges child blocks into parent yields.

The contract is strict in both directions:
- a child may define each block name once,
- every child block must fill at least one ``{% yield %}`` in the parent,
- every ``{% yield %}`` in the parent must be filled by a child block.

Resolution happens entirely at compile time, so compiled artifacts carry
no block machinery.
"""

import logging
import re
from typing import Dict, List, Optional

from .comments import strip_comments
from .dependencies import EXTENDS_RE
from .faults import (
    DuplicateBlockFault,
    InheritanceCycleFault,
    MissingBlocksFault,
    UnyieldedBlockFault,
)
from .loader import TemplateLoader

logger = logging.getLogger("tessera.templates.inheritance")

BLOCK_RE = re.compile(r"\{%\s*block\s+([\w-]+)\s*%\}(.*?)\{%\s*endblock\s*%\}", re.S)
YIELD_RE = re.compile(r"\{%\s*yield\s+([\w-]+)\s*%\}")


def _yield_pattern(name: str) -> re.Pattern:
    return re.compile(r"\{%\s*yield\s+" + re.escape(name) + r"\s*%\}")


def extract_blocks(text: str, template: Optional[str] = None) -> Dict[str, str]:
    """
    Block table of a child template: name -> trimmed content.

    Raises:
        DuplicateBlockFault: A name is defined twice
    """
    blocks: Dict[str, str] = {}
    for match in BLOCK_RE.finditer(text):
        name = match.group(1)
        if name in blocks:
            raise DuplicateBlockFault(name, template)
        blocks[name] = match.group(2).strip()
    return blocks


def merge_blocks(
    parent_text: str,
    blocks: Dict[str, str],
    parent: str,
    template: Optional[str] = None,
) -> str:
    """
    Substitute every block into the parent's matching yields.

    Raises:
        UnyieldedBlockFault: A block has no yield in the parent
        MissingBlocksFault: Yields remain unfilled afterwards
    """
    merged = parent_text
    for name, content in blocks.items():
        # Callable replacement keeps backslashes in content literal
        merged, count = _yield_pattern(name).subn(lambda _m: content, merged)
        if count == 0:
            raise UnyieldedBlockFault(name, parent, template)

    remaining: List[str] = []
    for name in YIELD_RE.findall(merged):
        if name not in remaining:
            remaining.append(name)
    if remaining:
        raise MissingBlocksFault(remaining, parent, template)

    return merged


def resolve_inheritance(
    text: str,
    loader: TemplateLoader,
    template: Optional[str] = None,
) -> str:
    """
    Resolve the ``extends`` chain of a comment-stripped template.

    A template without ``extends`` is returned unchanged. Otherwise the
    parent is loaded, comment-stripped and filled with the child's blocks;
    if the parent extends another template the process repeats.

    Raises:
        InheritanceFault: Any block / yield contract violation or a cycle
        TemplatePathEscapeFault: The parent resolves outside the root
        TemplateNotFoundFault: The parent does not exist
    """
    chain: List[str] = [template] if template else []
    current, current_name = text, template

    while True:
        match = EXTENDS_RE.search(current)
        if match is None:
            return current

        parent = loader.normalize(match.group(1))
        if parent in chain:
            raise InheritanceCycleFault(chain + [parent], template)
        chain.append(parent)

        blocks = extract_blocks(current, current_name)
        source = loader.get_source(parent)
        parent_text = strip_comments(source.text, parent)

        logger.debug("Merging %d blocks from %s into %s", len(blocks), current_name, parent)
        current = merge_blocks(parent_text, blocks, parent, current_name)
        current_name = parent
