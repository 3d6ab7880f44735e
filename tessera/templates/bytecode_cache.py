"""
Bytecode Cache - in-process cache of compiled artifact code objects.

Artifacts on disk are Python source. Executing one needs a code object;
compiling it on every render is wasted work, so code objects are kept in
an LRU keyed by artifact path and validated against the file's mtime and
size. The cache manager invalidates an entry whenever it rewrites the
artifact.
"""

import contextlib
import logging
from pathlib import Path
from types import CodeType

from jinja2.utils import LRUCache

from .faults import TemplateIOFault

logger = logging.getLogger("tessera.templates.bytecode_cache")


class ArtifactCodeCache:
    """
    LRU of artifact code objects.

    Thread-safe: every operation goes through jinja2's locked LRUCache.

    Args:
        capacity: Maximum number of code objects kept
    """

    def __init__(self, capacity: int = 400):
        self.capacity = capacity
        self._cache = LRUCache(capacity)

    def load(self, path: Path) -> CodeType:
        """
        Code object for the artifact at ``path``, compiling it if the
        cached entry is missing or stale.

        Raises:
            TemplateIOFault: The artifact cannot be read or is not valid
                Python (code ``TEMPLATE_ARTIFACT_CORRUPT``)
        """
        key = str(path)
        try:
            stat = path.stat()
            entry = self._cache.get(key)
            if entry is not None and entry[0] == (stat.st_mtime_ns, stat.st_size):
                return entry[1]

            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise TemplateIOFault(key, str(e))

        try:
            code = compile(source, key, "exec")
        except (SyntaxError, ValueError) as e:
            raise TemplateIOFault(
                key, f"artifact is not valid Python: {e}", code="TEMPLATE_ARTIFACT_CORRUPT"
            )
        self._cache[key] = ((stat.st_mtime_ns, stat.st_size), code)
        logger.debug("Loaded code object for %s", key)
        return code

    def invalidate(self, path: Path) -> None:
        """Drop the entry for one artifact."""
        with contextlib.suppress(KeyError):
            del self._cache[str(path)]

    def clear(self) -> None:
        """Drop every entry."""
        self._cache.clear()

    def __contains__(self, path: object) -> bool:
        return str(path) in self._cache

    def __len__(self) -> int:
        return len(self._cache)


# Shared by engines created through the module-level helpers
default_code_cache = ArtifactCodeCache()
