"""
Template Loader - Root-confined filesystem template loader.

Supports:
- Resolution of template identifiers strictly inside one template root
- Fresh reads on every call (no in-memory source cache)
- Template discovery for bulk compilation
"""

from typing import List, Optional
from dataclasses import dataclass
from pathlib import Path
import os

from .faults import TemplateIOFault, TemplateNotFoundFault, TemplatePathEscapeFault


TEMPLATE_EXTENSIONS = {".html", ".htm", ".xml", ".txt", ".tpl"}


@dataclass(frozen=True)
class TemplateSource:
    """
    One template as read from disk.

    Attributes:
        name: Normalised template identifier (posix, relative to the root)
        path: Resolved absolute path
        text: Raw template text
        mtime_ns: Modification time at read
    """

    name: str
    path: Path
    text: str
    mtime_ns: int


class TemplateLoader:
    """
    Root-confined template loader.

    Every identifier, whether requested by a caller or referenced by an
    ``extends`` or ``include`` tag, is resolved against the same root.
    Anything that normalises to a location outside it raises
    TemplatePathEscapeFault.

    Args:
        root: Template root directory
    """

    def __init__(self, root: os.PathLike | str):
        self.root = Path(root).resolve()

    def resolve(self, name: str) -> Path:
        """
        Resolve a template identifier to an absolute path.

        Raises:
            TemplatePathEscapeFault: If the path falls outside the root
        """
        if not name or "\x00" in name:
            raise TemplatePathEscapeFault(name, str(self.root))

        path = (self.root / name).resolve()
        if path == self.root or self.root not in path.parents:
            raise TemplatePathEscapeFault(name, str(self.root))
        return path

    def normalize(self, name: str) -> str:
        """Canonical identifier for ``name`` (used for de-duplication)."""
        return self.resolve(name).relative_to(self.root).as_posix()

    def get_source(self, name: str) -> TemplateSource:
        """
        Load template source.

        Raises:
            TemplatePathEscapeFault: If the identifier escapes the root
            TemplateNotFoundFault: If the file does not exist
            TemplateIOFault: If the file cannot be read or decoded
        """
        path = self.resolve(name)
        try:
            mtime_ns = path.stat().st_mtime_ns
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise TemplateNotFoundFault(name, str(path))
        except (OSError, UnicodeDecodeError) as e:
            raise TemplateIOFault(str(path), str(e), template=name)

        return TemplateSource(
            name=path.relative_to(self.root).as_posix(),
            path=path,
            text=text,
            mtime_ns=mtime_ns,
        )

    def get_mtime(self, name: str) -> int:
        """Modification time (ns) of a template without reading it."""
        path = self.resolve(name)
        try:
            return path.stat().st_mtime_ns
        except FileNotFoundError:
            raise TemplateNotFoundFault(name, str(path))
        except OSError as e:
            raise TemplateIOFault(str(path), str(e), template=name)

    def list_templates(self, extensions: Optional[set] = None) -> List[str]:
        """
        List all available templates.

        Returns:
            Sorted list of template identifiers
        """
        extensions = extensions or TEMPLATE_EXTENSIONS
        templates = set()

        if not self.root.is_dir():
            return []

        for root, dirs, files in os.walk(self.root):
            dirs[:] = [d for d in dirs if not d.startswith(".")]
            root_path = Path(root)
            for filename in files:
                if Path(filename).suffix in extensions:
                    relative = (root_path / filename).relative_to(self.root)
                    templates.add(relative.as_posix())

        return sorted(templates)
