"""
Template Manager - Compilation pipeline and on-disk artifact cache.

Provides:
- Cache hit / miss decisions from dependency modification times
- The fixed compile pipeline (comments, inheritance, includes,
  post-filters, transpilation)
- Atomic, crash-safe artifact writes
- Bulk compilation, inspection and cache clearing
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from pathlib import Path
import contextlib
import hashlib
import importlib
import linecache
import logging
import os
import re
import tempfile

from tessera.config import TemplateConfig

from .bytecode_cache import ArtifactCodeCache
from .comments import strip_comments
from .dependencies import collect_dependencies
from .faults import CacheWriteFault, TemplateFault, TemplateSyntaxFault
from .filters import collapse_whitespace, remove_html_comments
from .includes import expand_includes
from .inheritance import resolve_inheritance
from .loader import TemplateLoader, TemplateSource
from .runtime import render_header
from .syntax import TAG_RE, Transpiler

logger = logging.getLogger("tessera.templates.manager")

ARTIFACT_SUFFIX = ".py"
ARTIFACT_NAME_RE = re.compile(r"^[A-Za-z0-9_]*-[0-9a-f]{12}\.py$")
TEMP_PREFIX = ".tmp-"
TEMP_SUFFIX = ".py.part"


@dataclass
class CompileReport:
    """Outcome of a bulk compilation."""

    compiled: Dict[str, Path] = field(default_factory=dict)
    failed: Dict[str, TemplateFault] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "compiled": {name: str(path) for name, path in self.compiled.items()},
            "failed": {name: fault.to_dict() for name, fault in self.failed.items()},
            "count": len(self.compiled),
        }


class TemplateManager:
    """
    Compiles templates into cached Python artifacts.

    The manager is the only writer of the cache directory. Artifacts are
    never modified in place: each one is written to a temporary file in
    the cache directory and renamed over the previous version, so a
    concurrent reader sees either the old or the new artifact.

    Args:
        config: Template configuration for this render
        code_cache: Code-object cache to invalidate after writes

    Example:
        manager = TemplateManager(config)
        artifact = manager.compile("pages/home.html")
    """

    def __init__(
        self,
        config: TemplateConfig,
        *,
        code_cache: Optional[ArtifactCodeCache] = None,
    ):
        self.config = config
        self.loader = TemplateLoader(config.template_root)
        self.code_cache = code_cache

    # ------------------------------------------------------------------
    # Artifact naming
    # ------------------------------------------------------------------

    def artifact_path(self, name: str) -> Path:
        """
        Deterministic artifact location for a template identifier.

        Raises:
            TemplatePathEscapeFault: If the identifier escapes the root
        """
        normalized = self.loader.normalize(name)
        slug = re.sub(r"[^A-Za-z0-9]+", "_", normalized).strip("_")
        digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:12]
        return self.config.cache_root / f"{slug}-{digest}{ARTIFACT_SUFFIX}"

    # ------------------------------------------------------------------
    # Freshness
    # ------------------------------------------------------------------

    def dependencies(self, name: str) -> List[str]:
        """Transitive dependency set of a template (parent and includes)."""
        source = self.loader.get_source(name)
        return collect_dependencies(strip_comments(source.text, source.name), self.loader, set())

    def is_fresh(self, name: str) -> bool:
        """Whether the cached artifact may be reused for ``name``."""
        source = self.loader.get_source(name)
        artifact = self.artifact_path(source.name)
        text = strip_comments(source.text, source.name)
        return self.config.cache_enabled and self._is_fresh(source, text, artifact)

    def _is_fresh(self, source: TemplateSource, text: str, artifact: Path) -> bool:
        try:
            artifact_mtime = artifact.stat().st_mtime_ns
        except FileNotFoundError:
            return False

        newest = source.mtime_ns
        for dependency in collect_dependencies(text, self.loader, set()):
            newest = max(newest, self.loader.get_mtime(dependency))

        return artifact_mtime >= newest

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def compile(self, name: str) -> Path:
        """
        Return the location of an up-to-date artifact for ``name``,
        compiling and writing it on a cache miss.

        Raises:
            TemplateFault: Any compile or I/O failure; no artifact is written
        """
        source = self.loader.get_source(name)
        artifact = self.artifact_path(source.name)
        text = strip_comments(source.text, source.name)

        if self.config.cache_enabled and self._is_fresh(source, text, artifact):
            logger.debug("Cache hit for %s", source.name)
            return artifact

        logger.debug("Cache miss for %s", source.name)
        code = self.compile_text(text, source.name, filename=str(artifact))
        self._write_artifact(artifact, code, source.name)
        return artifact

    def compile_text(self, text: str, name: str, filename: str = "<template>") -> str:
        """
        Run the compile pipeline on comment-stripped template text.

        Returns:
            Complete artifact source, guard header included
        """
        config = self.config

        code = resolve_inheritance(text, self.loader, name)
        code = expand_includes(code, self.loader, config.max_include_depth)

        if config.remove_html_comments:
            code = remove_html_comments(code, protect=TAG_RE)
        if config.trim_whitespace:
            code = collapse_whitespace(code, protect=TAG_RE)

        body = Transpiler(allow_raw_code=config.allow_raw_code).transpile(code, name)
        artifact_source = render_header(name) + body

        try:
            compile(artifact_source, filename, "exec")
        except SyntaxError as e:
            raise TemplateSyntaxFault(
                f"Generated code is invalid: {e.msg} in {(e.text or '').strip()!r}", name
            )

        return artifact_source

    def compile_all(self) -> CompileReport:
        """Compile every template under the root, collecting failures."""
        report = CompileReport()
        for name in self.loader.list_templates():
            try:
                report.compiled[name] = self.compile(name)
            except TemplateFault as fault:
                logger.log(fault.severity.log_level, "Failed to compile %s: %s", name, fault)
                report.failed[name] = fault
        return report

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _write_artifact(self, path: Path, code: str, name: str) -> None:
        """Write ``code`` to ``path`` atomically (temp file + rename)."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX, dir=path.parent
            )
        except OSError as e:
            raise CacheWriteFault(str(path.parent), str(e), name)

        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                f.write(code)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp, 0o644)
        except OSError as e:
            self._discard(tmp)
            raise CacheWriteFault(str(tmp), str(e), name)

        try:
            os.replace(tmp, path)
        except OSError as first:
            # Some filesystems refuse to rename over an existing file
            logger.warning("Rename onto %s failed (%s); retrying after removal", path, first)
            try:
                with contextlib.suppress(FileNotFoundError):
                    path.unlink()
                os.replace(tmp, path)
            except OSError as e:
                self._discard(tmp)
                raise CacheWriteFault(str(path), str(e), name)

        self._invalidate(path)
        logger.info("Compiled %s -> %s", name, path)

    def _discard(self, tmp: Path) -> None:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()

    def _invalidate(self, path: Path) -> None:
        """Make every in-process cache see the new artifact."""
        if self.code_cache is not None:
            self.code_cache.invalidate(path)
        linecache.checkcache(str(path))
        importlib.invalidate_caches()

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear_cache(self) -> int:
        """
        Delete every artifact (and leftover temp file) in the cache root.

        Returns:
            Number of files removed
        """
        cache_root = self.config.cache_root
        if not cache_root.is_dir():
            return 0

        removed = 0
        for path in cache_root.iterdir():
            is_artifact = ARTIFACT_NAME_RE.match(path.name) is not None
            is_temp = path.name.startswith(TEMP_PREFIX) and path.name.endswith(TEMP_SUFFIX)
            if not (is_artifact or is_temp) or not path.is_file():
                continue
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise CacheWriteFault(str(path), str(e))
            self._invalidate(path)
            removed += 1

        logger.info("Cleared %d cached artifacts from %s", removed, cache_root)
        return removed

    def inspect(self, name: str) -> Dict[str, Any]:
        """
        Inspect template and artifact metadata.

        Returns:
            Template inspection data
        """
        source = self.loader.get_source(name)
        artifact = self.artifact_path(source.name)
        text = strip_comments(source.text, source.name)
        dependencies = collect_dependencies(text, self.loader, set())

        artifact_mtime = artifact.stat().st_mtime_ns if artifact.exists() else None
        return {
            "name": source.name,
            "path": str(source.path),
            "mtime_ns": source.mtime_ns,
            "hash": "sha256:" + hashlib.sha256(source.text.encode("utf-8")).hexdigest(),
            "artifact": str(artifact),
            "artifact_mtime_ns": artifact_mtime,
            "fresh": self.config.cache_enabled and self._is_fresh(source, text, artifact),
            "dependencies": dependencies,
        }
