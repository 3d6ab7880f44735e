"""
Template Engine - Render façade over the compiler and artifact cache.

Provides:
- Streaming rendering to any text sink
- String rendering, sync and async
- Execution of compiled artifacts with caller bindings
"""

from typing import Any, Callable, Mapping, Optional, TextIO
from pathlib import Path
import asyncio
import logging
import sys

from tessera.config import TemplateConfig

from .bytecode_cache import ArtifactCodeCache, default_code_cache
from .manager import TemplateManager
from .runtime import make_namespace

logger = logging.getLogger("tessera.templates.engine")


class TemplateEngine:
    """
    Compile-then-execute template engine.

    Every render first brings the artifact up to date (compiling on a
    cache miss), so a template that fails to compile produces no output
    at all. The artifact is then executed with the caller's bindings as
    its globals.

    Args:
        config: Template configuration, fixed for the engine's lifetime
        code_cache: Code-object cache (default: process-wide shared cache)

    Example:
        config = TemplateConfig(template_root="templates", cache_root=".cache")
        engine = TemplateEngine(config)

        html = engine.render_to_string("profile.html", {"user": user})
        engine.render("profile.html", {"user": user}, out=response_stream)
    """

    def __init__(
        self,
        config: TemplateConfig,
        *,
        code_cache: Optional[ArtifactCodeCache] = None,
    ):
        self.config = config
        self.code_cache = code_cache if code_cache is not None else default_code_cache
        self.manager = TemplateManager(config, code_cache=self.code_cache)
        self.loader = self.manager.loader

    def compile(self, template_name: str) -> Path:
        """Compile (if needed) and return the artifact location."""
        return self.manager.compile(template_name)

    def execute(
        self,
        artifact: Path,
        write: Callable[[str], Any],
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Run a compiled artifact, sending output chunks to ``write``."""
        logger.debug("Executing %s", artifact)
        code = self.code_cache.load(artifact)
        exec(code, make_namespace(write, context))

    def render(
        self,
        template_name: str,
        context: Optional[Mapping[str, Any]] = None,
        *,
        out: Optional[TextIO] = None,
    ) -> None:
        """
        Render a template, streaming chunks to ``out``.

        Args:
            template_name: Template identifier relative to the root
            context: Template variables
            out: Text stream to write to (default: sys.stdout)

        Raises:
            TemplateFault: If the template cannot be compiled
        """
        artifact = self.compile(template_name)
        stream = out if out is not None else sys.stdout
        self.execute(artifact, stream.write, context)

    def render_to_string(
        self,
        template_name: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Render a template and return the output as a string."""
        artifact = self.compile(template_name)
        chunks: list[str] = []
        self.execute(artifact, chunks.append, context)
        return "".join(chunks)

    async def render_async(
        self,
        template_name: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Render template asynchronously.

        The pipeline itself is synchronous; it runs in a worker thread so
        event loops are not blocked by compilation or file I/O.
        """
        return await asyncio.to_thread(self.render_to_string, template_name, context)

    def clear_cache(self) -> int:
        """Delete every compiled artifact."""
        return self.manager.clear_cache()


# ============================================================================
# Module-level entry points
# ============================================================================

def compile_template(template_name: str, config: TemplateConfig) -> Path:
    """Compile ``template_name`` under ``config`` and return the artifact path."""
    return TemplateManager(config, code_cache=default_code_cache).compile(template_name)


def render(
    template_name: str,
    config: TemplateConfig,
    context: Optional[Mapping[str, Any]] = None,
    *,
    out: Optional[TextIO] = None,
) -> None:
    """Render ``template_name`` to ``out`` (default: sys.stdout)."""
    TemplateEngine(config).render(template_name, context, out=out)


def render_to_string(
    template_name: str,
    config: TemplateConfig,
    context: Optional[Mapping[str, Any]] = None,
) -> str:
    """Render ``template_name`` and return the output."""
    return TemplateEngine(config).render_to_string(template_name, context)


def clear_cache(config: TemplateConfig) -> int:
    """Delete every compiled artifact under ``config.cache_root``."""
    return TemplateManager(config, code_cache=default_code_cache).clear_cache()
