"""
TesseraTemplates - Template compiler, artifact cache and renderer.

Pipeline, applied in this order to every compiled template:
- Comment stripping (nested ``{# #}``)
- Inheritance resolution (``extends`` / ``block`` / ``yield``)
- Include expansion (``include``, depth-limited)
- Optional post-filters (HTML comments, whitespace)
- Transpilation to a Python artifact

Example:
    from tessera.config import TemplateConfig
    from tessera.templates import TemplateEngine

    engine = TemplateEngine(TemplateConfig(template_root="templates", cache_root=".cache"))
    html = engine.render_to_string("users/profile.html", {"user": user})
"""

from .engine import (
    TemplateEngine,
    compile_template,
    render,
    render_to_string,
    clear_cache,
)
from .loader import TemplateLoader, TemplateSource
from .manager import TemplateManager, CompileReport
from .bytecode_cache import ArtifactCodeCache, default_code_cache
from .comments import strip_comments
from .dependencies import collect_dependencies
from .inheritance import resolve_inheritance
from .includes import expand_includes
from .filters import collapse_whitespace, remove_html_comments
from .syntax import Transpiler, transpile
from .faults import (
    TemplateFault,
    TemplatePathEscapeFault,
    InheritanceFault,
    DuplicateBlockFault,
    UnyieldedBlockFault,
    MissingBlocksFault,
    InheritanceCycleFault,
    IncludeDepthFault,
    TemplateSyntaxFault,
    TemplateIOFault,
    TemplateNotFoundFault,
    CacheWriteFault,
)

__all__ = [
    # Core
    "TemplateEngine",
    "TemplateLoader",
    "TemplateSource",
    "TemplateManager",
    "CompileReport",

    # Module-level API
    "compile_template",
    "render",
    "render_to_string",
    "clear_cache",

    # Cache
    "ArtifactCodeCache",
    "default_code_cache",

    # Pipeline stages
    "strip_comments",
    "collect_dependencies",
    "resolve_inheritance",
    "expand_includes",
    "collapse_whitespace",
    "remove_html_comments",
    "Transpiler",
    "transpile",

    # Faults
    "TemplateFault",
    "TemplatePathEscapeFault",
    "InheritanceFault",
    "DuplicateBlockFault",
    "UnyieldedBlockFault",
    "MissingBlocksFault",
    "InheritanceCycleFault",
    "IncludeDepthFault",
    "TemplateSyntaxFault",
    "TemplateIOFault",
    "TemplateNotFoundFault",
    "CacheWriteFault",
]
