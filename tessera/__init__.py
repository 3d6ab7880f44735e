"""
Tessera - A small compiled templating language.

Templates are compiled ahead of rendering into plain Python artifacts:
- Nested comments stripped before any analysis
- Single-parent inheritance through blocks and yields
- Recursive includes with a depth ceiling
- Escaped and raw output, conditionals, loops
- Atomic on-disk artifact cache keyed on dependency mtimes

Example:
    from tessera import TemplateConfig, render_to_string

    config = TemplateConfig(template_root="templates", cache_root=".tessera-cache")
    html = render_to_string("pages/home.html", config, {"title": "Home"})
"""

__version__ = "0.1.0"

from .config import ConfigLoader, TemplateConfig
from .faults import Fault, FaultDomain, Severity, ConfigFault, ConfigInvalidFault
from .templates import (
    TemplateEngine,
    TemplateManager,
    TemplateLoader,
    compile_template,
    render,
    render_to_string,
    clear_cache,
    TemplateFault,
    TemplatePathEscapeFault,
    InheritanceFault,
    IncludeDepthFault,
    TemplateSyntaxFault,
    TemplateIOFault,
    TemplateNotFoundFault,
    CacheWriteFault,
)

__all__ = [
    "__version__",
    # Config
    "TemplateConfig",
    "ConfigLoader",
    # Engine
    "TemplateEngine",
    "TemplateManager",
    "TemplateLoader",
    "compile_template",
    "render",
    "render_to_string",
    "clear_cache",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigFault",
    "ConfigInvalidFault",
    "TemplateFault",
    "TemplatePathEscapeFault",
    "InheritanceFault",
    "IncludeDepthFault",
    "TemplateSyntaxFault",
    "TemplateIOFault",
    "TemplateNotFoundFault",
    "CacheWriteFault",
]
