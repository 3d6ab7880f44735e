"""
TesseraTemplates - Template fault types.

Defines typed template faults. Every fault raised while compiling aborts
the compile for that request; none of them is downgraded to a warning.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from tessera.faults.core import Fault, FaultDomain, Severity


# Register template fault domain
FaultDomain.TEMPLATE = FaultDomain("template", "Template compilation faults")


class TemplateFault(Fault):
    """Base class for all template faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        template: Optional[str] = None,
        domain: FaultDomain = FaultDomain.TEMPLATE,
        severity: Severity = Severity.ERROR,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=domain,
            severity=severity,
            retryable=False,
            metadata={"template": template, **(metadata or {})},
        )
        self.template = template


# ============================================================================
# Path containment
# ============================================================================

class TemplatePathEscapeFault(TemplateFault):
    """Template identifier resolves outside the template root."""

    def __init__(self, name: str, root: str, **kwargs):
        super().__init__(
            code="TEMPLATE_PATH_ESCAPE",
            message=f"Template '{name}' resolves outside the template root '{root}'",
            template=name,
            domain=FaultDomain.SECURITY,
            severity=Severity.FATAL,
            metadata={"root": root},
        )


# ============================================================================
# Inheritance contract
# ============================================================================

class InheritanceFault(TemplateFault):
    """Base class for violations of the block / yield contract."""

    def __init__(self, code: str, message: str, *, template: Optional[str] = None, **kwargs):
        super().__init__(code, message, template=template, **kwargs)


class DuplicateBlockFault(InheritanceFault):
    """A child template defines the same block twice."""

    def __init__(self, block: str, template: Optional[str] = None, **kwargs):
        super().__init__(
            "TEMPLATE_DUPLICATE_BLOCK",
            f"Duplicate block '{block}'",
            template=template,
            metadata={"block": block},
        )
        self.block = block


class UnyieldedBlockFault(InheritanceFault):
    """A child block has no matching yield in the parent."""

    def __init__(self, block: str, parent: str, template: Optional[str] = None, **kwargs):
        super().__init__(
            "TEMPLATE_BLOCK_NOT_YIELDED",
            f"Block '{block}' is not yielded by parent '{parent}'",
            template=template,
            metadata={"block": block, "parent": parent},
        )
        self.block = block
        self.parent = parent


class MissingBlocksFault(InheritanceFault):
    """Parent insertion points left unfilled by the child."""

    def __init__(self, names: Iterable[str], parent: str, template: Optional[str] = None, **kwargs):
        names = list(names)
        super().__init__(
            "TEMPLATE_MISSING_BLOCKS",
            f"Missing child blocks for insertion points {', '.join(names)} in parent '{parent}'",
            template=template,
            metadata={"names": names, "parent": parent},
        )
        self.names = names
        self.parent = parent


class InheritanceCycleFault(InheritanceFault):
    """An extends chain revisits a template."""

    def __init__(self, chain: list[str], template: Optional[str] = None, **kwargs):
        super().__init__(
            "TEMPLATE_INHERITANCE_CYCLE",
            f"Circular extends: {' -> '.join(chain)}",
            template=template,
            metadata={"chain": chain},
        )
        self.chain = chain


# ============================================================================
# Includes
# ============================================================================

class IncludeDepthFault(TemplateFault):
    """Include expansion nested deeper than the configured ceiling."""

    def __init__(self, name: str, max_depth: int, **kwargs):
        super().__init__(
            code="TEMPLATE_INCLUDE_DEPTH",
            message=f"Include depth exceeded {max_depth} while expanding '{name}'",
            template=name,
            metadata={"max_depth": max_depth},
        )
        self.max_depth = max_depth


# ============================================================================
# Syntax
# ============================================================================

class TemplateSyntaxFault(TemplateFault):
    """Malformed or unbalanced template tags, or invalid generated code."""

    def __init__(self, reason: str, template: Optional[str] = None, *, line: Optional[int] = None, **kwargs):
        location = f" (line {line})" if line else ""
        super().__init__(
            code="TEMPLATE_SYNTAX_ERROR",
            message=f"{reason}{location}",
            template=template,
            metadata={"reason": reason, "line": line},
        )
        self.reason = reason
        self.line = line


# ============================================================================
# I/O
# ============================================================================

class TemplateIOFault(TemplateFault):
    """Unreadable source, unwritable cache directory, failed rename."""

    def __init__(
        self,
        path: str,
        reason: str,
        *,
        template: Optional[str] = None,
        code: str = "TEMPLATE_IO_ERROR",
        **kwargs,
    ):
        super().__init__(
            code=code,
            message=f"I/O failure on '{path}': {reason}",
            template=template,
            domain=FaultDomain.IO,
            metadata={"path": path, "reason": reason},
        )
        self.path = path


class TemplateNotFoundFault(TemplateIOFault):
    """Template file does not exist under the root."""

    def __init__(self, name: str, path: str, **kwargs):
        super().__init__(path, "template not found", template=name, code="TEMPLATE_NOT_FOUND")
        self.message = f"Template '{name}' not found at '{path}'"
        self.args = (self.message,)


class CacheWriteFault(TemplateIOFault):
    """Writing or renaming a compiled artifact failed."""

    def __init__(self, path: str, reason: str, template: Optional[str] = None, **kwargs):
        super().__init__(path, reason, template=template, code="TEMPLATE_CACHE_WRITE_FAILED")
