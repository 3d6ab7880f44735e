"""
TesseraFaults - Core types.

Defines:
- Severity: how bad a fault is, and the log level it is reported at
- FaultDomain: the subsystem a fault belongs to (open registry)
- Fault: the base exception every Tessera error derives from
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional


class Severity(str, Enum):
    """Fault severity levels."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"

    @property
    def log_level(self) -> int:
        """Logging level used when a fault of this severity is reported."""
        return _LOG_LEVELS[self]


_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARN: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.FATAL: logging.CRITICAL,
}


class FaultDomain:
    """
    Functional area a fault comes from.

    Domains compare by name. Subsystems add their own by assigning a new
    instance as a class attribute, e.g.::

        FaultDomain.TEMPLATE = FaultDomain("template", "Template compilation faults")
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description

    @property
    def value(self) -> str:
        return self.name

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain({self.name!r})"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return isinstance(other, str) and self.name == other

    def __hash__(self) -> int:
        return hash(self.name)


FaultDomain.CONFIG = FaultDomain("config", "Invalid or missing configuration")
FaultDomain.IO = FaultDomain("io", "Filesystem reads, writes and renames")
FaultDomain.SECURITY = FaultDomain("security", "Path containment violations")
FaultDomain.SYSTEM = FaultDomain("system", "Unexpected internal failures")

# Severity / retry defaults when a fault does not set them itself
DOMAIN_DEFAULTS = {
    FaultDomain.CONFIG: (Severity.FATAL, False),
    FaultDomain.IO: (Severity.ERROR, False),
    FaultDomain.SECURITY: (Severity.FATAL, False),
    FaultDomain.SYSTEM: (Severity.FATAL, False),
}


class Fault(Exception):
    """
    Base class of every Tessera error.

    A fault carries a stable machine-readable ``code`` next to its
    human-readable ``message``, plus the domain and severity used for
    reporting and a metadata dict naming the template, path or option
    involved. ``str(fault)`` is ``"[CODE] message"``.

    Attributes:
        code: Stable identifier, e.g. ``"TEMPLATE_NOT_FOUND"``
        message: Human-readable summary
        domain: FaultDomain the fault belongs to
        severity: Severity level
        retryable: Whether repeating the operation may succeed
        metadata: Extra context (template name, path, ...)
    """

    def __init__(
        self,
        code: str,
        message: str,
        *,
        domain: FaultDomain,
        severity: Optional[Severity] = None,
        retryable: Optional[bool] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        default_severity, default_retryable = DOMAIN_DEFAULTS.get(domain, (Severity.ERROR, False))

        self.code = code
        self.message = message
        self.domain = domain
        self.severity = severity or default_severity
        self.retryable = default_retryable if retryable is None else retryable
        self.metadata = dict(metadata or {})

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, domain={self.domain.name!r})"

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation for logs and CLI output."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.name,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "metadata": self.metadata,
        }
