"""
TesseraFaults - Structured fault handling.

Errors in Tessera are typed fault values: each carries a stable code,
a domain, a severity and metadata naming the offending template or path.

Core exports:
- Fault: Base fault class
- FaultDomain: Domain registry
- Severity: Severity levels
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
)
from .domains import (
    ConfigFault,
    ConfigInvalidFault,
)

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigFault",
    "ConfigInvalidFault",
]
