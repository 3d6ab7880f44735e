"""
Test Faults System (faults/ and templates/faults.py)

Tests Fault, FaultDomain, Severity and the template fault hierarchy.
"""

from tessera.faults import ConfigInvalidFault, Fault, FaultDomain, Severity
from tessera.templates.faults import (
    CacheWriteFault,
    DuplicateBlockFault,
    InheritanceFault,
    MissingBlocksFault,
    TemplateFault,
    TemplateIOFault,
    TemplateNotFoundFault,
    TemplatePathEscapeFault,
    TemplateSyntaxFault,
)


# ============================================================================
# Core
# ============================================================================

class TestFault:

    def test_str_includes_code(self):
        fault = Fault(code="X_FAILED", message="it failed", domain=FaultDomain.SYSTEM)
        assert str(fault) == "[X_FAILED] it failed"

    def test_domain_defaults(self):
        fault = Fault(code="X", message="m", domain=FaultDomain.IO)
        assert fault.severity == Severity.ERROR
        assert fault.retryable is False

    def test_to_dict(self):
        fault = ConfigInvalidFault("cache_root", "required option is missing")
        data = fault.to_dict()

        assert data["code"] == "CONFIG_INVALID"
        assert data["domain"] == "config"
        assert data["severity"] == "fatal"
        assert data["metadata"] == {"key": "cache_root", "reason": "required option is missing"}


# ============================================================================
# Template faults
# ============================================================================

class TestTemplateFaults:

    def test_template_domain_registered(self):
        assert FaultDomain.TEMPLATE.name == "template"

    def test_template_recorded_in_metadata(self):
        fault = DuplicateBlockFault("title", "page.html")

        assert isinstance(fault, InheritanceFault)
        assert isinstance(fault, TemplateFault)
        assert fault.domain == FaultDomain.TEMPLATE
        assert fault.metadata == {"template": "page.html", "block": "title"}

    def test_missing_blocks_message(self):
        fault = MissingBlocksFault(["head", "body"], "base.html", "page.html")
        assert str(fault) == (
            "[TEMPLATE_MISSING_BLOCKS] Missing child blocks for insertion points "
            "head, body in parent 'base.html'"
        )

    def test_path_escape_is_security_fault(self):
        fault = TemplatePathEscapeFault("../x.html", "/srv/templates")

        assert fault.domain == FaultDomain.SECURITY
        assert fault.severity == Severity.FATAL
        assert fault.template == "../x.html"

    def test_io_hierarchy(self):
        not_found = TemplateNotFoundFault("a.html", "/srv/templates/a.html")
        write = CacheWriteFault("/srv/cache/a.py", "disk full", "a.html")

        assert isinstance(not_found, TemplateIOFault)
        assert isinstance(write, TemplateIOFault)
        assert not_found.domain == FaultDomain.IO
        assert str(not_found) == "[TEMPLATE_NOT_FOUND] Template 'a.html' not found at '/srv/templates/a.html'"
        assert write.path == "/srv/cache/a.py"

    def test_syntax_fault_line(self):
        fault = TemplateSyntaxFault("Unknown tag 'x'", "page.html", line=4)

        assert fault.message == "Unknown tag 'x' (line 4)"
        assert fault.to_dict()["metadata"]["line"] == 4

    def test_severity_log_levels(self):
        import logging

        assert Severity.WARN.log_level == logging.WARNING
        assert Severity.FATAL.log_level == logging.CRITICAL
        assert TemplateSyntaxFault("x").severity.log_level == logging.ERROR
