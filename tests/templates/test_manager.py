"""
Test the compile pipeline and the on-disk artifact cache.
"""

import os
import re

import pytest

from tessera.templates import (
    CacheWriteFault,
    MissingBlocksFault,
    TemplatePathEscapeFault,
    TemplateSyntaxFault,
    TemplateManager,
)
from tessera.templates import manager as manager_module
from tessera.templates.runtime import ARTIFACT_MODULE


SECOND = 10**9


def count_compiles(manager, monkeypatch):
    """Wrap ``compile_text`` so tests can tell a cache hit from a miss."""
    calls = []
    original = manager.compile_text

    def spy(*args, **kwargs):
        calls.append(args[1])
        return original(*args, **kwargs)

    monkeypatch.setattr(manager, "compile_text", spy)
    return calls


# ============================================================================
# Artifact naming
# ============================================================================

class TestArtifactPath:

    def test_deterministic(self, manager, config):
        path = manager.artifact_path("pages/home.html")

        assert path.parent == config.cache_root
        assert re.match(r"^pages_home_html-[0-9a-f]{12}\.py$", path.name)
        assert manager.artifact_path("pages/home.html") == path
        assert manager.artifact_path("./pages/../pages/home.html") == path

    def test_distinct_names_do_not_collide(self, manager):
        assert manager.artifact_path("a-b.html") != manager.artifact_path("a_b.html")

    def test_escape(self, manager):
        with pytest.raises(TemplatePathEscapeFault):
            manager.artifact_path("../outside.html")


# ============================================================================
# Compilation
# ============================================================================

class TestCompile:

    def test_writes_guarded_artifact(self, write_templates, manager):
        write_templates({"page.html": "<p>{{ title }}</p>"})

        artifact = manager.compile("page.html")

        assert artifact == manager.artifact_path("page.html")
        source = artifact.read_text()
        assert source.startswith("# Compiled by tessera from 'page.html'")
        assert f"if __name__ != {ARTIFACT_MODULE!r}:" in source
        assert oct(artifact.stat().st_mode & 0o777) == oct(0o644)

    def test_guard_stops_direct_execution(self, write_templates, manager):
        write_templates({"page.html": "secret output"})
        artifact = manager.compile("page.html")

        chunks = []
        with pytest.raises(SystemExit) as exc_info:
            exec(compile(artifact.read_text(), str(artifact), "exec"),
                 {"__name__": "__main__", "_write": chunks.append})

        assert exc_info.value.code == 0
        assert chunks == []

    def test_failure_writes_nothing(self, write_templates, manager):
        write_templates({"page.html": "{% frobnicate %}"})

        with pytest.raises(TemplateSyntaxFault):
            manager.compile("page.html")

        assert not manager.artifact_path("page.html").exists()

    def test_invalid_generated_code(self, write_templates, manager):
        write_templates({"page.html": "{{ 1 + }}"})

        with pytest.raises(TemplateSyntaxFault) as exc_info:
            manager.compile("page.html")
        assert "Generated code is invalid" in exc_info.value.reason

    def test_inheritance_fault_aborts_compile(self, write_templates, manager):
        write_templates({
            "base.html": "{% yield a %}{% yield b %}",
            "page.html": '{% extends "base.html" %}{% block a %}x{% endblock %}',
        })

        with pytest.raises(MissingBlocksFault):
            manager.compile("page.html")
        assert not manager.artifact_path("page.html").exists()

    def test_compile_all(self, write_templates, manager):
        write_templates({
            "good.html": "ok",
            "partials/nav.html": "nav",
            "bad.html": "{% if x %}",
        })

        report = manager.compile_all()

        assert sorted(report.compiled) == ["good.html", "partials/nav.html"]
        assert list(report.failed) == ["bad.html"]
        assert not report.ok
        assert report.to_dict()["count"] == 2
        assert report.to_dict()["failed"]["bad.html"]["code"] == "TEMPLATE_SYNTAX_ERROR"


# ============================================================================
# Freshness
# ============================================================================

class TestFreshness:

    def test_fresh_artifact_is_reused(self, write_templates, manager, monkeypatch):
        write_templates({"page.html": "hello"})
        first = manager.compile("page.html")
        calls = count_compiles(manager, monkeypatch)

        assert manager.is_fresh("page.html")
        assert manager.compile("page.html") == first
        assert calls == []

    def test_stale_artifact_is_rebuilt(self, write_templates, manager, template_root, monkeypatch):
        write_templates({"page.html": "hello"})
        artifact = manager.compile("page.html")
        source_mtime = (template_root / "page.html").stat().st_mtime_ns
        os.utime(artifact, ns=(source_mtime - 10 * SECOND, source_mtime - 10 * SECOND))
        calls = count_compiles(manager, monkeypatch)

        assert not manager.is_fresh("page.html")
        manager.compile("page.html")

        assert calls == ["page.html"]
        assert manager.is_fresh("page.html")

    def test_newer_dependency_makes_artifact_stale(self, write_templates, manager, template_root):
        write_templates({
            "page.html": '{% include "part.html" %}',
            "part.html": "part",
        })
        artifact = manager.compile("page.html")

        now = artifact.stat().st_mtime_ns
        os.utime(template_root / "page.html", ns=(now - 100 * SECOND, now - 100 * SECOND))
        os.utime(artifact, ns=(now - 50 * SECOND, now - 50 * SECOND))
        os.utime(template_root / "part.html", ns=(now, now))
        assert not manager.is_fresh("page.html")

        os.utime(template_root / "part.html", ns=(now - 80 * SECOND, now - 80 * SECOND))
        assert manager.is_fresh("page.html")

    def test_missing_artifact_is_stale(self, write_templates, manager):
        write_templates({"page.html": "hello"})
        assert not manager.is_fresh("page.html")

    def test_cache_disabled_always_recompiles(self, write_templates, config, code_cache, monkeypatch):
        write_templates({"page.html": "hello"})
        manager = TemplateManager(config.with_options(cache_enabled=False), code_cache=code_cache)
        calls = count_compiles(manager, monkeypatch)

        manager.compile("page.html")
        manager.compile("page.html")

        assert calls == ["page.html", "page.html"]
        assert not manager.is_fresh("page.html")

    def test_dependencies(self, write_templates, manager):
        write_templates({
            "page.html": '{% extends "base.html" %}{% block a %}{% include "p.html" %}{% endblock %}',
            "base.html": "{% yield a %}",
            "p.html": "p",
        })

        assert manager.dependencies("page.html") == ["base.html", "p.html"]


# ============================================================================
# Atomic writes
# ============================================================================

class TestAtomicWrite:

    def test_rename_is_retried_once(self, write_templates, manager, config, monkeypatch):
        write_templates({"page.html": "hello"})
        real_replace = os.replace
        attempts = []

        def flaky_replace(src, dst):
            attempts.append(dst)
            if len(attempts) == 1:
                raise PermissionError("destination busy")
            return real_replace(src, dst)

        monkeypatch.setattr(manager_module.os, "replace", flaky_replace)
        artifact = manager.compile("page.html")

        assert len(attempts) == 2
        assert artifact.exists()
        assert [p.name for p in config.cache_root.iterdir()] == [artifact.name]

    def test_second_rename_failure_raises(self, write_templates, manager, config, monkeypatch):
        write_templates({"page.html": "hello"})

        def failing_replace(src, dst):
            raise PermissionError("read-only")

        monkeypatch.setattr(manager_module.os, "replace", failing_replace)

        with pytest.raises(CacheWriteFault) as exc_info:
            manager.compile("page.html")

        assert exc_info.value.code == "TEMPLATE_CACHE_WRITE_FAILED"
        assert list(config.cache_root.iterdir()) == []

    def test_unwritable_cache_root(self, write_templates, config, tmp_path):
        write_templates({"page.html": "hello"})
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        manager = TemplateManager(config.with_options(cache_root=blocker / "cache"))

        with pytest.raises(CacheWriteFault):
            manager.compile("page.html")

    def test_rewrite_invalidates_code_cache(self, write_templates, manager, code_cache):
        write_templates({"page.html": "hello"})
        artifact = manager.compile("page.html")
        code_cache.load(artifact)
        assert artifact in code_cache

        manager._write_artifact(artifact, manager.compile_text("bye", "page.html"), "page.html")

        assert artifact not in code_cache


# ============================================================================
# Maintenance
# ============================================================================

class TestMaintenance:

    def test_clear_cache(self, write_templates, manager, config):
        write_templates({"a.html": "a", "b.html": "b"})
        manager.compile("a.html")
        manager.compile("b.html")
        (config.cache_root / ".tmp-abc123.py.part").write_text("partial")
        (config.cache_root / "notes.txt").write_text("keep me")

        assert manager.clear_cache() == 3
        assert [p.name for p in config.cache_root.iterdir()] == ["notes.txt"]

    def test_clear_missing_cache_root(self, manager):
        assert manager.clear_cache() == 0

    def test_inspect(self, write_templates, manager):
        write_templates({"page.html": '{% include "p.html" %}', "p.html": "p"})
        manager.compile("page.html")

        info = manager.inspect("page.html")

        assert info["name"] == "page.html"
        assert info["fresh"] is True
        assert info["dependencies"] == ["p.html"]
        assert info["hash"].startswith("sha256:")
        assert info["artifact"] == str(manager.artifact_path("page.html"))
        assert info["artifact_mtime_ns"] is not None
