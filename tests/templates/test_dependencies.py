"""
Test dependency collection over extends and include references.
"""

import pytest

from tessera.templates import TemplatePathEscapeFault, TemplateNotFoundFault, collect_dependencies
from tessera.templates.dependencies import find_includes, find_parent


def deps_of(loader, name):
    return collect_dependencies(loader.get_source(name).text, loader, set())


class TestFindReferences:

    def test_find_parent(self):
        assert find_parent('{%  extends   "base.html"%}<p></p>') == "base.html"
        assert find_parent("<p>no parent</p>") is None

    def test_find_includes_in_order(self):
        text = '{% include "a.html" %} x {%include "b/c.html"%} {% include "a.html" %}'
        assert find_includes(text) == ["a.html", "b/c.html", "a.html"]

    def test_single_quotes_are_not_references(self):
        assert find_includes("{% include 'a.html' %}") == []


class TestCollectDependencies:

    def test_no_references(self, write_templates, loader):
        write_templates({"page.html": "<p>plain</p>"})
        assert deps_of(loader, "page.html") == []

    def test_parent_first_then_includes(self, write_templates, loader):
        write_templates({
            "page.html": '{% include "part.html" %}{% extends "base.html" %}',
            "base.html": '{% include "nav.html" %}{% yield body %}',
            "nav.html": "<nav></nav>",
            "part.html": "<div></div>",
        })

        assert deps_of(loader, "page.html") == ["base.html", "nav.html", "part.html"]

    def test_diamond_reports_each_once(self, write_templates, loader):
        write_templates({
            "page.html": '{% include "b.html" %}{% include "c.html" %}',
            "b.html": '{% include "d.html" %}',
            "c.html": '{% include "d.html" %}',
            "d.html": "d",
        })

        assert deps_of(loader, "page.html") == ["b.html", "d.html", "c.html"]

    def test_cycle_terminates(self, write_templates, loader):
        write_templates({
            "a.html": '{% include "b.html" %}',
            "b.html": '{% include "a.html" %}',
        })

        assert deps_of(loader, "a.html") == ["b.html", "a.html"]

    def test_identifiers_are_normalized(self, write_templates, loader):
        write_templates({
            "page.html": '{% include "./part.html" %}{% include "sub/../part.html" %}',
            "part.html": "p",
        })

        assert deps_of(loader, "page.html") == ["part.html"]

    def test_commented_references_are_ignored(self, write_templates, loader):
        write_templates({
            "page.html": '{% include "part.html" %}',
            "part.html": '{# {% include "missing.html" %} #}part',
        })

        assert deps_of(loader, "page.html") == ["part.html"]

    def test_visited_set_is_shared(self, write_templates, loader):
        write_templates({"page.html": '{% include "part.html" %}', "part.html": "p"})
        visited = {"part.html"}

        assert collect_dependencies(loader.get_source("page.html").text, loader, visited) == []

    def test_escaping_reference(self, write_templates, loader):
        write_templates({"page.html": '{% include "../../etc/passwd" %}'})

        with pytest.raises(TemplatePathEscapeFault):
            deps_of(loader, "page.html")

    def test_missing_reference(self, write_templates, loader):
        write_templates({"page.html": '{% extends "missing.html" %}'})

        with pytest.raises(TemplateNotFoundFault):
            deps_of(loader, "page.html")

    def test_long_chain(self, write_templates, loader):
        length = 1500
        templates = {f"c{i}.html": f'{{% include "c{i + 1}.html" %}}' for i in range(length - 1)}
        templates[f"c{length - 1}.html"] = "end"
        write_templates(templates)

        assert deps_of(loader, "c0.html") == [f"c{i}.html" for i in range(1, length)]
