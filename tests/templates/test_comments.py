"""
Test nested comment stripping.
"""

import logging

from tessera.templates import strip_comments


class TestStripComments:

    def test_no_comments_is_unchanged(self):
        assert strip_comments("<p>{{ name }}</p>") == "<p>{{ name }}</p>"

    def test_single_comment(self):
        assert strip_comments("a{# note #}b") == "ab"

    def test_adjacent_comments(self):
        assert strip_comments("a{#b#}{#c#}d") == "ad"

    def test_nested_comments(self):
        assert strip_comments("a{# x {# y #} z #}b") == "ab"

    def test_deeply_nested_comments(self):
        text = "keep{# 1 {# 2 {# 3 #} 2 #} 1 #}end"
        assert strip_comments(text) == "keepend"

    def test_comment_hides_tags(self):
        text = '{# {% include "missing.html" %} #}<p>ok</p>'
        assert strip_comments(text) == "<p>ok</p>"

    def test_stray_close_marker_is_text(self):
        assert strip_comments("a #} b") == "a #} b"

    def test_idempotent(self):
        text = "x {# a {# b #} c #} y {{ v }} {# z #}"
        once = strip_comments(text)
        assert strip_comments(once) == once
        assert once == "x  y {{ v }} "

    def test_unterminated_comment_discards_to_end(self, caplog):
        text = "keep{# dropped {# inner #} still dropped"

        with caplog.at_level(logging.WARNING, logger="tessera.templates.comments"):
            result = strip_comments(text, "page.html")

        assert result == "keep"
        assert "Unterminated comment in page.html" in caplog.text

    def test_unterminated_comment_counts_only_discarded_text(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tessera.templates.comments"):
            assert strip_comments("ab{# c #}def{# xy") == "abdef"

        assert "discarding 5 trailing characters" in caplog.text

    def test_only_open_marker(self):
        assert strip_comments("{#") == ""
