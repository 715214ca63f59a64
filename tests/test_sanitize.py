"""Tests for markup sanitizers."""

import pytest

from relay.app.core.sanitize import (
    sanitize_code,
    sanitize_delta,
    strip_html_comments,
    strip_script_blocks,
)


class TestSanitizeCode:
    def test_removes_html_comments(self):
        assert strip_html_comments("a<!-- hidden -->b") == "ab"

    def test_removes_multiline_comments_lazily(self):
        text = "<!-- one\nline -->keep<!-- two -->"
        assert strip_html_comments(text) == "keep"

    @pytest.mark.parametrize(
        "text",
        [
            "<script>alert(1)</script>",
            "<SCRIPT type='text/javascript'>x()</SCRIPT>",
            "<script src=x>if (a < b) {}</script>",
        ],
    )
    def test_removes_script_blocks(self, text):
        assert strip_script_blocks("before" + text + "after") == "beforeafter"

    def test_unclosed_script_is_kept(self):
        assert strip_script_blocks("<script>alert(1)") == "<script>alert(1)"

    def test_plain_code_unchanged(self):
        code = "def add(a, b):\n    return a < b\n"
        assert sanitize_code(code) == code


class TestSanitizeDelta:
    def test_strips_javascript_uri(self):
        assert sanitize_delta("[x](javascript:alert(1))") == "[x](alert(1))"

    def test_strips_javascript_uri_case_insensitive(self):
        assert sanitize_delta("JavaScript:void(0)") == "void(0)"

    def test_strips_script_blocks(self):
        assert sanitize_delta("ok<script>bad()</script>") == "ok"

    def test_plain_text_unchanged(self):
        assert sanitize_delta("This loop prints numbers.") == "This loop prints numbers."
