"""Tests for server-side HTML sanitization."""

from ottowrite.services.sanitize import detect_xss_patterns, sanitize_html


class TestSanitizeHtml:

    def test_keeps_formatting_and_anchors(self):
        html = '<p><strong>Bold</strong></p><span data-scene-anchor="true" data-scene-id="sc-1"></span>'
        assert sanitize_html(html) == html

    def test_removes_script_blocks(self):
        assert sanitize_html("<p>a</p><script>alert(1)</script>") == "<p>a</p>"

    def test_removes_event_handlers(self):
        assert "onerror" not in sanitize_html('<img src="x.png" onerror="alert(1)">')

    def test_removes_javascript_urls(self):
        assert "javascript:" not in sanitize_html('<a href="javascript:alert(1)">x</a>')

    def test_removes_frames(self):
        assert sanitize_html('<iframe src="https://evil"></iframe><p>ok</p>') == "<p>ok</p>"

    def test_strip_all(self):
        assert sanitize_html("<p>Plain <em>text</em></p>", strip_all=True) == "Plain text"

    def test_empty(self):
        assert sanitize_html("") == ""


class TestDetectXss:

    def test_flags_active_content(self):
        assert detect_xss_patterns("<svg><script>1</script></svg>")
        assert detect_xss_patterns('<div onclick="x()">')

    def test_plain_prose_is_clean(self):
        assert not detect_xss_patterns("<p>Once upon a time, someone said: hello.</p>")
        assert not detect_xss_patterns("")
