"""The client hash must match the server's byte for byte."""

import hashlib

from ottowrite_autosave.content_hash import compute_content_hash, extract_anchor_ids


class TestContentHash:

    def test_matches_server_canonical_form(self):
        canonical = '{"anchorIds":["a","b"],"html":"<p>x</p>","structure":[]}'
        expected = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        assert compute_content_hash("<p>x</p>", None, ["b", "a", "b"]) == expected

    def test_non_ascii_is_not_escaped(self):
        canonical = '{"anchorIds":[],"html":"<p>café</p>","structure":[]}'
        expected = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        assert compute_content_hash("<p>café</p>", [], []) == expected

    def test_structure_key_order_is_irrelevant(self):
        a = compute_content_hash("", [{"id": "s1", "title": "One"}])
        b = compute_content_hash("", [{"title": "One", "id": "s1"}])
        assert a == b


class TestExtractAnchorIds:

    def test_reads_scene_anchor_spans(self):
        html = (
            '<p><span data-scene-anchor="true" data-scene-id="s2"></span>Two</p>'
            '<p><span data-scene-anchor="true" data-scene-id="s1"></span>One</p>'
            '<p><span data-scene-anchor="true" data-scene-id="s2"></span>Again</p>'
        )
        assert extract_anchor_ids(html) == ["s2", "s1"]

    def test_ignores_plain_spans(self):
        assert extract_anchor_ids('<span data-scene-id="s1"></span>') == []
        assert extract_anchor_ids(None) == []
