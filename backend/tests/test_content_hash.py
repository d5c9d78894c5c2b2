"""Tests for content fingerprinting and word counting."""

import hashlib
import json

from ottowrite.services.content_hash import (
    compute_content_hash,
    compute_word_count,
    count_scenes,
    count_words,
    extract_anchor_ids,
    generate_content_preview,
    hash_document_content,
    normalize_anchor_ids,
)


class TestComputeContentHash:

    def test_matches_canonical_json_digest(self):
        expected = hashlib.sha256(
            b'{"anchorIds":["a","b"],"html":"<p>x</p>","structure":[]}'
        ).hexdigest()
        assert compute_content_hash("<p>x</p>", [], ["b", "a", "b"]) == expected

    def test_missing_values_hash_like_empty(self):
        assert compute_content_hash(None, None) == compute_content_hash("", [], [])

    def test_dict_key_order_does_not_matter(self):
        a = [{"id": "ch-1", "title": "One", "scenes": []}]
        b = [{"scenes": [], "title": "One", "id": "ch-1"}]
        assert compute_content_hash("", a) == compute_content_hash("", b)

    def test_any_change_changes_hash(self):
        base = compute_content_hash("<p>x</p>", [], [])
        assert compute_content_hash("<p>y</p>", [], []) != base
        assert compute_content_hash("<p>x</p>", [{"id": "c"}], []) != base
        assert compute_content_hash("<p>x</p>", [], ["sc-1"]) != base

    def test_non_ascii_is_hashed_as_utf8(self):
        encoded = json.dumps(
            {"anchorIds": [], "html": "café", "structure": []},
            sort_keys=True, separators=(",", ":"), ensure_ascii=False,
        ).encode("utf-8")
        assert compute_content_hash("café", []) == hashlib.sha256(encoded).hexdigest()


class TestAnchors:

    def test_extract_anchor_ids(self):
        html = (
            '<p>Intro</p><span data-scene-anchor="true" data-scene-id="sc-1"></span>'
            "<span data-scene-anchor='true' data-scene-id='sc-2' class='x'></span>"
            '<span data-scene-id="ignored"></span>'
        )
        assert extract_anchor_ids(html) == ["sc-1", "sc-2"]

    def test_normalize_anchor_ids_drops_non_strings(self):
        assert normalize_anchor_ids(["a", 1, None, "a", "b"]) == ["a", "b"]
        assert normalize_anchor_ids("not-a-list") == []

    def test_stored_hash_reads_anchors_from_html(self):
        html = '<span data-scene-anchor="true" data-scene-id="sc-9"></span>'
        content = {"html": html, "structure": None}
        assert hash_document_content(content) == compute_content_hash(html, [], ["sc-9"])


class TestCounting:

    def test_count_words_ignores_tags(self):
        assert count_words("<p>One <b>two</b></p><p>three</p>") == 3
        assert count_words(None) == 0

    def test_word_count_prefers_html(self):
        assert compute_word_count({"html": "<p>a b</p>", "screenplay": [{"content": "x y z"}]}) == 2

    def test_word_count_falls_back_to_screenplay(self):
        content = {"screenplay": [{"content": "INT. HOUSE - NIGHT"}, {"text": "Hello"}, "junk"]}
        assert compute_word_count(content) == 5

    def test_count_scenes(self):
        structure = [{"scenes": [{}, {}]}, {"scenes": None}, {"scenes": [{}]}, "junk"]
        assert count_scenes(structure) == 3

    def test_preview_is_truncated(self):
        preview = generate_content_preview({"html": "<p>" + "word " * 200 + "</p>"})
        assert len(preview) == 503
        assert preview.endswith("...")
