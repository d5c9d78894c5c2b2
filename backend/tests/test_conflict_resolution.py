"""Tests for autosave conflict strategies and merge conflict detection."""

from ottowrite.schemas.autosave import ConflictStrategy
from ottowrite.schemas.branch import MergeStrategy
from ottowrite.services.conflict_resolution import (
    ContentState,
    apply_merge_resolutions,
    detect_merge_conflicts,
    resolve_autosave_conflict,
)

LOCAL = ContentState(html="<p>Local</p>", structure=[{"id": "ch-1"}, {"id": "ch-3"}], anchor_ids=["a", "c"])
SERVER = ContentState(html="<p>Server</p>", structure=[{"id": "ch-1"}, {"id": "ch-2"}], anchor_ids=["a", "b"])


class TestAutosaveStrategies:

    def test_keep_local(self):
        assert resolve_autosave_conflict(LOCAL, SERVER, ConflictStrategy.KEEP_LOCAL) == LOCAL

    def test_keep_server(self):
        assert resolve_autosave_conflict(LOCAL, SERVER, ConflictStrategy.KEEP_SERVER) == SERVER

    def test_keep_both(self):
        merged = resolve_autosave_conflict(LOCAL, SERVER, ConflictStrategy.KEEP_BOTH)
        assert merged.html == "<p>Server</p>\n<p>Local</p>"
        assert [e["id"] for e in merged.structure] == ["ch-1", "ch-2", "ch-3"]
        assert merged.anchor_ids == ["a", "b", "c"]

    def test_keep_both_with_identical_html(self):
        local = ContentState(html="<p>Same</p>")
        server = ContentState(html="<p>Same</p>")
        assert resolve_autosave_conflict(local, server, ConflictStrategy.KEEP_BOTH).html == "<p>Same</p>"

    def test_result_does_not_alias_inputs(self):
        merged = resolve_autosave_conflict(LOCAL, SERVER, ConflictStrategy.KEEP_BOTH)
        merged.structure[0]["id"] = "changed"
        assert SERVER.structure[0]["id"] == "ch-1"


class TestDetectMergeConflicts:

    def test_identical_content_has_no_conflicts(self):
        content = {"html": "<p>Same</p>", "screenplay": [{"type": "action", "content": "Go"}]}
        assert detect_merge_conflicts(content, dict(content)) == []

    def test_one_sided_fields_do_not_conflict(self):
        assert detect_merge_conflicts({"html": "<p>New</p>"}, {}) == []
        assert detect_merge_conflicts({}, {"screenplay": [{"content": "x"}]}) == []

    def test_html_conflict_carries_both_values(self):
        conflicts = detect_merge_conflicts({"html": "<p>Source</p>"}, {"html": "<p>Target</p>"})
        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict["type"] == "html"
        assert conflict["source_value"] == "<p>Source</p>"
        assert conflict["target_value"] == "<p>Target</p>"
        assert conflict["stats"]["total_changes"] == 2

    def test_screenplay_conflict(self):
        conflicts = detect_merge_conflicts(
            {"screenplay": [{"content": "A"}]},
            {"screenplay": [{"content": "B"}]},
        )
        assert [c["field"] for c in conflicts] == ["screenplay"]


class TestApplyMergeResolutions:

    SOURCE = {"html": "<p>S</p>", "screenplay": [{"content": "s"}], "structure": ["src"]}
    TARGET = {"html": "<p>T</p>", "screenplay": [{"content": "t"}], "structure": ["tgt"]}

    def test_unresolved_fields_take_source(self):
        merged = apply_merge_resolutions(self.SOURCE, self.TARGET, {"html": MergeStrategy.TARGET})
        assert merged["html"] == "<p>T</p>"
        assert merged["structure"] == ["src"]

    def test_both_concatenates_target_first(self):
        merged = apply_merge_resolutions(
            self.SOURCE, self.TARGET,
            {"html": MergeStrategy.BOTH, "screenplay": MergeStrategy.BOTH},
        )
        assert merged["html"] == "<p>T</p>\n<p>S</p>"
        assert merged["screenplay"] == [{"content": "t"}, {"content": "s"}]

    def test_source_choice(self):
        merged = apply_merge_resolutions(self.SOURCE, self.TARGET, {"screenplay": MergeStrategy.SOURCE})
        assert merged["screenplay"] == [{"content": "s"}]

    def test_both_with_one_side_missing_adds_no_separator(self):
        merged = apply_merge_resolutions({"html": "<p>S</p>"}, {}, {"html": MergeStrategy.BOTH})
        assert merged["html"] == "<p>S</p>"
        merged = apply_merge_resolutions({"html": ""}, self.TARGET, {"html": MergeStrategy.BOTH})
        assert merged["html"] == "<p>T</p>"
