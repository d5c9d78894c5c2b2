"""Tests for the autosave protocol: hash-checked saves, conflicts and resolution."""

from sqlalchemy import text

from ottowrite.core.config import settings
from ottowrite.models import DocumentSnapshot
from ottowrite.repositories.document_repository import DocumentRepository
from ottowrite.services.content_hash import compute_content_hash
from tests.conftest import create_document

ANCHOR = '<span data-scene-anchor="true" data-scene-id="sc-1"></span>'


def _autosave(client, doc_id: str, **payload):
    return client.post(f"/api/documents/{doc_id}/autosave", json=payload)


class TestAutosave:

    def test_save_with_matching_hash(self, client):
        doc = create_document(client)
        resp = _autosave(client, doc["id"], html="<p>Second draft here</p>", base_hash=doc["hash"])
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "saved"
        assert data["word_count"] == 3
        assert data["snapshot_id"]
        assert data["hash"] == compute_content_hash("<p>Second draft here</p>", [], [])

        stored = client.get(f"/api/documents/{doc['id']}").json()
        assert stored["content"]["html"] == "<p>Second draft here</p>"
        assert stored["version"] == 2
        assert stored["hash"] == data["hash"]

    def test_returned_hash_is_next_base_hash(self, client):
        doc = create_document(client)
        first = _autosave(client, doc["id"], html=f"<p>One</p>{ANCHOR}", base_hash=doc["hash"]).json()
        second = _autosave(client, doc["id"], html="<p>Two</p>", base_hash=first["hash"])
        assert second.status_code == 200

    def test_stale_hash_returns_409_with_server_content(self, client):
        doc = create_document(client, html="<p>Original</p>")
        _autosave(client, doc["id"], html="<p>From tab A</p>", base_hash=doc["hash"])

        resp = _autosave(client, doc["id"], html="<p>From tab B</p>", base_hash=doc["hash"])
        assert resp.status_code == 409
        body = resp.json()
        assert body["error"] == "AUTOSAVE_CONFLICT"
        details = body["details"]
        assert details["status"] == "conflict"
        assert details["doc_id"] == doc["id"]
        assert details["document"]["html"] == "<p>From tab A</p>"
        assert details["hash"] == compute_content_hash("<p>From tab A</p>", [], [])

        stored = client.get(f"/api/documents/{doc['id']}").json()
        assert stored["content"]["html"] == "<p>From tab A</p>"

    def test_conflict_writes_no_snapshot(self, client, db):
        doc = create_document(client)
        _autosave(client, doc["id"], html="<p>A</p>", base_hash=doc["hash"])
        _autosave(client, doc["id"], html="<p>B</p>", base_hash=doc["hash"])
        assert db.query(DocumentSnapshot).filter_by(document_id=doc["id"]).count() == 1

    def test_concurrent_write_between_check_and_update(self, client, monkeypatch):
        """A writer that lands after the hash check still yields a 409."""
        doc = create_document(client)
        original = DocumentRepository.update_content_if_version

        def racing_update(self, doc_id, expected_version, content, word_count):
            self.db.execute(
                text("UPDATE documents SET version = version + 1 WHERE id = :id"),
                {"id": doc_id},
            )
            return original(self, doc_id, expected_version, content, word_count)

        monkeypatch.setattr(DocumentRepository, "update_content_if_version", racing_update)
        resp = _autosave(client, doc["id"], html="<p>Lost?</p>", base_hash=doc["hash"])

        assert resp.status_code == 409
        assert resp.json()["error"] == "AUTOSAVE_CONFLICT"
        monkeypatch.undo()
        stored = client.get(f"/api/documents/{doc['id']}").json()
        assert stored["content"]["html"] == "<p>Hello world.</p>"
        assert stored["version"] == 1

    def test_missing_base_hash_writes_unconditionally(self, client):
        doc = create_document(client)
        _autosave(client, doc["id"], html="<p>A</p>", base_hash=doc["hash"])
        resp = _autosave(client, doc["id"], html="<p>B</p>")
        assert resp.status_code == 200
        assert client.get(f"/api/documents/{doc['id']}").json()["content"]["html"] == "<p>B</p>"

    def test_missing_fields_keep_stored_values(self, client):
        structure = [{"id": "ch-1", "title": "One", "scenes": []}]
        doc = create_document(client, html="<p>Keep me</p>", structure=structure)
        resp = _autosave(client, doc["id"], metadata={"pov": "Mara"}, base_hash=doc["hash"])
        assert resp.status_code == 200

        content = client.get(f"/api/documents/{doc['id']}").json()["content"]
        assert content["html"] == "<p>Keep me</p>"
        assert content["structure"] == structure
        assert content["metadata"] == {"pov": "Mara"}

    def test_identical_save_does_not_bump_version(self, client):
        doc = create_document(client)
        resp = _autosave(client, doc["id"], html="<p>Hello world.</p>", base_hash=doc["hash"])
        assert resp.status_code == 200
        assert resp.json()["hash"] == doc["hash"]
        assert client.get(f"/api/documents/{doc['id']}").json()["version"] == 1

    def test_script_is_stripped_before_storing(self, client):
        doc = create_document(client)
        resp = _autosave(
            client, doc["id"],
            html='<p onclick="steal()">Safe</p><script>alert(1)</script>',
            base_hash=doc["hash"],
        )
        assert resp.status_code == 200
        html = client.get(f"/api/documents/{doc['id']}").json()["content"]["html"]
        assert "<script" not in html
        assert "onclick" not in html
        assert "Safe" in html

    def test_unknown_document_returns_404(self, client):
        resp = _autosave(client, "missing", html="<p>x</p>")
        assert resp.status_code == 404


class TestSnapshotOnly:

    def test_snapshot_only_leaves_document_untouched(self, client, db):
        doc = create_document(client)
        resp = _autosave(client, doc["id"], html="<p>Draft</p>", snapshot_only=True)
        assert resp.status_code == 200
        assert resp.json()["status"] == "snapshot"

        stored = client.get(f"/api/documents/{doc['id']}").json()
        assert stored["content"]["html"] == "<p>Hello world.</p>"
        assert stored["version"] == 1
        assert db.query(DocumentSnapshot).filter_by(document_id=doc["id"]).count() == 1

    def test_snapshot_only_ignores_stale_hash(self, client):
        doc = create_document(client)
        resp = _autosave(client, doc["id"], html="<p>Draft</p>", base_hash="stale", snapshot_only=True)
        assert resp.status_code == 200

    def test_snapshots_are_pruned_to_retention_limit(self, client, monkeypatch):
        monkeypatch.setattr(settings, "snapshot_retention_limit", 3)
        doc = create_document(client)
        for i in range(5):
            _autosave(client, doc["id"], html=f"<p>Draft {i}</p>", snapshot_only=True)

        snapshots = client.get(f"/api/documents/{doc['id']}/snapshots").json()
        assert len(snapshots) == 3


class TestConflictResolution:

    def _conflicted(self, client):
        doc = create_document(client, html="<p>Base</p>")
        _autosave(client, doc["id"], html="<p>Server</p>", base_hash=doc["hash"])
        conflict = _autosave(client, doc["id"], html="<p>Local</p>", base_hash=doc["hash"]).json()
        return doc, conflict["details"]["hash"]

    def test_keep_local(self, client):
        doc, server_hash = self._conflicted(client)
        resp = client.post(f"/api/documents/{doc['id']}/autosave/resolve", json={
            "strategy": "keep_local", "server_hash": server_hash, "html": "<p>Local</p>",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["strategy"] == "keep_local"
        assert data["html"] == "<p>Local</p>"
        stored = client.get(f"/api/documents/{doc['id']}").json()
        assert stored["content"]["html"] == "<p>Local</p>"
        assert stored["hash"] == data["hash"]

    def test_keep_server(self, client):
        doc, server_hash = self._conflicted(client)
        resp = client.post(f"/api/documents/{doc['id']}/autosave/resolve", json={
            "strategy": "keep_server", "server_hash": server_hash, "html": "<p>Local</p>",
        })
        assert resp.status_code == 200
        assert resp.json()["html"] == "<p>Server</p>"
        assert resp.json()["hash"] == server_hash

    def test_keep_both_concatenates(self, client):
        doc, server_hash = self._conflicted(client)
        resp = client.post(f"/api/documents/{doc['id']}/autosave/resolve", json={
            "strategy": "keep_both", "server_hash": server_hash, "html": "<p>Local</p>",
        })
        assert resp.status_code == 200
        assert resp.json()["html"] == "<p>Server</p>\n<p>Local</p>"

    def test_resolve_against_stale_hash_conflicts_again(self, client):
        doc, _ = self._conflicted(client)
        resp = client.post(f"/api/documents/{doc['id']}/autosave/resolve", json={
            "strategy": "keep_local", "server_hash": doc["hash"], "html": "<p>Local</p>",
        })
        assert resp.status_code == 409

    def test_unknown_strategy_rejected(self, client):
        doc, server_hash = self._conflicted(client)
        resp = client.post(f"/api/documents/{doc['id']}/autosave/resolve", json={
            "strategy": "merge_magic", "server_hash": server_hash,
        })
        assert resp.status_code == 422


class TestConflictDiff:

    def test_diff_against_server(self, client):
        doc = create_document(client, html="<p>The quick brown fox</p>")
        resp = client.post(
            f"/api/documents/{doc['id']}/autosave/diff",
            json={"html": "<p>The slow brown fox</p>"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["server_hash"] == doc["hash"]
        assert data["stats"]["additions"] == 1
        assert data["stats"]["deletions"] == 1
        assert {"value": "quick", "added": False, "removed": True} in data["diff"]
        assert {"value": "slow", "added": True, "removed": False} in data["diff"]
