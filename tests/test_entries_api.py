from sqlalchemy import select
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError
from sqlalchemy.schema import CreateIndex

from debate_archive.models import Entry, EntryRevision, EntryStatus, Stat
from debate_archive.services import revisions
from debate_archive.services.entries import search_clause


def _revisions(app, entry_id):
    with app.state.session_factory() as db:
        return [
            r.changes_json
            for r in db.query(EntryRevision).filter_by(entry_id=entry_id).order_by(EntryRevision.id)
        ]


def test_health(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


class TestSubmit:
    def test_creates_pending_entry(self, client, auth_headers, sample_submission):
        response = client.post("/entries", json=sample_submission, headers=auth_headers("user_1"))
        assert response.status_code == 201
        body = response.json()
        assert body["verified_status"] == "pending"
        assert body["is_locked"] is False
        assert body["submitted_by"] == "user_1"
        assert body["video_id"] == "abc123"
        assert body["start_seconds"] == 90
        assert body["youtube_url"] == "https://youtu.be/abc123?t=90"
        assert [(v["book"], v["chapter"], v["verse"]) for v in body["bible_verses"]] == [
            ("John", 3, 16), ("John", 3, 17),
        ]
        assert body["stats"][0]["source_url"] == "https://example.com/cc"
        assert body["vote_count"] == {"upvotes": 0, "downvotes": 0, "weighted_score": 0.0}

    def test_status_in_body_is_ignored(self, client, auth_headers, sample_submission):
        sample_submission["verified_status"] = "verified"
        response = client.post("/entries", json=sample_submission, headers=auth_headers("user_1"))
        assert response.status_code == 201
        assert response.json()["verified_status"] == "pending"

    def test_requires_authentication(self, client, sample_submission):
        response = client.post("/entries", json=sample_submission)
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_rejects_bad_token(self, client, sample_submission):
        response = client.post(
            "/entries", json=sample_submission, headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401

    def test_invalid_youtube_url(self, client, auth_headers, sample_submission):
        sample_submission["youtube_url"] = "https://vimeo.com/1234"
        response = client.post("/entries", json=sample_submission, headers=auth_headers("user_1"))
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid YouTube URL"

        pending = client.get("/entries", params={"status": "pending"}).json()
        assert pending == []

    def test_invalid_verse(self, client, auth_headers, sample_submission):
        sample_submission["bible_verses"] = [{"book": "John", "chapter": 3, "verse": 99}]
        response = client.post("/entries", json=sample_submission, headers=auth_headers("user_1"))
        assert response.status_code == 400

    def test_malformed_body_is_400(self, client, auth_headers, sample_submission):
        sample_submission["question"] = "   "
        response = client.post("/entries", json=sample_submission, headers=auth_headers("user_1"))
        assert response.status_code == 400
        assert "question" in response.json()["detail"]

    def test_camel_case_ranges(self, client, auth_headers, sample_submission):
        sample_submission["bible_verse_ranges"] = [
            {"book": "ruth", "startChapter": 1, "startVerse": 21, "endChapter": 2, "endVerse": 1},
        ]
        response = client.post("/entries", json=sample_submission, headers=auth_headers("user_1"))
        assert response.status_code == 201
        verses = [(v["chapter"], v["verse"]) for v in response.json()["bible_verses"]]
        assert verses == [(1, 21), (1, 22), (2, 1)]

    def test_stats_and_verses_are_shared(self, app, client, auth_headers, sample_submission):
        first = client.post("/entries", json=sample_submission, headers=auth_headers("user_1")).json()
        second = client.post("/entries", json=sample_submission, headers=auth_headers("user_2")).json()
        assert first["stats"][0]["id"] == second["stats"][0]["id"]
        assert [v["id"] for v in first["bible_verses"]] == [v["id"] for v in second["bible_verses"]]
        with app.state.session_factory() as db:
            assert db.query(Stat).count() == 1

    def test_duplicate_stats_linked_once(self, client, auth_headers, sample_submission):
        sample_submission["stats"] = sample_submission["stats"] * 2 + [{"description": "no source"}]
        body = client.post("/entries", json=sample_submission, headers=auth_headers("user_1")).json()
        assert [s["description"] for s in body["stats"]] == ["1 in 10^120", "no source"]
        assert body["stats"][1]["source_url"] is None

    def test_sixth_submission_rate_limited(self, client, clock, auth_headers, sample_submission):
        headers = auth_headers("user_1")
        for _ in range(5):
            assert client.post("/entries", json=sample_submission, headers=headers).status_code == 201

        response = client.post("/entries", json=sample_submission, headers=headers)
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "600"

        clock.advance(minutes=11)
        assert client.post("/entries", json=sample_submission, headers=headers).status_code == 201

    def test_rejected_submission_does_not_use_quota(self, client, auth_headers, sample_submission):
        headers = auth_headers("user_1")
        bad = dict(sample_submission, youtube_url="https://example.com/")
        for _ in range(6):
            assert client.post("/entries", json=bad, headers=headers).status_code == 400
        assert client.post("/entries", json=sample_submission, headers=headers).status_code == 201


class TestRead:
    def test_list_defaults_to_verified(self, client, make_entry):
        verified = make_entry(question="Verified one")
        make_entry(question="Pending one", status=EntryStatus.PENDING)

        body = client.get("/entries").json()
        assert [e["id"] for e in body] == [verified]

        pending = client.get("/entries", params={"status": "pending"}).json()
        assert [e["question"] for e in pending] == ["Pending one"]

    def test_newest_first_and_paging(self, client, make_entry):
        ids = [make_entry(question=f"Q{i}") for i in range(3)]
        body = client.get("/entries", params={"limit": 2}).json()
        assert [e["id"] for e in body] == [ids[2], ids[1]]
        body = client.get("/entries", params={"limit": 2, "offset": 2}).json()
        assert [e["id"] for e in body] == [ids[0]]

    def test_search(self, client, make_entry):
        make_entry(question="Does evil disprove God?")
        make_entry(question="Fine tuning", answer_summary="About EVIL and suffering")
        make_entry(question="Something else")
        body = client.get("/entries", params={"q": "evil"}).json()
        assert len(body) == 2

    def test_search_escapes_wildcards(self, client, make_entry):
        make_entry(question="100% sure")
        make_entry(question="Plain question")
        body = client.get("/entries", params={"q": "%"}).json()
        assert [e["question"] for e in body] == ["100% sure"]

    def test_search_uses_full_text_on_postgresql(self):
        sql = str(
            select(Entry).where(search_clause("postgresql", "evil"))
            .compile(dialect=postgresql.dialect())
        )
        assert "to_tsvector" in sql
        assert "@@ plainto_tsquery" in sql
        assert "ILIKE" not in sql.upper()

    def test_search_index_is_postgresql_gin(self):
        index = next(i for i in Entry.__table__.indexes if i.name == "ix_entries_search_document")
        ddl = str(CreateIndex(index).compile(dialect=postgresql.dialect()))
        assert "USING gin" in ddl
        assert "to_tsvector" in ddl

    def test_invalid_paging(self, client):
        assert client.get("/entries", params={"limit": 0}).status_code == 400
        assert client.get("/entries", params={"limit": 101}).status_code == 400
        assert client.get("/entries", params={"offset": -1}).status_code == 400

    def test_invalid_status(self, client):
        assert client.get("/entries", params={"status": "bogus"}).status_code == 400

    def test_get_one(self, client, make_entry):
        entry_id = make_entry(status=EntryStatus.PENDING)
        response = client.get(f"/entries/{entry_id}")
        assert response.status_code == 200
        assert response.json()["id"] == entry_id

    def test_get_missing(self, client):
        response = client.get("/entries/9999")
        assert response.status_code == 404
        assert response.json() == {"detail": "Entry not found"}


class TestModerate:
    def test_requires_verifier(self, client, make_entry, auth_headers):
        entry_id = make_entry(status=EntryStatus.PENDING)
        response = client.patch(
            f"/entries/{entry_id}", json={"verified_status": "verified"},
            headers=auth_headers("user_1"),
        )
        assert response.status_code == 403
        assert client.patch(f"/entries/{entry_id}", json={"verified_status": "verified"}).status_code == 401

    def test_approve_writes_revision(self, app, client, make_entry, verifier_headers):
        entry_id = make_entry(status=EntryStatus.PENDING)
        response = client.patch(
            f"/entries/{entry_id}", json={"verified_status": "verified"}, headers=verifier_headers
        )
        assert response.status_code == 200
        assert response.json()["verified_status"] == "verified"

        revisions = _revisions(app, entry_id)
        assert len(revisions) == 1
        assert revisions[0]["action"] == "updated"
        assert revisions[0]["old_value"] == {"verified_status": "pending", "is_locked": False}
        assert revisions[0]["new_value"] == {"verified_status": "verified", "is_locked": False}

    def test_noop_writes_no_revision(self, app, client, make_entry, verifier_headers):
        entry_id = make_entry()
        response = client.patch(
            f"/entries/{entry_id}", json={"verified_status": "verified"}, headers=verifier_headers
        )
        assert response.status_code == 200
        assert _revisions(app, entry_id) == []

    def test_content_edit(self, app, client, make_entry, verifier_headers):
        entry_id = make_entry(question="Old question")
        response = client.patch(
            f"/entries/{entry_id}", json={"question": "New question"}, headers=verifier_headers
        )
        assert response.json()["question"] == "New question"
        revision = _revisions(app, entry_id)[0]
        assert revision["old_value"]["question"] == "Old question"
        assert revision["new_value"]["question"] == "New question"

    def test_locked_entry_refuses_content_edit(self, app, client, make_entry, verifier_headers):
        entry_id = make_entry(question="Original", is_locked=True)
        response = client.patch(
            f"/entries/{entry_id}", json={"question": "Changed"}, headers=verifier_headers
        )
        assert response.status_code == 409
        assert client.get(f"/entries/{entry_id}").json()["question"] == "Original"
        assert _revisions(app, entry_id) == []

    def test_locked_entry_status_still_changes(self, client, make_entry, verifier_headers):
        entry_id = make_entry(is_locked=True)
        response = client.patch(
            f"/entries/{entry_id}", json={"verified_status": "rejected"}, headers=verifier_headers
        )
        assert response.status_code == 200
        assert response.json()["verified_status"] == "rejected"

    def test_unlock_and_edit_together(self, client, make_entry, verifier_headers):
        entry_id = make_entry(question="Original", is_locked=True)
        response = client.patch(
            f"/entries/{entry_id}", json={"is_locked": False, "question": "Changed"},
            headers=verifier_headers,
        )
        assert response.status_code == 200
        assert response.json()["question"] == "Changed"

    def test_lock_and_edit_together_refused(self, client, make_entry, verifier_headers):
        entry_id = make_entry(question="Original")
        response = client.patch(
            f"/entries/{entry_id}", json={"is_locked": True, "question": "Changed"},
            headers=verifier_headers,
        )
        assert response.status_code == 409

    def test_missing_entry(self, client, verifier_headers):
        response = client.patch("/entries/9999", json={"is_locked": True}, headers=verifier_headers)
        assert response.status_code == 404


class TestDelete:
    def test_delete_writes_snapshot(self, app, client, auth_headers, sample_submission, verifier_headers):
        created = client.post("/entries", json=sample_submission, headers=auth_headers("user_1")).json()
        entry_id = created["id"]

        response = client.delete(f"/entries/{entry_id}", headers=verifier_headers)
        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert client.get(f"/entries/{entry_id}").status_code == 404

        revisions = client.get(f"/entries/{entry_id}/revisions", headers=verifier_headers).json()
        assert len(revisions) == 1
        changes = revisions[0]["changes_json"]
        assert changes["action"] == "deleted"
        assert changes["new_value"] is None
        assert changes["old_value"]["question"] == sample_submission["question"]
        assert len(changes["old_value"]["bible_verses"]) == 2
        assert revisions[0]["revised_by"] == "user_mod"

    def test_delete_keeps_shared_stats(self, app, client, auth_headers,
                                       sample_submission, verifier_headers):
        created = client.post("/entries", json=sample_submission, headers=auth_headers("user_1")).json()
        client.delete(f"/entries/{created['id']}", headers=verifier_headers)
        with app.state.session_factory() as db:
            assert db.query(Stat).count() == 1

    def test_delete_missing(self, client, verifier_headers):
        assert client.delete("/entries/9999", headers=verifier_headers).status_code == 404

    def test_delete_requires_verifier(self, client, make_entry, auth_headers):
        entry_id = make_entry()
        assert client.delete(f"/entries/{entry_id}", headers=auth_headers("user_1")).status_code == 403
        assert client.get(f"/entries/{entry_id}").status_code == 200


def test_revisions_require_verifier(client, make_entry, auth_headers):
    entry_id = make_entry()
    assert client.get(f"/entries/{entry_id}/revisions", headers=auth_headers("user_1")).status_code == 403


class TestAuditCoupling:
    """The revision and the mutation it records commit or roll back together."""

    @staticmethod
    def _failing(real):
        def wrapper(db, *args, **kwargs):
            real(db, *args, **kwargs)
            db.flush()
            raise OperationalError("INSERT INTO entry_revisions", {}, Exception("disk I/O error"))
        return wrapper

    def test_failed_revision_undoes_update(self, app, client, make_entry, verifier_headers, monkeypatch):
        entry_id = make_entry(question="Original", status=EntryStatus.PENDING)
        monkeypatch.setattr(revisions, "record_update", self._failing(revisions.record_update))

        response = client.patch(
            f"/entries/{entry_id}",
            json={"verified_status": "verified", "is_locked": True, "question": "Changed"},
            headers=verifier_headers,
        )
        assert response.status_code == 500
        assert "disk I/O error" in response.json()["detail"]

        body = client.get(f"/entries/{entry_id}").json()
        assert body["verified_status"] == "pending"
        assert body["is_locked"] is False
        assert body["question"] == "Original"
        assert _revisions(app, entry_id) == []

    def test_failed_revision_undoes_delete(self, app, client, make_entry, verifier_headers, monkeypatch):
        entry_id = make_entry()
        monkeypatch.setattr(revisions, "record_deletion", self._failing(revisions.record_deletion))

        response = client.delete(f"/entries/{entry_id}", headers=verifier_headers)
        assert response.status_code == 500

        assert client.get(f"/entries/{entry_id}").status_code == 200
        assert _revisions(app, entry_id) == []
