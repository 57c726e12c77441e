import uuid
from datetime import datetime, timedelta

from app.crud import crud_usage
from app.services.documents import STORAGE_CLEANUP_WARNING
from app.services.usage import current_period


def _seed_with_graph(store, storage, user):
    document = store.add_document(user_id=user.id, file_size=4096)
    storage.objects[document.file_path] = (b"x" * 4096, "application/pdf")
    c1, c2, c3 = (store.add_chunk(document, f"chunk {i}") for i in range(3))

    # one entity built from two of the chunks, another from an unrelated document
    linked = store.add_entity(user.id, [c1, c2], name="Apollo")
    other_doc = store.add_document(user_id=user.id)
    other_chunk = store.add_chunk(other_doc)
    unrelated = store.add_entity(user.id, [other_chunk], name="Gemini")
    store.add_relation(user.id, linked, unrelated, [other_chunk])
    return document, (c1, c2, c3), linked, unrelated


def test_list_documents_paginates_newest_first(client, user, store):
    now = datetime.utcnow()
    for i in range(3):
        store.add_document(user_id=user.id, file_name=f"doc{i}.pdf", created_at=now + timedelta(minutes=i))
    store.add_document(user_id=uuid.uuid4(), file_name="someone-else.pdf")

    response = client.get("/api/documents?page=1&limit=2", headers=user.headers)

    assert response.status_code == 200
    body = response.json()
    assert [d["file_name"] for d in body["documents"]] == ["doc2.pdf", "doc1.pdf"]
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}


def test_list_documents_filters_by_status(client, user, store):
    store.add_document(user_id=user.id, status="failed")
    store.add_document(user_id=user.id, status="completed")

    response = client.get("/api/documents?status=failed", headers=user.headers)

    assert [d["status"] for d in response.json()["documents"]] == ["failed"]


def test_list_documents_rejects_unknown_status(client, user):
    response = client.get("/api/documents?status=exploded", headers=user.headers)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BAD_REQUEST"


def test_get_document_for_polling(client, user, store):
    document = store.add_document(user_id=user.id, status="processing", metadata={"category": "legal"})

    response = client.get(f"/api/documents/{document.id}", headers=user.headers)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "processing"
    assert body["metadata"] == {"category": "legal"}


def test_get_document_of_another_user_is_not_found(client, other_user, store, user):
    document = store.add_document(user_id=user.id)

    response = client.get(f"/api/documents/{document.id}", headers=other_user.headers)

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Document not found"


def test_patch_document_renames_and_merges_metadata(client, user, store):
    document = store.add_document(user_id=user.id, metadata={"originalName": "a.pdf", "tags": ["old"]})

    response = client.patch(
        "/api/documents",
        headers=user.headers,
        json={
            "id": str(document.id),
            "file_name": "Renamed.pdf",
            "tags": ["new", "tags"],
            "customMetadata": {"owner": "ops"},
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["document"]["file_name"] == "Renamed.pdf"
    assert store.documents[document.id].metadata_ == {
        "originalName": "a.pdf",
        "tags": ["new", "tags"],
        "owner": "ops",
    }


def test_patch_without_fields_is_rejected(client, user, store):
    document = store.add_document(user_id=user.id)

    response = client.patch("/api/documents", headers=user.headers, json={"id": str(document.id)})

    assert response.status_code == 400


def test_delete_requires_id(client, user):
    response = client.delete("/api/documents", headers=user.headers)

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Document ID is required"


def test_delete_removes_graph_chunks_and_file(client, user, store, storage):
    document, chunks, linked, unrelated = _seed_with_graph(store, storage, user)
    start, end = current_period()
    store.set_usage(user.organization_id, start, end, documents_count=2, storage_bytes=10000)

    response = client.delete(f"/api/documents?id={document.id}", headers=user.headers)

    assert response.status_code == 200
    body = response.json()
    assert body == {
        "success": True,
        "message": "Document deleted successfully",
        "entitiesDeleted": 1,
        "relationsDeleted": 1,
    }
    assert document.id not in store.documents
    assert not any(c.id in store.chunks for c in chunks)
    assert linked.id not in store.entities
    assert unrelated.id in store.entities
    assert store.relations == {}
    assert document.file_path not in storage.objects

    usage = store.usage[(user.organization_id, start)]
    assert usage.documents_count == 1
    assert usage.storage_bytes == 10000 - 4096


def test_delete_without_recorded_usage_leaves_counters(client, user, store):
    document = store.add_document(user_id=user.id, usage_recorded=False)
    start, end = current_period()
    store.set_usage(user.organization_id, start, end, documents_count=3, storage_bytes=500)

    response = client.delete(f"/api/documents?id={document.id}", headers=user.headers)

    assert response.status_code == 200
    usage = store.usage[(user.organization_id, start)]
    assert usage.documents_count == 3
    assert usage.storage_bytes == 500


def test_delete_with_storage_failure_returns_warning(client, user, store, storage):
    document = store.add_document(user_id=user.id)
    storage.fail_remove = True

    response = client.delete(f"/api/documents?id={document.id}", headers=user.headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["warning"] == STORAGE_CLEANUP_WARNING
    assert document.id not in store.documents


def test_delete_failure_keeps_document_and_usage(client, user, store):
    document = store.add_document(user_id=user.id)
    start, end = current_period()
    store.set_usage(user.organization_id, start, end, documents_count=1, storage_bytes=1024)
    store.fail_document_delete = True

    response = client.delete(f"/api/documents?id={document.id}", headers=user.headers)

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "DATABASE_ERROR"
    assert document.id in store.documents
    assert store.usage[(user.organization_id, start)].documents_count == 1


def test_delete_of_another_users_document_is_not_found(client, user, other_user, store):
    document = store.add_document(user_id=user.id)

    response = client.delete(f"/api/documents?id={document.id}", headers=other_user.headers)

    assert response.status_code == 404
    assert document.id in store.documents


def test_usage_summary_and_sync(client, user, store):
    store.add_document(user_id=user.id, file_size=2048)

    summary = client.get("/api/usage", headers=user.headers)
    assert summary.status_code == 200
    assert summary.json()["planName"] == "FREE"
    assert summary.json()["documents"]["current"] == 0

    synced = client.post("/api/usage/sync", headers=user.headers)
    assert synced.status_code == 200
    assert synced.json()["success"] is True
    assert synced.json()["usage"]["documents"] == 1
    assert synced.json()["usage"]["storage"] == 2048


def test_failed_usage_decrement_does_not_block_delete(client, user, store, storage, monkeypatch):
    document = store.add_document(user_id=user.id, file_size=4096)
    storage.objects[document.file_path] = (b"x", "application/pdf")
    start, end = current_period()
    store.set_usage(user.organization_id, start, end, documents_count=1, storage_bytes=4096)

    async def broken_set_counter(db, *, record, column, value):  # noqa: ARG001
        raise RuntimeError("connection lost")

    monkeypatch.setattr(crud_usage, "set_counter", broken_set_counter)

    response = client.delete(f"/api/documents?id={document.id}", headers=user.headers)

    assert response.status_code == 200
    assert document.id not in store.documents
    assert storage.objects == {}
    assert store.usage[(user.organization_id, start)].documents_count == 1
