from __future__ import annotations

import pytest

from api.deps import get_vector_service
from api.main import app
from retrieval.embeddings import EmbeddingRetryPolicy
from retrieval.index import VectorIndexService


@pytest.fixture
def vectors(store, fake_embeddings):
    service = VectorIndexService(store, fake_embeddings(), policy=EmbeddingRetryPolicy(base_delay=0))
    app.dependency_overrides[get_vector_service] = lambda: service
    return service


def _build(client) -> str:
    response = client.post(
        "/rag/indexes",
        json={
            "name": "cardio",
            "chunks": [
                {"text": "La dyspnée est le maître symptôme.", "page": 1},
                {"text": "Les diurétiques soulagent la congestion.", "page": 2},
            ],
        },
    )
    assert response.status_code == 200
    assert response.json()["chunk_count"] == 2
    return response.json()["index_id"]


def test_rag_requires_embedding_model(client):
    response = client.post("/rag/search", json={"query": "dyspnée", "index_id": "rag_x"})
    assert response.status_code == 400
    assert "EMBEDDING_MODEL" in response.json()["detail"]


def test_build_list_search_delete(client, vectors):
    index_id = _build(client)

    listed = client.get("/rag/indexes").json()
    assert [(item["index_id"], item["name"], item["chunk_count"]) for item in listed] == [
        (index_id, "cardio", 2)
    ]

    response = client.post(
        "/rag/search", json={"query": "dyspnée symptôme", "index_id": index_id, "k": 1}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["index_id"] == index_id
    assert len(body["hits"]) == 1
    assert body["hits"][0]["page"] in (1, 2)

    assert client.delete(f"/rag/indexes/{index_id}").json() == {"ok": True}
    assert client.delete(f"/rag/indexes/{index_id}").status_code == 404
    assert client.get("/rag/indexes").json() == []


def test_search_without_matching_index(client, vectors):
    response = client.post("/rag/search", json={"query": "dyspnée", "matiere": "Cardiologie"})
    assert response.status_code == 404


def test_search_request_validation(client, vectors):
    response = client.post(
        "/rag/search", json={"query": "dyspnée", "index_id": "rag_1", "matiere": "Cardiologie"}
    )
    assert response.status_code == 422
    assert client.post("/rag/indexes", json={"chunks": []}).status_code == 422


def test_pdf_upload_rejects_other_files(client, vectors):
    response = client.post(
        "/rag/indexes/pdf", files={"file": ("cours.docx", b"data", "application/octet-stream")}
    )
    assert response.status_code == 400
