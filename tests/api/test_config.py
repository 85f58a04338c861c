def test_config(client):
    response = client.get("/config")
    assert response.status_code == 200
    data = response.json()
    assert data["ai_batch_size"] == 100
    assert "rag_index_map" in data
    assert "langsmith_api_key" not in data


def test_config_features_without_models(client):
    response = client.get("/config/features")
    assert response.status_code == 200
    assert response.json() == {
        "correction": False,
        "embeddings": False,
        "rag": False,
        "tracing": False,
    }
