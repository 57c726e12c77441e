from fastapi.testclient import TestClient

from app.main import app


def test_app_starts():
    with TestClient(app) as client:
        response = client.get("/health")
        assert response.status_code == 200


def test_health_endpoint():
    with TestClient(app) as client:
        response = client.get("/health")
        data = response.json()
        assert response.status_code == 200
        assert data["status"] == "healthy"
        assert "timestamp" in data


def test_request_id_is_echoed():
    with TestClient(app) as client:
        response = client.get("/health", headers={"x-request-id": "req-123"})
        assert response.headers["x-request-id"] == "req-123"

        generated = client.get("/health")
        assert generated.headers.get("x-request-id")


def test_documents_require_auth():
    with TestClient(app) as client:
        response = client.get("/api/documents")
        data = response.json()
        assert response.status_code == 401
        assert data["error"]["code"] == "UNAUTHORIZED"
        assert data["error"]["message"] == "Unauthorized - please log in"


def test_unknown_route_uses_error_envelope():
    with TestClient(app) as client:
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


def test_openapi_documents_error_envelope():
    with TestClient(app) as client:
        schema = client.get("/openapi.json").json()
        assert "/api/upload" in schema["paths"]
        assert "/api/webhooks/stripe" in schema["paths"]
        assert "ErrorResponse" in schema["components"]["schemas"]
