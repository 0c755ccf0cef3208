"""Application-level behaviour: error envelope, health check, middleware."""

from campus_cms.core.config import EnvironmentType, get_settings
from campus_cms.database.session import SessionManager
from campus_cms.services.storage import FileStorage


async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["data"]["database"] == "connected"
    assert response.json()["data"]["queries"]["query_count"] >= 1


async def test_health_check_reports_unavailable_database(client, mocker):
    mocker.patch.object(SessionManager, "healthcheck", return_value=False)

    response = await client.get("/health")

    assert response.status_code == 503
    assert response.json()["success"] is False
    assert response.json()["data"]["database"] == "unavailable"


async def test_correlation_id_is_echoed(client):
    response = await client.get("/api/partners/", headers={"X-Correlation-ID": "abc-123"})
    assert response.headers["X-Correlation-ID"] == "abc-123"


async def test_unexpected_errors_include_detail_outside_production(client, author_headers, mocker):
    mocker.patch(
        "campus_cms.api.v1.endpoints.partners.partner_stats",
        side_effect=RuntimeError("connection reset by peer")
    )

    response = await client.get("/api/partners/stats", headers=author_headers)

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "message": "Internal server error",
        "error": "connection reset by peer",
    }


async def test_unexpected_errors_are_redacted_in_production(client, author_headers, mocker, monkeypatch):
    monkeypatch.setattr(get_settings(), "ENVIRONMENT", EnvironmentType.PRODUCTION)
    mocker.patch(
        "campus_cms.api.v1.endpoints.partners.partner_stats",
        side_effect=RuntimeError("password=hunter2")
    )

    response = await client.get("/api/partners/stats", headers=author_headers)

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Internal server error"}


async def test_invalid_token_is_treated_as_anonymous(client):
    response = await client.get("/api/contacts/", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_access_token_cookie_is_accepted(client, author_headers):
    token = author_headers["Authorization"].split(" ", 1)[1]
    client.cookies.set("accessToken", token)
    response = await client.get("/api/contacts/")
    assert response.status_code == 200


async def test_malformed_json_body(client):
    response = await client.post(
        "/api/contacts/",
        content=b"{not json",
        headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_url_for_normalizes_separators():
    assert FileStorage.url_for("uploads\\media\\a.png", "http://host/") == "http://host/uploads/media/a.png"
    assert FileStorage.url_for(None, "http://host/") is None


async def test_control_characters_in_path_id_are_not_found(client, admin_headers):
    response = await client.get("/api/contacts/1%0A-abcdef12", headers=admin_headers)

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Resource not found"}
