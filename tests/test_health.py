from unittest.mock import AsyncMock, patch


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200

    payload = response.json()
    assert payload["status_code"] == 200
    assert payload["status"] == "success"
    assert payload["message"] == "Service is healthy"
    assert payload["data"] == {"status": "ok", "service": "LeadFlow", "pending_notifications": 0}


def test_root_info(client):
    response = client.get("/")
    assert response.status_code == 200
    payload = response.json()
    assert payload["app_name"] == "LeadFlow API"
    assert payload["version"] == "1.0.0"
    assert payload["docs_url"] == "/docs"
    assert payload["api_base"] == "/api/v1"


def test_vapid_public_key_is_public(client):
    response = client.get("/api/v1/notifications/vapid-public-key")

    assert response.status_code == 200
    assert "public_key" in response.json()["data"]


def test_analytics_days_are_bounded(auth_client):
    response = auth_client.get("/api/v1/analytics?days=0")

    assert response.status_code == 422


@patch("app.features.analytics.routes.analytics.AnalyticsService")
def test_analytics_passes_days(mock_service_cls, auth_client):
    mock_service = AsyncMock()
    mock_service_cls.return_value = mock_service
    mock_service.get_analytics.return_value = {"basic_metrics": {"total_leads": 0}}

    response = auth_client.get("/api/v1/analytics?days=30")

    assert response.status_code == 200
    mock_service.get_analytics.assert_awaited_once_with(1, 30)
