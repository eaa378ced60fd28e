from datetime import date
from unittest.mock import AsyncMock, patch

from fastapi import HTTPException, status

from app.features.leads.models.lead import Lead


def _lead(**overrides):
    fields = dict(
        id="0190f6c2-lead",
        name="Jane Doe",
        phone_number="+15550100",
        customer_category="potential",
        lead_source="website",
        lead_status="new",
        next_followup_date=date(2025, 7, 1),
        owner_id=1,
    )
    fields.update(overrides)
    return Lead(**fields)


@patch("app.features.leads.routes.leads.LeadService")
def test_list_leads_returns_page(mock_service_cls, auth_client):
    mock_service = AsyncMock()
    mock_service_cls.return_value = mock_service
    mock_service.list_leads.return_value = {
        "data": [_lead()],
        "total": 1,
        "page": 1,
        "limit": 10,
        "total_pages": 1,
        "has_next_page": False,
        "has_previous_page": False,
    }

    response = auth_client.get("/api/v1/leads?status=new&status=hot&followup_date_filter=due_soon")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "success"
    assert payload["data"]["total"] == 1
    assert payload["data"]["data"][0]["next_followup_date"] == "2025-07-01"

    account_id, query = mock_service.list_leads.call_args.args
    assert account_id == 1
    assert [s.value for s in query.status] == ["new", "hot"]
    assert query.followup_date_filter.value == "due_soon"


@patch("app.features.leads.routes.leads.LeadService")
def test_create_lead(mock_service_cls, auth_client):
    mock_service = AsyncMock()
    mock_service_cls.return_value = mock_service
    mock_service.create_lead.return_value = _lead(name="New Prospect")

    response = auth_client.post(
        "/api/v1/leads", json={"name": "New Prospect", "phone_number": "+15550123"}
    )

    assert response.status_code == 201
    assert response.json()["data"]["name"] == "New Prospect"
    request, account_id = mock_service.create_lead.call_args.args
    assert request.lead_status.value == "new"
    assert account_id == 1


@patch("app.features.leads.routes.leads.LeadService")
def test_create_lead_rejects_invalid_name(mock_service_cls, auth_client):
    response = auth_client.post("/api/v1/leads", json={"name": "R2-D2", "phone_number": "1"})

    assert response.status_code == 422
    assert response.json()["status"] == "error"
    mock_service_cls.assert_not_called()


@patch("app.features.leads.routes.leads.LeadService")
def test_permission_errors_use_the_envelope(mock_service_cls, auth_client):
    mock_service = AsyncMock()
    mock_service_cls.return_value = mock_service
    mock_service.create_lead.side_effect = HTTPException(
        status_code=status.HTTP_403_FORBIDDEN, detail="You do not have permission to add leads"
    )

    response = auth_client.post("/api/v1/leads", json={"name": "Blocked", "phone_number": "1"})

    assert response.status_code == 403
    payload = response.json()
    assert payload["status"] == "error"
    assert payload["message"] == "You do not have permission to add leads"


@patch("app.features.leads.routes.leads.LeadService")
def test_export_returns_csv(mock_service_cls, auth_client):
    mock_service = AsyncMock()
    mock_service_cls.return_value = mock_service
    mock_service.export_csv.return_value = "ID,Name\nabc,Jane Doe"

    response = auth_client.get("/api/v1/leads/export")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    assert response.text == "ID,Name\nabc,Jane Doe"


@patch("app.features.leads.routes.leads.LeadService")
def test_import_reports_rows(mock_service_cls, auth_client):
    mock_service = AsyncMock()
    mock_service_cls.return_value = mock_service
    mock_service.import_leads.return_value = {
        "total": 2,
        "successful": 1,
        "failed": 1,
        "results": [
            {"row": 1, "success": True, "lead_id": "abc"},
            {"row": 2, "success": False, "error": "name: Field required"},
        ],
    }

    response = auth_client.post(
        "/api/v1/leads/import",
        json={"leads": [{"name": "Ok", "phone_number": "1"}, {"phone_number": "2"}]},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "Imported 1 of 2 leads"
    assert payload["data"]["results"][1]["error"] == "name: Field required"


@patch("app.features.leads.routes.leads.LeadService")
def test_delete_lead(mock_service_cls, auth_client):
    mock_service = AsyncMock()
    mock_service_cls.return_value = mock_service

    response = auth_client.delete("/api/v1/leads/abc")

    assert response.status_code == 204
    mock_service.delete_lead.assert_awaited_once_with("abc", 1)


@patch("app.features.leads.routes.leads.LeadService")
def test_cities_route_is_not_a_lead_id(mock_service_cls, auth_client):
    mock_service = AsyncMock()
    mock_service_cls.return_value = mock_service
    mock_service.get_cities.return_value = ["Mumbai", "Pune"]

    response = auth_client.get("/api/v1/leads/cities")

    assert response.json()["data"] == {"cities": ["Mumbai", "Pune"]}
    mock_service.get_lead.assert_not_called()


@patch("app.features.leads.routes.leads.NotificationFanoutService")
def test_manual_follow_up_reminder(mock_fanout_cls, auth_client):
    mock_fanout = AsyncMock()
    mock_fanout_cls.return_value = mock_fanout
    mock_fanout.send_follow_up_reminder_for_lead.return_value = {"sent": 2, "errors": 0, "skipped": 0}

    response = auth_client.post("/api/v1/leads/abc/follow-up-reminder")

    assert response.status_code == 200
    assert response.json()["data"]["sent"] == 2


def test_leads_require_authentication(client):
    response = client.get("/api/v1/leads")

    assert response.status_code in (401, 403)
    assert response.json()["status"] == "error"
