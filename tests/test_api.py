"""End-to-end tests for the HTTP API."""
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from sarms_core.api.main import create_app
from sarms_core.store import InMemoryRequestStore

ADMIN = {"X-User-Email": "admin@company.com", "X-User-Role": "admin"}
PM = {"X-User-Email": "pm@company.com", "X-User-Role": "project_manager"}
CUSTOMER = {"X-User-Email": "dana@company.com", "X-User-Role": "customer"}
OTHER_CUSTOMER = {"X-User-Email": "lee@company.com", "X-User-Role": "customer"}

IMPACT = {
    "is_regulatory_requirement": True,
    "regulatory_explanation": "SOX control",
    "financial_impact_usd": 150000,
    "customer_impact": "both",
    "operational_urgency": True,
    "existing_systems": "SAP",
}

REQUEST_BODY = {
    "department_name": "Finance",
    "cost_center": "CC-1001",
    "contact_person": {"name": "Dana Reyes", "email": "dana@company.com"},
    "requested_solution_name": "Invoice Matching Bot",
    "impact_analysis": IMPACT,
    "priority": "medium",
}


@pytest.fixture
def client():
    return TestClient(create_app(store=InMemoryRequestStore()))


@pytest.fixture
def created(client):
    response = client.post("/api/v1/requests/", json=REQUEST_BODY, headers=CUSTOMER)
    assert response.status_code == 201
    return response.json()


def set_status(client, request_id, headers, **body):
    return client.put(f"/api/v1/requests/{request_id}/status", json=body, headers=headers)


class TestServiceEndpoints:

    def test_root_and_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}
        root = client.get("/").json()
        assert root["name"] == "SARMS Core API"
        assert root["store"] == "InMemoryRequestStore"


class TestPriorityEndpoint:
    """Test POST /priority/classify."""

    def test_high(self, client):
        response = client.post("/api/v1/priority/classify", json=IMPACT)
        assert response.status_code == 200
        body = response.json()
        assert body["priority"] == "high"
        assert body["missing_criteria"] == []

    def test_low_lists_missing(self, client):
        impact = {**IMPACT, "is_regulatory_requirement": False, "financial_impact_usd": 0,
                  "customer_impact": "internal", "operational_urgency": False}
        body = client.post("/api/v1/priority/classify", json=impact).json()
        assert body["priority"] == "low"
        assert len(body["missing_criteria"]) == 4
        assert body["explanation"].startswith("Low priority")

    def test_negative_amount_rejected(self, client):
        response = client.post("/api/v1/priority/classify", json={**IMPACT, "financial_impact_usd": -5})
        assert response.status_code == 422


class TestRequestEndpoints:
    """Test request CRUD endpoints."""

    def test_create(self, created):
        assert created["status"] == "new"
        assert created["calculated_priority"] == "high"
        assert created["priority"] == "medium"
        assert created["submitted_by"] == "dana@company.com"
        assert created["tracking_number"].startswith("REQ-")
        assert created["version"] == 1

    def test_missing_identity_headers(self, client):
        response = client.post("/api/v1/requests/", json=REQUEST_BODY)
        assert response.status_code == 422

    def test_unknown_role_header(self, client):
        headers = {"X-User-Email": "x@company.com", "X-User-Role": "superuser"}
        assert client.get("/api/v1/requests/", headers=headers).status_code == 422

    def test_get(self, client, created):
        response = client.get(f"/api/v1/requests/{created['id']}", headers=PM)
        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    def test_get_not_found(self, client):
        assert client.get(f"/api/v1/requests/{uuid4()}", headers=ADMIN).status_code == 404

    def test_customer_cannot_view_others(self, client, created):
        response = client.get(f"/api/v1/requests/{created['id']}", headers=OTHER_CUSTOMER)
        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "permission_denied"

    def test_list_scoped_for_customers(self, client, created):
        client.post("/api/v1/requests/", json=REQUEST_BODY, headers=OTHER_CUSTOMER)

        staff = client.get("/api/v1/requests/", headers=ADMIN).json()
        assert staff["total"] == 2

        mine = client.get("/api/v1/requests/", headers=CUSTOMER).json()
        assert mine["total"] == 1
        assert mine["items"][0]["id"] == created["id"]

        spoofed = client.get(
            "/api/v1/requests/", params={"submitted_by": "lee@company.com"}, headers=CUSTOMER
        ).json()
        assert [r["id"] for r in spoofed["items"]] == [created["id"]]

    def test_list_status_filter_and_paging(self, client, created):
        body = client.get(
            "/api/v1/requests/", params={"status": "new", "page_size": 1}, headers=ADMIN
        ).json()
        assert body["total"] == 1
        assert body["page_size"] == 1
        assert body["total_pages"] == 1

        body = client.get("/api/v1/requests/", params={"status": "approved"}, headers=ADMIN).json()
        assert body["total"] == 0
        assert body["total_pages"] == 0

    def test_list_page_size_default_and_cap(self, client, created):
        body = client.get("/api/v1/requests/", headers=ADMIN).json()
        assert body["page_size"] == 50
        assert body["total_pages"] == 1

        body = client.get("/api/v1/requests/", params={"page_size": 500}, headers=ADMIN).json()
        assert body["page_size"] == 100
        assert body["total"] == 1

    def test_update_impact_analysis(self, client, created):
        impact = {**IMPACT, "financial_impact_usd": 60000}
        response = client.put(
            f"/api/v1/requests/{created['id']}/impact-analysis", json=impact, headers=CUSTOMER
        )
        assert response.status_code == 200
        assert response.json()["calculated_priority"] == "medium"

        response = client.put(
            f"/api/v1/requests/{created['id']}/impact-analysis", json=impact, headers=PM
        )
        assert response.status_code == 403


class TestStatusWorkflowEndpoints:
    """Test allowed transitions, status changes and assignment."""

    def test_allowed_transitions_by_role(self, client, created):
        url = f"/api/v1/requests/{created['id']}/allowed-transitions"

        admin = client.get(url, headers=ADMIN).json()
        assert admin["allowed_transitions"] == ["under_review"]
        assert admin["requires_assignment"] is True

        assert client.get(url, headers=PM).json()["allowed_transitions"] == []
        assert client.get(url, headers=CUSTOMER).json()["allowed_transitions"] == []

    def test_allowed_transitions_under_review(self, client, created):
        client.put(f"/api/v1/requests/{created['id']}/assign",
                   json={"project_manager_email": "pm@company.com"}, headers=ADMIN)
        body = client.get(f"/api/v1/requests/{created['id']}/allowed-transitions", headers=PM).json()
        assert body["current_status"] == "under_review"
        assert body["allowed_transitions"] == [
            "request_for_discussion", "on_hold", "approved", "rejected"
        ]
        assert set(body["requires_remark"]) == {"rejected", "on_hold"}
        assert body["requires_assignment"] is False

    def test_missing_assignment(self, client, created):
        response = set_status(client, created["id"], ADMIN, status="under_review")
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "missing_assignment"
        assert detail["current_status"] == "new"
        assert detail["requested_status"] == "under_review"

    def test_review_then_reject(self, client, created):
        response = set_status(client, created["id"], ADMIN, status="under_review",
                              assigned_to="pm@company.com")
        assert response.status_code == 200
        assert response.json()["assigned_to"] == "pm@company.com"

        response = set_status(client, created["id"], PM, status="rejected", remark="")
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "missing_required_remark"

        response = set_status(client, created["id"], PM, status="rejected", remark="budget cut")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "rejected"
        assert body["rejection_remark"] == "budget cut"
        assert body["status_history"][-1]["from_status"] == "under_review"
        assert body["status_history"][-1]["to_status"] == "rejected"
        assert body["status_history"][-1]["remark"] == "budget cut"
        assert body["status_history"][-1]["changed_by"] == "pm@company.com"

        response = set_status(client, created["id"], ADMIN, status="approved")
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "illegal_transition"

    def test_status_change_hidden_from_other_customers(self, client, created):
        response = set_status(client, created["id"], OTHER_CUSTOMER, status="approved")
        assert response.status_code == 403
        detail = response.json()["detail"]
        assert detail["error"] == "permission_denied"
        assert "current_status" not in detail
        assert "allowed_transitions" not in detail

    def test_customer_cannot_change_status(self, client, created):
        response = set_status(client, created["id"], CUSTOMER, status="under_review",
                              assigned_to="pm@company.com")
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "illegal_transition"

    def test_status_not_found(self, client):
        response = set_status(client, uuid4(), ADMIN, status="approved")
        assert response.status_code == 404

    def test_assign(self, client, created):
        url = f"/api/v1/requests/{created['id']}/assign"

        response = client.put(url, json={"project_manager_email": "pm@company.com"}, headers=PM)
        assert response.status_code == 403
        assert response.json()["detail"]["required_role"] == "admin"

        response = client.put(url, json={"project_manager_email": "pm@company.com"}, headers=ADMIN)
        assert response.status_code == 200
        assert response.json()["status"] == "under_review"

        response = client.put(url, json={"project_manager_email": "pm2@company.com"}, headers=ADMIN)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "under_review"
        assert body["assigned_to"] == "pm2@company.com"

    def test_assign_terminal_request(self, client, created):
        url = f"/api/v1/requests/{created['id']}/assign"
        client.put(url, json={"project_manager_email": "pm@company.com"}, headers=ADMIN)
        set_status(client, created["id"], PM, status="approved")

        response = client.put(url, json={"project_manager_email": "pm2@company.com"}, headers=ADMIN)
        assert response.status_code == 400

    def test_assign_blank_email(self, client, created):
        response = client.put(f"/api/v1/requests/{created['id']}/assign",
                              json={"project_manager_email": ""}, headers=ADMIN)
        assert response.status_code == 422


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
