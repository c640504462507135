"""Integration tests for API endpoints"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from fastapi.testclient import TestClient


@pytest.fixture
def contact_id(client: TestClient) -> str:
    response = client.post("/v1/contacts", json={"name": "Jeanne Martin", "email": "jeanne@example.com"})
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def converted(client: TestClient, contact_id: str) -> dict:
    """1000 sold in 3x through Mollie with 200 received up front"""
    response = client.post(
        f"/v1/contacts/{contact_id}/convert",
        json={
            "deal_amount": "1000",
            "payment_method": "3x",
            "billing_platform": "Mollie",
            "amount_paid": "200",
            "closed_by": "Noé",
        },
    )
    assert response.status_code == 201
    return response.json()


def amounts(installments: list[dict]) -> list[Decimal]:
    return [Decimal(inst["amount"]) for inst in installments]


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "X-Request-ID" in response.headers


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "crm_schedule_generated_total" in response.text


def test_contacts_create_search_and_status(client: TestClient, contact_id: str):
    client.post("/v1/contacts", json={"name": "Paul Durand"})

    response = client.get("/v1/contacts", params={"search": "jeanne"})
    assert response.status_code == 200
    assert [c["id"] for c in response.json()] == [contact_id]

    response = client.patch(f"/v1/contacts/{contact_id}/status", json={"status": "Call planifié"})
    assert response.status_code == 200
    assert response.json()["status"] == "Call planifié"
    assert response.json()["pipeline_status"] == "prospect"


def test_contact_status_rejects_unknown_value(client: TestClient, contact_id: str):
    response = client.patch(f"/v1/contacts/{contact_id}/status", json={"status": "Unknown"})
    assert response.status_code == 422


def test_delete_contact(client: TestClient, contact_id: str):
    assert client.delete(f"/v1/contacts/{contact_id}").status_code == 204
    assert client.get(f"/v1/contacts/{contact_id}/pipeline").status_code == 404


def test_update_contact_details(client: TestClient, contact_id: str):
    response = client.patch(
        f"/v1/contacts/{contact_id}",
        json={"phone": "+33 6 12 34 56 78", "notes": "Prefers mornings", "email": None, "name": None},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Jeanne Martin"
    assert data["phone"] == "+33 6 12 34 56 78"
    assert data["notes"] == "Prefers mornings"
    assert data["email"] is None

    response = client.patch(f"/v1/contacts/{contact_id}", json={"name": "Jeanne Dupont", "status": "Attente retour"})
    assert response.json()["name"] == "Jeanne Dupont"
    assert response.json()["status"] == "Attente retour"
    assert response.json()["phone"] == "+33 6 12 34 56 78"


def test_update_contact_not_found(client: TestClient):
    response = client.patch("/v1/contacts/00000000-0000-0000-0000-000000000000", json={"name": "Nobody"})
    assert response.status_code == 404


def test_pipeline_history(client: TestClient, contact_id: str):
    response = client.post(
        f"/v1/contacts/{contact_id}/pipeline",
        json={"status": "r1_planifie", "r1_date": "2025-02-03", "r2_date": "2025-02-10", "notes": "Booked"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["pipeline_status"] == "r1_planifie"
    assert data["is_terminal"] is False
    assert data["step_index"] == 1
    assert len(data["history"]) == 1
    assert data["history"][0]["label"] == "R1 Planifié"
    assert data["history"][0]["r1_date"] == "2025-02-03"
    assert data["history"][0]["r2_date"] is None

    response = client.post(f"/v1/contacts/{contact_id}/pipeline", json={"status": "close_perdu"})
    assert response.json()["is_terminal"] is True
    assert response.json()["step_index"] == -1
    assert len(client.get(f"/v1/contacts/{contact_id}/pipeline").json()["history"]) == 2


def test_pipeline_rejects_same_status(client: TestClient, contact_id: str):
    response = client.post(f"/v1/contacts/{contact_id}/pipeline", json={"status": "prospect"})
    assert response.status_code == 422


def test_convert_generates_schedule(client: TestClient, contact_id: str, converted: dict):
    """POST /v1/contacts/{id}/convert creates the client and its schedule"""
    today = date.today()

    assert converted["contact_id"] == contact_id
    assert converted["contact_name"] == "Jeanne Martin"
    assert Decimal(converted["amount_paid"]) == Decimal("200")
    assert Decimal(converted["amount_pending"]) == Decimal("800")
    assert amounts(converted["installments"]) == [Decimal("200"), Decimal("400"), Decimal("400")]
    assert [inst["status"] for inst in converted["installments"]] == ["Payé", "En attente", "En attente"]
    assert [inst["due_date"] for inst in converted["installments"]] == [
        today.isoformat(),
        (today + timedelta(days=30)).isoformat(),
        (today + timedelta(days=60)).isoformat(),
    ]
    assert converted["next_due_date"] == (today + timedelta(days=30)).isoformat()

    contacts = client.get("/v1/contacts").json()
    assert contacts[0]["status"] == "Closé"


def test_convert_defaults_to_one_share_paid(client: TestClient, contact_id: str):
    response = client.post(
        f"/v1/contacts/{contact_id}/convert",
        json={"deal_amount": "900", "payment_method": "3x"},
    )

    assert response.status_code == 201
    assert amounts(response.json()["installments"]) == [Decimal("300"), Decimal("300"), Decimal("300")]
    distribution = response.json()["commission_distribution"]
    assert {member: Decimal(pct) for member, pct in distribution.items()} == {
        "Noé": Decimal("33.33"),
        "Baptiste": Decimal("33.33"),
        "Imrane": Decimal("33.34"),
    }


def test_convert_rejects_overpayment(client: TestClient, contact_id: str):
    response = client.post(
        f"/v1/contacts/{contact_id}/convert",
        json={"deal_amount": "500", "payment_method": "2x", "amount_paid": "600"},
    )

    assert response.status_code == 422
    assert client.get("/v1/clients").json()["clients"] == []


def test_convert_rejects_bad_distribution(client: TestClient, contact_id: str):
    response = client.post(
        f"/v1/contacts/{contact_id}/convert",
        json={"deal_amount": "500", "commission_distribution": {"Noé": 60, "Baptiste": 30}},
    )
    assert response.status_code == 422


def test_convert_rejects_unknown_closer(client: TestClient, contact_id: str):
    response = client.post(
        f"/v1/contacts/{contact_id}/convert",
        json={"deal_amount": "500", "closed_by": "Alice"},
    )
    assert response.status_code == 422


def test_convert_unknown_contact(client: TestClient):
    response = client.post(
        "/v1/contacts/00000000-0000-0000-0000-000000000000/convert",
        json={"deal_amount": "500"},
    )
    assert response.status_code == 404


def test_clients_list_with_portfolio(client: TestClient, converted: dict):
    response = client.get("/v1/clients", params={"search": "Jeanne"})

    assert response.status_code == 200
    data = response.json()
    assert [c["id"] for c in data["clients"]] == [converted["id"]]
    assert Decimal(data["portfolio"]["total_deals"]) == Decimal("1000")
    assert Decimal(data["portfolio"]["total_paid"]) == Decimal("200")
    assert Decimal(data["portfolio"]["total_outstanding"]) == Decimal("800")


def test_installment_status_updates_amount_paid(client: TestClient, converted: dict):
    second = converted["installments"][1]

    response = client.patch(f"/v1/installments/{second['id']}/status", json={"status": "Payé"})
    assert response.status_code == 200
    assert response.json()["installment"]["status"] == "Payé"
    assert Decimal(response.json()["client_amount_paid"]) == Decimal("600")

    # Same status again changes nothing
    response = client.patch(f"/v1/installments/{second['id']}/status", json={"status": "Payé"})
    assert Decimal(response.json()["client_amount_paid"]) == Decimal("600")

    response = client.patch(f"/v1/installments/{second['id']}/status", json={"status": "En transit"})
    assert Decimal(response.json()["client_amount_paid"]) == Decimal("200")

    client_data = client.get(f"/v1/clients/{converted['id']}").json()
    assert Decimal(client_data["amount_paid"]) == Decimal("200")


def test_installment_not_found(client: TestClient):
    response = client.patch(
        "/v1/installments/00000000-0000-0000-0000-000000000000/status",
        json={"status": "Payé"},
    )
    assert response.status_code == 404


def test_dispatch_flag_set_and_toggle(client: TestClient, converted: dict):
    first = converted["installments"][0]

    response = client.put(f"/v1/installments/{first['id']}/dispatch", json={"is_dispatched": True})
    assert response.json()["is_dispatched"] is True

    response = client.put(f"/v1/installments/{first['id']}/dispatch", json={"is_dispatched": True})
    assert response.json()["is_dispatched"] is True

    response = client.put(f"/v1/installments/{first['id']}/dispatch")
    assert response.json()["is_dispatched"] is False


def test_schedule_regeneration_requires_confirmation(client: TestClient, converted: dict):
    response = client.post(f"/v1/clients/{converted['id']}/schedule")
    assert response.status_code == 409

    second = converted["installments"][1]
    client.patch(f"/v1/installments/{second['id']}/status", json={"status": "Payé"})

    response = client.post(f"/v1/clients/{converted['id']}/schedule", json={"confirm": True})
    assert response.status_code == 201
    installments = response.json()["installments"]
    # New schedule starts from the 600 now collected
    assert amounts(installments) == [Decimal("600"), Decimal("200"), Decimal("200")]
    assert not {inst["id"] for inst in installments} & {inst["id"] for inst in converted["installments"]}


def test_delete_schedule(client: TestClient, converted: dict):
    assert client.delete(f"/v1/clients/{converted['id']}/schedule").status_code == 204

    data = client.get(f"/v1/clients/{converted['id']}").json()
    assert data["installments"] == []
    assert data["next_due_date"] is None

    # Without a schedule no confirmation is needed
    response = client.post(f"/v1/clients/{converted['id']}/schedule")
    assert response.status_code == 201
    assert len(response.json()["installments"]) == 3


def test_update_client_flags_outdated_schedule(client: TestClient, converted: dict):
    response = client.patch(
        f"/v1/clients/{converted['id']}",
        json={"payment_method": "2x", "setter_commission_percentage": "10"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["payment_method"] == "2x"
    assert data["schedule_outdated"] is True
    assert Decimal(data["setter_commission_amount"]) == Decimal("100")
    assert len(data["installments"]) == 3


def test_update_client_validation(client: TestClient, converted: dict):
    url = f"/v1/clients/{converted['id']}"

    assert client.patch(url, json={"commission_distribution": {"Noé": 50}}).status_code == 422
    assert client.patch(url, json={"closed_by": "Alice"}).status_code == 422
    assert client.patch(url, json={"deal_amount": "100"}).status_code == 422

    response = client.patch(url, json={"commission_distribution": {"Noé": 50, "Baptiste": 50}})
    assert response.status_code == 200
    distribution = response.json()["commission_distribution"]
    assert {member: Decimal(pct) for member, pct in distribution.items()} == {
        "Noé": Decimal("50"),
        "Baptiste": Decimal("50"),
    }


def test_expenses_crud_and_filters(client: TestClient):
    response = client.post(
        "/v1/expenses",
        json={"name": "Ads", "amount": "120", "type": "monthly", "category": "Marketing", "paid_by": "Imrane"},
    )
    assert response.status_code == 201
    expense_id = response.json()["id"]
    assert response.json()["date"] == date.today().isoformat()

    client.post("/v1/expenses", json={"name": "Laptop", "amount": "abc"})

    data = client.get("/v1/expenses").json()
    assert data["count"] == 2
    assert Decimal(data["total"]) == Decimal("120")

    data = client.get("/v1/expenses", params={"type": "monthly"}).json()
    assert [e["id"] for e in data["expenses"]] == [expense_id]

    data = client.get("/v1/expenses", params={"search": "market"}).json()
    assert [e["id"] for e in data["expenses"]] == [expense_id]

    response = client.patch(f"/v1/expenses/{expense_id}", json={"amount": "150"})
    assert Decimal(response.json()["amount"]) == Decimal("150")

    assert client.delete(f"/v1/expenses/{expense_id}").status_code == 204
    assert client.get("/v1/expenses").json()["count"] == 1


def test_expense_rejects_unknown_payer(client: TestClient):
    response = client.post("/v1/expenses", json={"name": "Ads", "amount": "10", "paid_by": "Alice"})
    assert response.status_code == 422


def test_expense_deductions(client: TestClient):
    expense_id = client.post("/v1/expenses", json={"name": "Tools", "amount": "100"}).json()["id"]
    url = f"/v1/expenses/{expense_id}/deductions"

    client.post(url, params={"month": 1, "year": 2025})
    response = client.post(url, params={"month": 1, "year": 2025})
    assert response.status_code == 200
    assert response.json()["deduction_periods"] == [{"month": 1, "year": 2025}]

    response = client.delete(url, params={"month": 1, "year": 2025})
    assert response.json()["deduction_periods"] == []

    assert client.post(url, params={"month": 13, "year": 2025}).status_code == 422


def test_billing_overview(client: TestClient, converted: dict):
    client.post("/v1/expenses", json={"name": "Tools", "amount": "100", "is_deducted": True})

    response = client.get("/v1/billing/overview")

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["total_signed"]) == Decimal("1000")
    assert Decimal(data["total_collected"]) == Decimal("200")
    assert Decimal(data["total_expenses"]) == Decimal("100")
    assert Decimal(data["total_deducted"]) == Decimal("100")
    assert Decimal(data["net_benefit"]) == Decimal("100")


def test_billing_dispatch_pending(client: TestClient, converted: dict):
    second = converted["installments"][1]
    client.patch(f"/v1/installments/{second['id']}/status", json={"status": "Payé"})
    expense_id = client.post(
        "/v1/expenses", json={"name": "Tools", "amount": "100", "paid_by": "Baptiste"}
    ).json()["id"]
    client.post(f"/v1/expenses/{expense_id}/deductions", params={"month": 1, "year": 2025})

    response = client.get("/v1/billing/dispatch", params={"view": "pending", "month": 1, "year": 2025})

    assert response.status_code == 200
    data = response.json()
    rows = {row["installment_id"]: row for row in data["rows"]}
    assert len(rows) == 2
    # (400 - 8) * 0.7
    assert Decimal(rows[second["id"]]["net_for_distribution"]) == Decimal("274.40")
    assert Decimal(rows[second["id"]]["platform_fee"]) == Decimal("8")

    summary = data["summary"]
    # (196 + 392 - 100) * 0.7
    assert Decimal(summary["total_net_revenue"]) == Decimal("588")
    assert Decimal(summary["total_deducted"]) == Decimal("100")
    assert Decimal(summary["total_to_share"]) == Decimal("341.60")
    payouts = {payout["member"]: payout for payout in summary["members"]}
    assert Decimal(payouts["Baptiste"]["reimbursement"]) == Decimal("100")
    assert Decimal(payouts["Noé"]["reimbursement"]) == Decimal("0")


def test_billing_dispatch_without_period_uses_flagged_expenses(client: TestClient, converted: dict):
    client.post("/v1/expenses", json={"name": "Tools", "amount": "50", "is_deducted": True})

    summary = client.get("/v1/billing/dispatch").json()["summary"]

    # (200 - 4 - 50) * 0.7
    assert Decimal(summary["total_to_share"]) == Decimal("102.20")


def test_billing_dispatch_completed_view(client: TestClient, converted: dict):
    first = converted["installments"][0]
    client.put(f"/v1/installments/{first['id']}/dispatch", json={"is_dispatched": True})

    pending = client.get("/v1/billing/dispatch", params={"view": "pending"}).json()
    assert pending["rows"] == []
    assert Decimal(pending["summary"]["total_to_share"]) == Decimal("0")

    completed = client.get("/v1/billing/dispatch", params={"view": "completed"}).json()
    assert [row["installment_id"] for row in completed["rows"]] == [first["id"]]
    assert completed["summary"] is None


def test_billing_dispatch_rejects_half_period(client: TestClient):
    response = client.get("/v1/billing/dispatch", params={"month": 1})
    assert response.status_code == 422


@pytest.fixture
def partly_paid_one_shot(client: TestClient, contact_id: str) -> dict:
    """One shot deal of 1000 with 300 already recorded, still pending"""
    response = client.post(
        f"/v1/contacts/{contact_id}/convert",
        json={"deal_amount": "1000", "payment_method": "One shot", "amount_paid": "300"},
    )
    assert response.status_code == 201
    assert [inst["status"] for inst in response.json()["installments"]] == ["En attente"]
    return response.json()


def test_status_move_outside_paid_keeps_recorded_payment(client: TestClient, partly_paid_one_shot: dict):
    only = partly_paid_one_shot["installments"][0]

    response = client.patch(f"/v1/installments/{only['id']}/status", json={"status": "En transit"})
    assert response.status_code == 200
    assert Decimal(response.json()["client_amount_paid"]) == Decimal("300")

    response = client.patch(f"/v1/installments/{only['id']}/status", json={"status": "En attente"})
    assert Decimal(response.json()["client_amount_paid"]) == Decimal("300")

    client_data = client.get(f"/v1/clients/{partly_paid_one_shot['id']}").json()
    assert Decimal(client_data["amount_paid"]) == Decimal("300")


def test_update_client_keeps_recorded_payment(client: TestClient, partly_paid_one_shot: dict):
    url = f"/v1/clients/{partly_paid_one_shot['id']}"

    response = client.patch(url, json={"billing_platform": "Revolut"})
    assert response.status_code == 200
    assert response.json()["billing_platform"] == "Revolut"
    assert Decimal(response.json()["amount_paid"]) == Decimal("300")

    response = client.patch(url, json={"amount_paid": "450"})
    assert Decimal(response.json()["amount_paid"]) == Decimal("450")

    # Regeneration starts from the stored payment
    response = client.post(f"{url}/schedule", json={"confirm": True})
    assert Decimal(response.json()["amount_paid"]) == Decimal("450")


def test_delete_client(client: TestClient, contact_id: str, converted: dict):
    installment_id = converted["installments"][1]["id"]

    assert client.delete(f"/v1/clients/{converted['id']}").status_code == 204

    assert client.get(f"/v1/clients/{converted['id']}").status_code == 404
    assert client.get("/v1/clients").json()["clients"] == []
    response = client.patch(f"/v1/installments/{installment_id}/status", json={"status": "Payé"})
    assert response.status_code == 404
    # The contact survives its client
    assert [c["id"] for c in client.get("/v1/contacts").json()] == [contact_id]


def test_delete_client_not_found(client: TestClient):
    assert client.delete("/v1/clients/00000000-0000-0000-0000-000000000000").status_code == 404
