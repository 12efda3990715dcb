"""Integration tests for API endpoints"""

import pytest
from fastapi.testclient import TestClient


def _create_user(client: TestClient, name: str) -> str:
    response = client.post("/v1/users", json={"name": name})
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def user_ids(client: TestClient) -> dict:
    return {key: _create_user(client, name) for key, name in (("A", "Alice"), ("B", "Bob"), ("C", "Carol"))}


def _create_pending_bill(client: TestClient, created_by: str, shares: list, total: str, currency: str = "CNY") -> dict:
    response = client.post(
        "/v1/bills",
        json={
            "title": "Expense",
            "total_amount": total,
            "currency": currency,
            "created_by": created_by,
            "status": "pending",
            "shares": shares,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_health_endpoint(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "splitledger_merge_total" in response.text


def test_request_id_header(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_users_roundtrip(client: TestClient, user_ids: dict):
    response = client.get("/v1/users")
    assert response.status_code == 200
    assert {u["name"] for u in response.json()} == {"Alice", "Bob", "Carol"}


def test_blank_user_name_rejected(client: TestClient):
    assert client.post("/v1/users", json={"name": "   "}).status_code == 422


def test_create_bill_even_split(client: TestClient, user_ids: dict):
    a, b, c = user_ids["A"], user_ids["B"], user_ids["C"]
    response = client.post(
        "/v1/bills",
        json={
            "title": "Taxi",
            "total_amount": "3.01",
            "currency": "CNY",
            "created_by": a,
            "shares": [{"user_id": a}, {"user_id": b}, {"user_id": c}],
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["total_amount_minor"] == 301
    assert data["total_amount"] == "3.01"
    assert data["status"] == "unpaid"
    assert [(s["user_id"], s["amount_minor"], s["paid"]) for s in data["shares"]] == [
        (a, 101, True),
        (b, 100, False),
        (c, 100, False),
    ]


def test_create_bill_inconsistent_shares(client: TestClient, user_ids: dict):
    a, b = user_ids["A"], user_ids["B"]
    response = client.post(
        "/v1/bills",
        json={
            "title": "Lunch",
            "total_amount": "10.00",
            "created_by": a,
            "shares": [{"user_id": a, "amount": "4.00"}, {"user_id": b, "amount": "5.00"}],
        },
    )
    assert response.status_code == 422


def test_bill_status_flow(client: TestClient, user_ids: dict):
    a, b = user_ids["A"], user_ids["B"]
    created = client.post(
        "/v1/bills",
        json={"title": "Tea", "total_amount": "1500", "currency": "JPY", "created_by": a,
              "shares": [{"user_id": b, "amount": "1500"}]},
    ).json()

    activated = client.post(f"/v1/bills/{created['id']}/status", json={"status": "pending"})
    assert activated.status_code == 200
    assert activated.json()["status"] == "pending"

    paid = client.post(f"/v1/bills/{created['id']}/shares/{b}/paid")
    assert paid.status_code == 200
    assert paid.json()["shares"][0]["paid"] is True

    back = client.post(f"/v1/bills/{created['id']}/status", json={"status": "unpaid"})
    assert back.status_code == 409


def test_get_and_delete_bill(client: TestClient, user_ids: dict):
    bill = _create_pending_bill(client, user_ids["A"], [{"user_id": user_ids["B"], "amount": "1.00"}], "1.00")

    assert client.get(f"/v1/bills/{bill['id']}").status_code == 200
    assert client.delete(f"/v1/bills/{bill['id']}").status_code == 204
    assert client.get(f"/v1/bills/{bill['id']}").status_code == 404


def test_list_bills_filters(client: TestClient, user_ids: dict):
    a, b = user_ids["A"], user_ids["B"]
    bill = _create_pending_bill(client, a, [{"user_id": b, "amount": "2.00"}], "2.00")

    to_pay = client.get("/v1/bills", params={"user_id": b, "view": "to_pay"}).json()
    assert [x["id"] for x in to_pay] == [bill["id"]]

    unpaid = client.get("/v1/bills", params={"status": "unpaid"}).json()
    assert unpaid == []


def test_batch_status(client: TestClient, user_ids: dict):
    a, b = user_ids["A"], user_ids["B"]
    first = client.post(
        "/v1/bills",
        json={"title": "One", "total_amount": "1.00", "created_by": a, "shares": [{"user_id": b, "amount": "1.00"}]},
    ).json()

    response = client.post("/v1/bills/batch-status", json={"bill_ids": [first["id"], "missing"], "status": "pending"})

    assert response.status_code == 200
    assert [x["status"] for x in response.json()] == ["pending"]


def test_settlements_scenario_b(client: TestClient, user_ids: dict):
    a, b = user_ids["A"], user_ids["B"]
    _create_pending_bill(client, a, [{"user_id": b, "amount": "0.50"}], "0.50")
    _create_pending_bill(client, b, [{"user_id": a, "amount": "0.80"}], "0.80")

    response = client.get("/v1/settlements")

    assert response.status_code == 200
    assert response.json()["settlements"] == [
        {"from_user": a, "to_user": b, "amount_minor": 30, "amount": "0.30", "currency": "CNY"}
    ]


def test_merge_endpoint_scenario_c(client: TestClient, user_ids: dict):
    a, b, c = user_ids["A"], user_ids["B"], user_ids["C"]
    originals = [
        _create_pending_bill(client, a, [{"user_id": b, "amount": "1.00"}], "1.00"),
        _create_pending_bill(client, a, [{"user_id": c, "amount": "0.50"}], "0.50"),
        _create_pending_bill(client, a, [{"user_id": b, "amount": "0.25"}], "0.25"),
    ]

    response = client.post("/v1/merge")

    assert response.status_code == 200
    data = response.json()
    assert data["merged_bill_count"] == 1
    merged = data["merged"]["CNY"][0]
    assert merged["created_by"] == a
    assert [(s["user_id"], s["amount_minor"]) for s in merged["shares"]] == [(b, 125), (c, 50)]
    for original in originals:
        assert client.get(f"/v1/bills/{original['id']}").json()["status"] == "merged"

    again = client.post("/v1/merge").json()
    assert again["merged_bill_count"] == 0


def test_create_bill_total_too_large_is_rejected(client: TestClient, user_ids: dict):
    a, b = user_ids["A"], user_ids["B"]
    response = client.post(
        "/v1/bills",
        json={
            "title": "Yacht",
            "total_amount": "100000000000000000000",
            "created_by": a,
            "shares": [{"user_id": a}, {"user_id": b}],
        },
    )
    assert response.status_code == 422


def test_update_bill(client: TestClient, user_ids: dict):
    a, b, c = user_ids["A"], user_ids["B"], user_ids["C"]
    bill = _create_pending_bill(client, a, [{"user_id": b, "amount": "3.00"}], "3.00")

    response = client.put(
        f"/v1/bills/{bill['id']}",
        json={
            "title": "Groceries",
            "total_amount": "4.50",
            "shares": [{"user_id": b, "amount": "3.00"}, {"user_id": c, "amount": "1.50"}],
            "expected_version": bill["version"],
        },
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["title"] == "Groceries"
    assert data["total_amount_minor"] == 450
    assert [(s["user_id"], s["amount_minor"]) for s in data["shares"]] == [(b, 300), (c, 150)]
    assert data["version"] == bill["version"] + 1

    stale = client.put(f"/v1/bills/{bill['id']}", json={"title": "Again", "expected_version": bill["version"]})
    assert stale.status_code == 409


def test_update_bill_errors(client: TestClient, user_ids: dict):
    a, b = user_ids["A"], user_ids["B"]
    first = _create_pending_bill(client, a, [{"user_id": b, "amount": "1.00"}], "1.00")
    _create_pending_bill(client, a, [{"user_id": b, "amount": "2.00"}], "2.00")

    assert client.put("/v1/bills/missing", json={"title": "x"}).status_code == 404
    assert client.put(f"/v1/bills/{first['id']}", json={"total_amount": "5.00"}).status_code == 422

    client.post("/v1/merge")
    merged = client.put(f"/v1/bills/{first['id']}", json={"title": "Too late"})
    assert merged.status_code == 409
    assert client.get(f"/v1/bills/{first['id']}").json()["title"] == "Expense"


def test_batch_delete(client: TestClient, user_ids: dict):
    a, b = user_ids["A"], user_ids["B"]
    first = _create_pending_bill(client, a, [{"user_id": b, "amount": "1.00"}], "1.00")
    second = _create_pending_bill(client, a, [{"user_id": b, "amount": "2.00"}], "2.00")

    response = client.post("/v1/bills/batch-delete", json={"bill_ids": [first["id"], "missing", second["id"]]})

    assert response.status_code == 200
    assert response.json() == {"deleted": [first["id"], second["id"]]}
    assert client.get("/v1/bills").json() == []


def test_list_bills_by_currency(client: TestClient, user_ids: dict):
    a, b = user_ids["A"], user_ids["B"]
    _create_pending_bill(client, a, [{"user_id": b, "amount": "1.00"}], "1.00")
    yen = _create_pending_bill(client, a, [{"user_id": b, "amount": "500"}], "500", currency="JPY")

    response = client.get("/v1/bills", params={"currency": "JPY"})

    assert [x["id"] for x in response.json()] == [yen["id"]]
