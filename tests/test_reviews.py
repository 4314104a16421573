import pytest


@pytest.fixture
def order_id(client, customer, catalog):
    resp = client.post(
        "/api/orders/mine",
        json={"items": [{"productId": catalog["chair_id"], "quantity": 2, "value": 200}]},
        headers=customer["headers"],
    )
    assert resp.status_code == 201
    return resp.json()["order"]["id"]


def test_one_review_per_user(client, customer, order_id):
    resp = client.post(
        f"/api/orders/{order_id}/reviews", json={"rating": 5, "comment": "  Excelente trabajo "}, headers=customer["headers"]
    )
    assert resp.status_code == 201
    review = resp.json()["review"]
    assert review["rating"] == 5
    assert review["comment"] == "Excelente trabajo"

    resp = client.post(f"/api/orders/{order_id}/reviews", json={"rating": 3}, headers=customer["headers"])
    assert resp.status_code == 409

    reviews = client.get(f"/api/orders/{order_id}/reviews", headers=customer["headers"]).json()["reviews"]
    assert len(reviews) == 1
    assert reviews[0]["userId"] == customer["id"]


@pytest.mark.parametrize("rating", [0, 6, 4.5, -1])
def test_rating_must_be_whole_number_between_1_and_5(client, customer, order_id, rating):
    resp = client.post(f"/api/orders/{order_id}/reviews", json={"rating": rating}, headers=customer["headers"])
    assert resp.status_code == 400


def test_other_customers_cannot_review(client, other_customer, order_id):
    resp = client.post(f"/api/orders/{order_id}/reviews", json={"rating": 4}, headers=other_customer["headers"])
    assert resp.status_code == 403


def test_unknown_order(client, customer):
    assert client.post("/api/orders/999/reviews", json={"rating": 4}, headers=customer["headers"]).status_code == 404


def test_requires_session(client, order_id):
    assert client.post(f"/api/orders/{order_id}/reviews", json={"rating": 4}).status_code == 401
