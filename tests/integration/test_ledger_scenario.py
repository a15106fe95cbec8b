from fastapi.testclient import TestClient

from tests.helpers.asserts import api_call, assert_error
from tests.helpers.ledger import auth_headers


def _record(client, headers, user_id, amount, transaction_type):
    response = client.post(
        "/transactions",
        headers=headers,
        json={"user_id": user_id, "amount": amount, "transaction_type": transaction_type, "status": "completed"},
    )
    return response

def _balance(client, headers, user_id):
    return api_call(client, "GET", f"/wallets/{user_id}/balance", headers=headers).json()["data"]["amount"]


def test_deposit_then_overdrawn_withdrawal(client: TestClient, user_factory, admin_headers):
    user = user_factory(user_id=7, balance="0")
    assert user.id == 7

    deposit = _record(client, admin_headers, 7, "100.00", "deposit")
    assert deposit.status_code == 201
    assert deposit.json()["data"]["wallet_effect"]["new_amount"] == 100.0
    assert _balance(client, admin_headers, 7) == 100.0

    body = assert_error(_record(client, admin_headers, 7, "150.00", "withdraw"), 409, "INSUFFICIENT_FUNDS")
    assert body["error"]["message"]
    assert _balance(client, admin_headers, 7) == 100.0

    # the rejected withdrawal left no transaction behind
    history = api_call(client, "GET", "/transactions/me", headers=auth_headers(user)).json()["data"]
    assert history["total"] == 1
    assert history["items"][0]["transaction_type"] == "deposit"

    ledger = api_call(client, "GET", "/wallets/7/ledger", headers=auth_headers(user)).json()["data"]
    assert [entry["balance_after"] for entry in ledger] == [100.0]


def test_gateway_flow_settles_once(client: TestClient, user_factory, admin_headers):
    user = user_factory(balance="5.00")
    headers = auth_headers(user)

    pending = api_call(
        client, "POST", "/transactions", headers=headers,
        json={"amount": "20.00", "transaction_type": "Recharge", "payment_method": "card"},
    ).json()["data"]["transaction"]
    assert _balance(client, headers, user.id) == 5.0

    path = f"/transactions/{pending['id']}/status"
    api_call(client, "PATCH", path, headers=admin_headers, json={"status": "completed"})
    api_call(client, "PATCH", path, headers=admin_headers, json={"status": "completed"})
    assert_error(client.patch(path, headers=admin_headers, json={"status": "failed"}), 409, "INVALID_TRANSITION")

    assert _balance(client, headers, user.id) == 25.0
    fetched = api_call(client, "GET", f"/transactions/{pending['id']}", headers=headers).json()["data"]
    assert fetched["status"] == "completed"
    assert fetched["effect_applied"] is True
