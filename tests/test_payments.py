from datetime import timedelta

import pytest

from milkcart.common.utils import now
from milkcart.config.store_config import store_settings

url_prefix = "/api/v1"


@pytest.fixture
def open_session(ac_client):
    async def _open(headers, order_ids=None, subscription_id=None):
        payload = {"order_ids": order_ids} if order_ids else {"subscription_id": subscription_id}
        return await ac_client.post(f"{url_prefix}/payments/sessions", json=payload, headers=headers)
    return _open


async def _two_orders(buyer, make_product, place_order):
    milk = await make_product(name="Cow Milk 1L", price=60, stock_qty=20)
    first = (await place_order(buyer["headers"], [(milk, 2)])).json()["data"]["order"]
    second = (await place_order(buyer["headers"], [(milk, 3)])).json()["data"]["order"]
    return first, second


async def test_session_covers_orders_and_builds_upi_link(ac_client, buyer, make_product, place_order, open_session):
    first, second = await _two_orders(buyer, make_product, place_order)

    resp = await open_session(buyer["headers"], [first["public_id"], second["public_id"]])
    assert resp.status_code == 201, resp.text

    payment = resp.json()["data"]["payment"]
    assert payment["verification_status"] == "awaiting_submission"
    assert payment["total_amount"] == first["total_amount"] + second["total_amount"]
    assert sorted(payment["order_numbers"]) == sorted([first["order_number"], second["order_number"]])
    assert payment["upi_id"] == store_settings.ADMIN_UPI_ID
    assert 0 < payment["expires_in_seconds"] <= store_settings.PAYMENT_SESSION_TTL_MINUTES * 60

    link = payment["qr_code_url"]
    assert link.startswith("upi://pay?")
    assert f"am={payment['total_amount']:.2f}" in link
    assert f"tr={payment['reference_number']}" in link


async def test_order_cannot_join_two_live_sessions(ac_client, buyer, make_product, place_order, open_session):
    first, second = await _two_orders(buyer, make_product, place_order)

    resp = await open_session(buyer["headers"], [first["public_id"]])
    assert resp.status_code == 201

    resp = await open_session(buyer["headers"], [first["public_id"], second["public_id"]])
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "DUPLICATE_SESSION"

    # the failed attempt must not leave the second order claimed
    resp = await open_session(buyer["headers"], [second["public_id"]])
    assert resp.status_code == 201, resp.text


async def test_expired_claim_can_be_taken_over(ac_client, buyer, make_product, place_order, open_session, monkeypatch):
    first, _ = await _two_orders(buyer, make_product, place_order)
    assert (await open_session(buyer["headers"], [first["public_id"]])).status_code == 201

    later = now() + timedelta(minutes=store_settings.PAYMENT_SESSION_TTL_MINUTES + 1)
    monkeypatch.setattr("milkcart.payments.services.now", lambda: later)

    resp = await open_session(buyer["headers"], [first["public_id"]])
    assert resp.status_code == 201, resp.text


async def test_cannot_pay_for_someone_elses_or_cancelled_order(ac_client, buyer, buyer2, make_product, place_order,
                                                               open_session):
    first, second = await _two_orders(buyer, make_product, place_order)

    resp = await open_session(buyer2["headers"], [first["public_id"]])
    assert resp.status_code == 404

    await ac_client.post(f"{url_prefix}/orders/{second['public_id']}/cancel", headers=buyer["headers"])
    resp = await open_session(buyer["headers"], [second["public_id"]])
    assert resp.status_code == 400


async def test_submit_then_verify_marks_orders_paid(ac_client, buyer, admin, make_product, place_order, open_session):
    first, second = await _two_orders(buyer, make_product, place_order)
    payment = (await open_session(buyer["headers"], [first["public_id"], second["public_id"]])).json()["data"]["payment"]
    pid = payment["payment_id"]

    resp = await ac_client.post(f"{url_prefix}/payments/sessions/{pid}/submit",
                                json={"upi_transaction_id": "412345678901"}, headers=buyer["headers"])
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["payment"]["verification_status"] == "submitted"

    order = (await ac_client.get(f"{url_prefix}/orders/{first['public_id']}", headers=buyer["headers"])).json()["data"]
    assert order["payment_status"] == "processing"

    again = await ac_client.post(f"{url_prefix}/payments/sessions/{pid}/submit",
                                 json={"upi_transaction_id": "412345678901"}, headers=buyer["headers"])
    assert again.status_code == 409

    pending = await ac_client.get(f"{url_prefix}/admin/payments/pending", headers=admin["headers"])
    assert [p["payment_id"] for p in pending.json()["data"]["items"]] == [pid]

    resp = await ac_client.post(f"{url_prefix}/admin/payments/{pid}/verify", json={"decision": "verify"},
                                headers=admin["headers"])
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["payment"]["verification_status"] == "verified"

    for o in (first, second):
        order = (await ac_client.get(f"{url_prefix}/orders/{o['public_id']}", headers=buyer["headers"])).json()["data"]
        assert order["payment_status"] == "paid"
        assert order["status"] == "confirmed"
        assert order["paid_at"] is not None

    replay = await ac_client.post(f"{url_prefix}/admin/payments/{pid}/verify", json={"decision": "reject"},
                                  headers=admin["headers"])
    assert replay.status_code == 409
    assert replay.json()["error"]["code"] == "ALREADY_PROCESSED"


async def test_rejected_payment_frees_orders_for_a_new_session(ac_client, buyer, admin, make_product, place_order,
                                                                open_session):
    first, _ = await _two_orders(buyer, make_product, place_order)
    pid = (await open_session(buyer["headers"], [first["public_id"]])).json()["data"]["payment"]["payment_id"]
    await ac_client.post(f"{url_prefix}/payments/sessions/{pid}/submit",
                         json={"upi_transaction_id": "TXN998877"}, headers=buyer["headers"])

    resp = await ac_client.post(f"{url_prefix}/admin/payments/{pid}/verify",
                                json={"decision": "reject", "notes": "no matching credit"}, headers=admin["headers"])
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["payment"]["notes"] == "no matching credit"

    order = (await ac_client.get(f"{url_prefix}/orders/{first['public_id']}", headers=buyer["headers"])).json()["data"]
    assert order["payment_status"] == "failed"
    assert order["status"] == "pending"

    resp = await open_session(buyer["headers"], [first["public_id"]])
    assert resp.status_code == 201, resp.text


async def test_submit_after_expiry_is_gone(ac_client, buyer, make_product, place_order, open_session, monkeypatch):
    first, _ = await _two_orders(buyer, make_product, place_order)
    pid = (await open_session(buyer["headers"], [first["public_id"]])).json()["data"]["payment"]["payment_id"]

    later = now() + timedelta(minutes=store_settings.PAYMENT_SESSION_TTL_MINUTES, seconds=5)
    monkeypatch.setattr("milkcart.payments.services.now", lambda: later)

    resp = await ac_client.post(f"{url_prefix}/payments/sessions/{pid}/submit",
                                json={"upi_transaction_id": "412345678901"}, headers=buyer["headers"])
    assert resp.status_code == 410
    assert resp.json()["error"]["code"] == "SESSION_EXPIRED"


async def test_admin_cannot_verify_before_submission(ac_client, buyer, admin, make_product, place_order, open_session):
    first, _ = await _two_orders(buyer, make_product, place_order)
    pid = (await open_session(buyer["headers"], [first["public_id"]])).json()["data"]["payment"]["payment_id"]

    resp = await ac_client.post(f"{url_prefix}/admin/payments/{pid}/verify", json={"decision": "verify"},
                                headers=admin["headers"])
    assert resp.status_code == 409

    order = (await ac_client.get(f"{url_prefix}/orders/{first['public_id']}", headers=buyer["headers"])).json()["data"]
    assert order["payment_status"] == "pending"


async def test_transaction_id_cannot_be_reused(ac_client, buyer, make_product, place_order, open_session):
    first, second = await _two_orders(buyer, make_product, place_order)
    one = (await open_session(buyer["headers"], [first["public_id"]])).json()["data"]["payment"]["payment_id"]
    two = (await open_session(buyer["headers"], [second["public_id"]])).json()["data"]["payment"]["payment_id"]

    resp = await ac_client.post(f"{url_prefix}/payments/sessions/{one}/submit",
                                json={"upi_transaction_id": "TXN-55501"}, headers=buyer["headers"])
    assert resp.status_code == 200

    resp = await ac_client.post(f"{url_prefix}/payments/sessions/{two}/submit",
                                json={"upi_transaction_id": "TXN-55501"}, headers=buyer["headers"])
    assert resp.status_code == 409


async def test_session_payload_needs_exactly_one_target(ac_client, buyer):
    resp = await ac_client.post(f"{url_prefix}/payments/sessions", json={}, headers=buyer["headers"])
    assert resp.status_code == 422


async def test_history_lists_own_sessions(ac_client, buyer, buyer2, make_product, place_order, open_session):
    first, _ = await _two_orders(buyer, make_product, place_order)
    await open_session(buyer["headers"], [first["public_id"]])

    mine = await ac_client.get(f"{url_prefix}/payments/history", headers=buyer["headers"])
    assert len(mine.json()["data"]["items"]) == 1
    theirs = await ac_client.get(f"{url_prefix}/payments/history", headers=buyer2["headers"])
    assert theirs.json()["data"]["items"] == []


async def test_cancelling_an_order_withdraws_its_open_session(ac_client, buyer, make_product, place_order, open_session):
    milk = await make_product(name="Cow Milk 1L", price=60, stock_qty=20)
    first = (await place_order(buyer["headers"], [(milk, 2)])).json()["data"]["order"]
    second = (await place_order(buyer["headers"], [(milk, 3)])).json()["data"]["order"]
    assert (first["total_amount"], second["total_amount"]) == (170, 230)

    payment = (await open_session(buyer["headers"], [first["public_id"], second["public_id"]])).json()["data"]["payment"]
    assert payment["total_amount"] == 400

    resp = await ac_client.post(f"{url_prefix}/orders/{first['public_id']}/cancel", headers=buyer["headers"])
    assert resp.status_code == 200, resp.text

    status_path = f"{url_prefix}/payments/sessions/{payment['payment_id']}"
    withdrawn = (await ac_client.get(status_path, headers=buyer["headers"])).json()["data"]
    assert withdrawn["verification_status"] == "cancelled"
    assert first["order_number"] in withdrawn["notes"]

    # the stale 400 rupee QR can no longer be reported as paid
    resp = await ac_client.post(f"{status_path}/submit", json={"upi_transaction_id": "UPI77001"},
                                headers=buyer["headers"])
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "ALREADY_PROCESSED"

    # the surviving order is free again and gets a session for its own amount
    resp = await open_session(buyer["headers"], [second["public_id"]])
    assert resp.status_code == 201, resp.text
    fresh = resp.json()["data"]["payment"]
    assert fresh["total_amount"] == second["total_amount"]
    assert f"am={second['total_amount']:.2f}" in fresh["qr_code_url"]


async def test_cancelling_a_pending_subscription_withdraws_its_session(ac_client, buyer, make_plan, subscribe,
                                                                       open_session):
    plan = await make_plan()
    sub = (await subscribe(buyer["headers"], plan)).json()["data"]["subscription"]
    payment = (await open_session(buyer["headers"], subscription_id=sub["subscription_id"])).json()["data"]["payment"]

    resp = await ac_client.post(f"{url_prefix}/subscriptions/{sub['subscription_id']}/cancel",
                                json={"reason": "moving out of town"}, headers=buyer["headers"])
    assert resp.status_code == 200, resp.text

    status_path = f"{url_prefix}/payments/sessions/{payment['payment_id']}"
    assert (await ac_client.get(status_path, headers=buyer["headers"])).json()["data"]["verification_status"] == "cancelled"

    resp = await ac_client.post(f"{status_path}/submit", json={"upi_transaction_id": "UPI77002"},
                                headers=buyer["headers"])
    assert resp.status_code == 409


async def test_cancelling_after_submission_keeps_the_session(ac_client, buyer, admin, make_product, place_order,
                                                             open_session):
    first, second = await _two_orders(buyer, make_product, place_order)
    payment_id = (await open_session(buyer["headers"], [first["public_id"], second["public_id"]])
                  ).json()["data"]["payment"]["payment_id"]
    await ac_client.post(f"{url_prefix}/payments/sessions/{payment_id}/submit",
                         json={"upi_transaction_id": "UPI77003"}, headers=buyer["headers"])

    resp = await ac_client.post(f"{url_prefix}/orders/{first['public_id']}/cancel", headers=buyer["headers"])
    assert resp.status_code == 200

    resp = await ac_client.post(f"{url_prefix}/admin/payments/{payment_id}/verify", json={"decision": "verify"},
                                headers=admin["headers"])
    assert resp.status_code == 200, resp.text

    # money already moved, so the cancelled order is paid and refundable
    cancelled = (await ac_client.get(f"{url_prefix}/orders/{first['public_id']}", headers=buyer["headers"])).json()["data"]
    assert cancelled["status"] == "cancelled"
    assert cancelled["payment_status"] == "paid"
