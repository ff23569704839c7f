from sqlalchemy import update

from milkcart.db.connection import async_session
from milkcart.schema.full_schema import Orders

url_prefix = "/api/v1"

UPI_REFUND = {"refund_method": "upi", "refund_details": {"mobile_number": "9876543210", "upi_id": "asha@okhdfc"}}
BANK_REFUND = {
    "refund_method": "bank_transfer",
    "refund_details": {
        "mobile_number": "9876543210",
        "account_holder_name": "Asha Verma",
        "bank_name": "HDFC Bank",
        "account_number": "50100234567890",
        "ifsc_code": "HDFC0001234",
    },
}


async def _request_cancellation(ac_client, buyer, sub, refund=UPI_REFUND):
    return await ac_client.post(f"{url_prefix}/subscriptions/{sub['subscription_id']}/cancel",
                                json={"reason": "moving to another city", **refund}, headers=buyer["headers"])


async def test_cancelling_paid_subscription_opens_prorated_refund(ac_client, buyer, admin, active_subscription):
    sub = await active_subscription(buyer["headers"], duration_days=7, daily_price=70)
    await ac_client.post(f"{url_prefix}/admin/subscriptions/{sub['subscription_id']}/deliveries/complete",
                         headers=admin["headers"])

    resp = await _request_cancellation(ac_client, buyer, sub)
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["subscription"]["status"] == "cancellation_requested"

    refund = data["refund_request"]
    assert refund["status"] == "pending"
    assert refund["original_amount"] == 490
    assert refund["days_used"] == 1
    assert refund["days_remaining"] == 6
    assert refund["refund_amount"] == 420
    assert refund["subscription_id"] == sub["subscription_id"]

    resp = await _request_cancellation(ac_client, buyer, sub)
    assert resp.status_code == 409


async def test_approving_then_completing_refund_closes_subscription(ac_client, buyer, admin, active_subscription):
    sub = await active_subscription(buyer["headers"])
    refund = (await _request_cancellation(ac_client, buyer, sub)).json()["data"]["refund_request"]
    path = f"{url_prefix}/admin/refunds/{refund['refund_id']}/status"

    resp = await ac_client.patch(path, json={"status": "approved"}, headers=admin["headers"])
    assert resp.status_code == 200, resp.text

    detail = (await ac_client.get(f"{url_prefix}/subscriptions/{sub['subscription_id']}",
                                  headers=buyer["headers"])).json()["data"]
    assert detail["status"] == "cancelled"
    assert detail["next_delivery_date"] is None

    resp = await ac_client.patch(path, json={"status": "completed", "refund_transaction_id": "RFND0099"},
                                 headers=admin["headers"])
    done = resp.json()["data"]["refund"]
    assert done["status"] == "completed"
    assert done["refund_date"] is not None
    assert done["refund_transaction_id"] == "RFND0099"

    detail = (await ac_client.get(f"{url_prefix}/subscriptions/{sub['subscription_id']}",
                                  headers=buyer["headers"])).json()["data"]
    assert detail["payment_status"] == "refunded"

    resp = await ac_client.patch(path, json={"status": "rejected"}, headers=admin["headers"])
    assert resp.status_code == 409


async def test_rejected_refund_reactivates_subscription(ac_client, buyer, admin, active_subscription):
    sub = await active_subscription(buyer["headers"])
    refund = (await _request_cancellation(ac_client, buyer, sub)).json()["data"]["refund_request"]

    resp = await ac_client.patch(f"{url_prefix}/admin/refunds/{refund['refund_id']}/status",
                                 json={"status": "rejected", "admin_notes": "deliveries already dispatched"},
                                 headers=admin["headers"])
    assert resp.status_code == 200, resp.text

    detail = (await ac_client.get(f"{url_prefix}/subscriptions/{sub['subscription_id']}",
                                  headers=buyer["headers"])).json()["data"]
    assert detail["status"] == "active"
    assert detail["payment_status"] == "paid"
    assert detail["history"][-1]["action"] == "cancellation_rejected"


async def test_admin_sees_full_bank_details_buyer_sees_masked(ac_client, buyer, admin, active_subscription):
    sub = await active_subscription(buyer["headers"])
    refund = (await _request_cancellation(ac_client, buyer, sub, BANK_REFUND)).json()["data"]["refund_request"]
    assert refund["refund_details"]["account_number"] == "**********7890"

    mine = await ac_client.get(f"{url_prefix}/refunds/{refund['refund_id']}", headers=buyer["headers"])
    assert mine.json()["data"]["refund_details"]["account_number"].endswith("7890")
    assert mine.json()["data"]["refund_details"]["account_number"].startswith("*")

    admin_view = await ac_client.get(f"{url_prefix}/admin/refunds/{refund['refund_id']}", headers=admin["headers"])
    assert admin_view.json()["data"]["refund_details"]["account_number"] == "50100234567890"


async def test_refund_details_must_match_method(ac_client, buyer, active_subscription):
    sub = await active_subscription(buyer["headers"])

    no_ifsc = {**BANK_REFUND, "refund_details": {**BANK_REFUND["refund_details"], "ifsc_code": None}}
    resp = await _request_cancellation(ac_client, buyer, sub, no_ifsc)
    assert resp.status_code == 422

    bad_upi = {"refund_method": "upi", "refund_details": {"mobile_number": "9876543210", "upi_id": "not a vpa"}}
    resp = await _request_cancellation(ac_client, buyer, sub, bad_upi)
    assert resp.status_code == 422


async def test_admin_decides_cancellation_without_refund(ac_client, buyer, admin, active_subscription):
    sub = await active_subscription(buyer["headers"])
    refund = (await _request_cancellation(ac_client, buyer, sub)).json()["data"]["refund_request"]

    resp = await ac_client.post(f"{url_prefix}/admin/subscriptions/{sub['subscription_id']}/cancellation",
                                json={"approve": True}, headers=admin["headers"])
    assert resp.json()["data"]["subscription"]["status"] == "cancelled"

    # the refund request is still open for the admin to settle
    resp = await ac_client.get(f"{url_prefix}/admin/refunds", params={"status": "pending"}, headers=admin["headers"])
    assert [r["refund_id"] for r in resp.json()["data"]["items"]] == [refund["refund_id"]]


async def test_order_refund_only_for_paid_cancelled_orders(ac_client, buyer, buyer2, admin, make_product, place_order):
    milk = await make_product(price=100, stock_qty=10)
    order = (await place_order(buyer["headers"], [(milk, 6)])).json()["data"]["order"]
    payload = {"order_id": order["public_id"], "reason": "cancelled after paying", **UPI_REFUND}

    resp = await ac_client.post(f"{url_prefix}/refunds", json=payload, headers=buyer["headers"])
    assert resp.status_code == 400

    await ac_client.post(f"{url_prefix}/orders/{order['public_id']}/cancel", headers=buyer["headers"])
    async with async_session() as session:
        await session.execute(update(Orders).where(Orders.order_number == order["order_number"])
                              .values(payment_status="paid"))
        await session.commit()

    resp = await ac_client.post(f"{url_prefix}/refunds", json=payload, headers=buyer2["headers"])
    assert resp.status_code == 404

    resp = await ac_client.post(f"{url_prefix}/refunds", json=payload, headers=buyer["headers"])
    assert resp.status_code == 201, resp.text
    refund = resp.json()["data"]["refund"]
    assert refund["refund_amount"] == order["total_amount"]
    assert refund["order_number"] == order["order_number"]

    again = await ac_client.post(f"{url_prefix}/refunds", json=payload, headers=buyer["headers"])
    assert again.status_code == 409

    path = f"{url_prefix}/admin/refunds/{refund['refund_id']}/status"
    await ac_client.patch(path, json={"status": "approved"}, headers=admin["headers"])
    await ac_client.patch(path, json={"status": "processed"}, headers=admin["headers"])
    resp = await ac_client.patch(path, json={"status": "completed"}, headers=admin["headers"])
    assert resp.json()["data"]["refund"]["status"] == "completed"

    detail = await ac_client.get(f"{url_prefix}/orders/{order['public_id']}", headers=buyer["headers"])
    assert detail.json()["data"]["payment_status"] == "refunded"
