from datetime import datetime, time

from milkcart.common.utils import store_tz

url_prefix = "/api/v1"
roster_path = f"{url_prefix}/admin/delivery-persons"


async def _confirmed_order(ac_client, admin, buyer, make_product, place_order, shift="morning", payment_method="cod"):
    milk = await make_product(stock_qty=10)
    order = (await place_order(buyer["headers"], [(milk, 2)], shift=shift,
                               payment_method=payment_method)).json()["data"]["order"]
    resp = await ac_client.post(f"{url_prefix}/admin/orders/{order['public_id']}/approve", headers=admin["headers"])
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["order"]


async def test_roster_registration_and_review(ac_client, admin):
    resp = await ac_client.post(roster_path, json={"name": "Ravi Kumar", "phone": "9811122233",
                                                   "email": "ravi@example.com", "delivery_shift": "morning"},
                                headers=admin["headers"])
    assert resp.status_code == 201, resp.text
    person = resp.json()["data"]["delivery_person"]
    assert person["approval_status"] == "pending"

    pending = await ac_client.get(roster_path, params={"approval_status": "pending"}, headers=admin["headers"])
    assert [p["delivery_person_id"] for p in pending.json()["data"]["items"]] == [person["delivery_person_id"]]

    resp = await ac_client.post(f"{roster_path}/{person['delivery_person_id']}/approve", headers=admin["headers"])
    assert resp.json()["data"]["delivery_person"]["approval_status"] == "approved"
    assert resp.json()["data"]["delivery_person"]["approved_at"] is not None

    again = await ac_client.post(f"{roster_path}/{person['delivery_person_id']}/reject", headers=admin["headers"])
    assert again.status_code == 409


async def test_roster_rejects_bad_contact_details(ac_client, admin):
    resp = await ac_client.post(roster_path, json={"name": "Ravi", "phone": "12ab"}, headers=admin["headers"])
    assert resp.status_code == 422
    resp = await ac_client.post(roster_path, json={"name": "Ravi", "phone": "9811122233", "email": "not-an-email"},
                                headers=admin["headers"])
    assert resp.status_code == 422


async def test_suspension_blocks_login_and_assignment(ac_client, admin, buyer, make_product, place_order,
                                                      make_delivery_person):
    rider = await make_delivery_person()
    pid = str(rider["person"].public_id)

    me = await ac_client.get(f"{url_prefix}/delivery/me", headers=rider["headers"])
    assert me.status_code == 200
    assert me.json()["data"]["delivery_person_id"] == pid

    resp = await ac_client.post(f"{roster_path}/{pid}/suspend", json={"reason": "missed three shifts"},
                                headers=admin["headers"])
    assert resp.json()["data"]["delivery_person"]["is_suspended"] is True

    me = await ac_client.get(f"{url_prefix}/delivery/me", headers=rider["headers"])
    assert me.status_code == 403

    order = await _confirmed_order(ac_client, admin, buyer, make_product, place_order)
    resp = await ac_client.post(f"{url_prefix}/admin/orders/{order['public_id']}/assign",
                                json={"delivery_person_id": pid}, headers=admin["headers"])
    assert resp.status_code == 400

    await ac_client.post(f"{roster_path}/{pid}/unsuspend", headers=admin["headers"])
    resp = await ac_client.post(f"{url_prefix}/admin/orders/{order['public_id']}/assign",
                                json={"delivery_person_id": pid}, headers=admin["headers"])
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["order"]["assigned"] is True


async def test_pending_delivery_person_cannot_log_in(ac_client, make_delivery_person):
    rider = await make_delivery_person(approval_status="pending")
    resp = await ac_client.get(f"{url_prefix}/delivery/orders", headers=rider["headers"])
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "INVALID_AUTH"


async def test_buyers_cannot_use_delivery_routes(ac_client, buyer):
    resp = await ac_client.get(f"{url_prefix}/delivery/orders", headers=buyer["headers"])
    assert resp.status_code == 403


async def test_assignment_needs_confirmed_order_and_matching_shift(ac_client, admin, buyer, make_product, place_order,
                                                                   make_delivery_person):
    evening_rider = await make_delivery_person(phone="9000000002", shift="evening")
    milk = await make_product(stock_qty=10)
    pending = (await place_order(buyer["headers"], [(milk, 1)])).json()["data"]["order"]

    resp = await ac_client.post(f"{url_prefix}/admin/orders/{pending['public_id']}/assign",
                                json={"delivery_person_id": str(evening_rider["person"].public_id)},
                                headers=admin["headers"])
    assert resp.status_code == 400
    assert resp.json()["message"] == "Only confirmed orders can be assigned"

    await ac_client.post(f"{url_prefix}/admin/orders/{pending['public_id']}/approve", headers=admin["headers"])
    resp = await ac_client.post(f"{url_prefix}/admin/orders/{pending['public_id']}/assign",
                                json={"delivery_person_id": str(evening_rider["person"].public_id)},
                                headers=admin["headers"])
    assert resp.status_code == 400
    assert "evening" in resp.json()["message"]


async def test_rider_delivers_inside_the_shift_window(ac_client, admin, buyer, make_product, place_order,
                                                      make_delivery_person, delivery_date, monkeypatch):
    rider = await make_delivery_person()
    other = await make_delivery_person(phone="9000000009")
    order = await _confirmed_order(ac_client, admin, buyer, make_product, place_order)
    await ac_client.post(f"{url_prefix}/admin/orders/{order['public_id']}/assign",
                         json={"delivery_person_id": str(rider["person"].public_id), "delivery_notes": "ring twice"},
                         headers=admin["headers"])

    assigned = await ac_client.get(f"{url_prefix}/delivery/orders", headers=rider["headers"])
    assert [o["public_id"] for o in assigned.json()["data"]["items"]] == [order["public_id"]]

    deliver_path = f"{url_prefix}/delivery/orders/{order['public_id']}/deliver"

    # too early: the delivery date is still ahead
    resp = await ac_client.post(deliver_path, headers=rider["headers"])
    assert resp.status_code == 400

    at_door = datetime.combine(delivery_date, time(7, 0), tzinfo=store_tz())
    monkeypatch.setattr("milkcart.orders.services.now", lambda: at_door)

    resp = await ac_client.post(deliver_path, headers=other["headers"])
    assert resp.status_code == 403

    resp = await ac_client.post(deliver_path, json={"delivery_notes": "handed to customer"}, headers=rider["headers"])
    assert resp.status_code == 200, resp.text
    delivered = resp.json()["data"]["order"]
    assert delivered["status"] == "delivered"
    assert delivered["payment_status"] == "paid"
    assert delivered["delivery_notes"] == "handed to customer"

    me = await ac_client.get(f"{url_prefix}/delivery/me", headers=rider["headers"])
    assert me.json()["data"]["total_deliveries"] == 1

    again = await ac_client.post(deliver_path, headers=rider["headers"])
    assert again.status_code == 409


async def test_rider_cannot_deliver_outside_the_window(ac_client, admin, buyer, make_product, place_order,
                                                       make_delivery_person, delivery_date, monkeypatch):
    rider = await make_delivery_person()
    order = await _confirmed_order(ac_client, admin, buyer, make_product, place_order)
    await ac_client.post(f"{url_prefix}/admin/orders/{order['public_id']}/assign",
                         json={"delivery_person_id": str(rider["person"].public_id)}, headers=admin["headers"])

    afternoon = datetime.combine(delivery_date, time(13, 30), tzinfo=store_tz())
    monkeypatch.setattr("milkcart.orders.services.now", lambda: afternoon)

    resp = await ac_client.post(f"{url_prefix}/delivery/orders/{order['public_id']}/deliver", headers=rider["headers"])
    assert resp.status_code == 400
    assert "05:00" in resp.json()["message"]


assignments_path = f"{url_prefix}/admin/delivery-assignments"


async def _assign_buyer(ac_client, admin, buyer, rider, **extra):
    payload = {"user_id": str(buyer["user"].public_id), "delivery_person_id": str(rider["person"].public_id), **extra}
    return await ac_client.post(assignments_path, json=payload, headers=admin["headers"])


async def test_standing_assignment_routes_new_orders(ac_client, admin, buyer, make_product, place_order,
                                                    make_delivery_person):
    rider = await make_delivery_person()
    resp = await _assign_buyer(ac_client, admin, buyer, rider, notes="same building every day")
    assert resp.status_code == 201, resp.text
    assignment = resp.json()["data"]["assignment"]
    assert assignment["is_active"] is True
    assert assignment["delivery_person_id"] == str(rider["person"].public_id)

    milk = await make_product(stock_qty=10)
    order = (await place_order(buyer["headers"], [(milk, 1)])).json()["data"]["order"]
    assert order["status"] == "pending"
    assert order["assigned"] is True

    mine = await ac_client.get(f"{url_prefix}/delivery/orders", params={"status": "pending"}, headers=rider["headers"])
    assert [o["public_id"] for o in mine.json()["data"]["items"]] == [order["public_id"]]


async def test_standing_assignment_applies_on_confirmation(ac_client, admin, buyer, make_product, place_order,
                                                          make_delivery_person):
    rider = await make_delivery_person()
    milk = await make_product(stock_qty=10)
    order = (await place_order(buyer["headers"], [(milk, 1)])).json()["data"]["order"]
    assert order["assigned"] is False

    assert (await _assign_buyer(ac_client, admin, buyer, rider)).status_code == 201

    resp = await ac_client.post(f"{url_prefix}/admin/orders/{order['public_id']}/approve", headers=admin["headers"])
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["order"]["assigned"] is True

    mine = await ac_client.get(f"{url_prefix}/delivery/orders", headers=rider["headers"])
    assert [o["public_id"] for o in mine.json()["data"]["items"]] == [order["public_id"]]


async def test_suspended_rider_is_never_auto_assigned(ac_client, admin, buyer, make_product, place_order,
                                                      make_delivery_person):
    rider = await make_delivery_person()
    assert (await _assign_buyer(ac_client, admin, buyer, rider)).status_code == 201

    pid = str(rider["person"].public_id)
    await ac_client.post(f"{roster_path}/{pid}/suspend", json={"reason": "vehicle under repair"},
                         headers=admin["headers"])

    milk = await make_product(stock_qty=10)
    order = (await place_order(buyer["headers"], [(milk, 1)])).json()["data"]["order"]
    assert order["status"] == "pending"
    assert order["assigned"] is False

    resp = await ac_client.post(f"{url_prefix}/admin/orders/{order['public_id']}/approve", headers=admin["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["order"]["assigned"] is False

    # and a suspended rider cannot be given new buyers either
    resp = await _assign_buyer(ac_client, admin, buyer, rider)
    assert resp.status_code == 400


async def test_standing_assignment_respects_shifts(ac_client, admin, buyer, make_product, place_order,
                                                   make_delivery_person):
    evening_rider = await make_delivery_person(phone="9000000003", shift="evening")

    resp = await _assign_buyer(ac_client, admin, buyer, evening_rider, delivery_shifts=["morning"])
    assert resp.status_code == 400

    assert (await _assign_buyer(ac_client, admin, buyer, evening_rider)).status_code == 201
    milk = await make_product(stock_qty=10)
    order = (await place_order(buyer["headers"], [(milk, 1)], shift="morning")).json()["data"]["order"]
    assert order["assigned"] is False


async def test_reassigning_replaces_and_delete_deactivates(ac_client, admin, buyer, make_product, place_order,
                                                           make_delivery_person):
    first = await make_delivery_person()
    second = await make_delivery_person(phone="9000000004")

    await _assign_buyer(ac_client, admin, buyer, first)
    resp = await _assign_buyer(ac_client, admin, buyer, second)
    assert resp.status_code == 201
    current = resp.json()["data"]["assignment"]

    active = (await ac_client.get(assignments_path, headers=admin["headers"])).json()["data"]["items"]
    assert [a["assignment_id"] for a in active] == [current["assignment_id"]]
    everything = await ac_client.get(assignments_path, params={"active_only": "false"}, headers=admin["headers"])
    assert len(everything.json()["data"]["items"]) == 2

    resp = await ac_client.delete(f"{assignments_path}/{current['assignment_id']}", headers=admin["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["assignment"]["is_active"] is False
    again = await ac_client.delete(f"{assignments_path}/{current['assignment_id']}", headers=admin["headers"])
    assert again.status_code == 409

    milk = await make_product(stock_qty=10)
    order = (await place_order(buyer["headers"], [(milk, 1)])).json()["data"]["order"]
    assert order["assigned"] is False


async def test_only_buyers_get_standing_assignments(ac_client, admin, make_delivery_person):
    rider = await make_delivery_person()
    resp = await _assign_buyer(ac_client, admin, admin, rider)
    assert resp.status_code == 400
