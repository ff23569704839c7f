from types import SimpleNamespace

from milkcart.orders.utils import compute_order_totals, generate_order_number, totals_reconcile


def test_small_order_pays_delivery_fee():
    totals = compute_order_totals([{"unit_price": 60, "quantity": 2}, {"unit_price": 45, "quantity": 1}])
    assert totals == {"subtotal": 165, "shipping_fee": 50, "tax": 0, "discount": 0, "total_amount": 215}


def test_free_delivery_from_threshold():
    totals = compute_order_totals([{"unit_price": 100, "quantity": 5}])
    assert totals["subtotal"] == 500
    assert totals["shipping_fee"] == 0
    assert totals["total_amount"] == 500


def test_totals_reconcile():
    totals = compute_order_totals([{"unit_price": 70, "quantity": 3}])
    assert totals_reconcile(SimpleNamespace(**totals))
    assert not totals_reconcile(SimpleNamespace(**{**totals, "total_amount": totals["total_amount"] + 1}))


def test_order_number_format():
    number = generate_order_number()
    prefix, millis, suffix = number.split("-")
    assert prefix == "ORD"
    assert millis.isdigit()
    assert len(suffix) == 3 and suffix.isdigit()
