import uuid
from datetime import datetime

from sqlalchemy import update

from milkcart.common.utils import store_tz
from milkcart.schema.full_schema import Orders

url_prefix = "/api/v1"
report_path = f"{url_prefix}/admin/report-summary"


async def _backdate(session, order, local_dt):
    await session.execute(update(Orders).where(Orders.public_id == uuid.UUID(order["public_id"]))
                          .values(created_at=local_dt))
    await session.commit()


async def test_report_summary_uses_store_days(ac_client, admin, buyer, buyer2, make_product, place_order, db_session):
    milk = await make_product(name="Cow Milk 1L", price=60, stock_qty=50)
    tz = store_tz()

    late_night = (await place_order(buyer["headers"], [(milk, 2)])).json()["data"]["order"]
    after_midnight = (await place_order(buyer["headers"], [(milk, 3)])).json()["data"]["order"]
    cancelled = (await place_order(buyer2["headers"], [(milk, 2)])).json()["data"]["order"]
    next_day = (await place_order(buyer2["headers"], [(milk, 3)])).json()["data"]["order"]
    await ac_client.post(f"{url_prefix}/orders/{cancelled['public_id']}/cancel", headers=buyer2["headers"])

    # 23:30 and 00:15 local sit on different store days but the same UTC day
    await _backdate(db_session, late_night, datetime(2026, 1, 5, 23, 30, tzinfo=tz))
    await _backdate(db_session, after_midnight, datetime(2026, 1, 6, 0, 15, tzinfo=tz))
    await _backdate(db_session, cancelled, datetime(2026, 1, 6, 10, 0, tzinfo=tz))
    await _backdate(db_session, next_day, datetime(2026, 1, 7, 0, 0, tzinfo=tz))

    resp = await ac_client.get(report_path, params={"start_date": "2026-01-05", "end_date": "2026-01-06"},
                               headers=admin["headers"])
    assert resp.status_code == 200, resp.text
    report = resp.json()["data"]

    assert report["total_orders"] == 3
    assert report["cancelled_orders"] == 1
    assert report["total_revenue"] == 170 + 230
    assert report["total_customers"] == 2
    assert report["revenue_trend"] == [
        {"date": "2026-01-05", "revenue": 170, "orders": 1},
        {"date": "2026-01-06", "revenue": 230, "orders": 1},
    ]


async def test_report_summary_single_day_includes_whole_day(ac_client, admin, buyer, make_product, place_order,
                                                           db_session):
    milk = await make_product(stock_qty=10)
    order = (await place_order(buyer["headers"], [(milk, 1)])).json()["data"]["order"]
    await _backdate(db_session, order, datetime(2026, 2, 1, 23, 59, tzinfo=store_tz()))

    resp = await ac_client.get(report_path, params={"start_date": "2026-02-01", "end_date": "2026-02-01"},
                               headers=admin["headers"])
    report = resp.json()["data"]
    assert report["total_orders"] == 1
    assert report["revenue_trend"] == [{"date": "2026-02-01", "revenue": order["total_amount"], "orders": 1}]


async def test_report_summary_validates_range(ac_client, admin, buyer):
    resp = await ac_client.get(report_path, params={"start_date": "2026-01-06", "end_date": "2026-01-05"},
                               headers=admin["headers"])
    assert resp.status_code == 400

    resp = await ac_client.get(report_path, params={"start_date": "2024-01-01", "end_date": "2026-01-01"},
                               headers=admin["headers"])
    assert resp.status_code == 400

    resp = await ac_client.get(report_path, params={"start_date": "2026-01-06"}, headers=admin["headers"])
    assert resp.status_code == 422

    resp = await ac_client.get(report_path, params={"start_date": "2026-01-05", "end_date": "2026-01-06"},
                               headers=buyer["headers"])
    assert resp.status_code == 403
