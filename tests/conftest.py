import os
import tempfile
from datetime import timedelta

TEST_DB_PATH = os.path.join(tempfile.gettempdir(), f"milkcart_test_{os.getpid()}.db")

# settings are read at import time, so the environment has to be in place first
os.environ["DATABASE_URL"] = os.environ.get("TEST_DB_URL") or f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ.setdefault("JWT_SECRET", "milkcart-test-secret")
os.environ.setdefault("ENV", "dev")
os.environ["STORE_TIMEZONE"] = "Asia/Kolkata"

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from sqlmodel import SQLModel

from milkcart.auth.utils import create_access_token
from milkcart.common.utils import store_today
from milkcart.db.connection import async_engine, async_session
from milkcart.main import app
from milkcart.schema.full_schema import DeliveryPerson, Product, SubscriptionPlan, Users

url_prefix = "/api/v1"

SHIPPING_ADDRESS = {
    "name": "Asha Verma",
    "address": "12 Lake View Road",
    "city": "Pune",
    "state": "Maharashtra",
    "zip_code": "411001",
    "phone": "9876543210",
}


def auth_headers(public_id, role: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(public_id, [role])}"}


@pytest.fixture(autouse=True)
async def fresh_schema():
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)
    # pooled connections must not outlive the per-test event loop
    await async_engine.dispose()
    yield
    await async_engine.dispose()


@pytest.fixture
async def db_session():
    async with async_session() as session:
        yield session


@pytest.fixture
async def ac_client():
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac


async def _make_user(role: str, email: str):
    async with async_session() as session:
        user = Users(email=email, name=email.split("@")[0], role=role)
        session.add(user)
        await session.commit()
        return {"user": user, "headers": auth_headers(user.public_id, role)}


@pytest.fixture
async def buyer():
    return await _make_user("buyer", "buyer1@example.com")


@pytest.fixture
async def buyer2():
    return await _make_user("buyer", "buyer2@example.com")


@pytest.fixture
async def admin():
    return await _make_user("admin", "admin@example.com")


@pytest.fixture
def make_product():
    async def _make(name="Cow Milk 1L", price=60, stock_qty=20, discount_price=None, is_active=True):
        async with async_session() as session:
            product = Product(name=name, price=price, stock_qty=stock_qty, discount_price=discount_price,
                              is_active=is_active)
            session.add(product)
            await session.commit()
            return product
    return _make


@pytest.fixture
def make_plan():
    async def _make(name="7 Days Cow Milk 1L Daily", milk_type="cow", volume="1L", duration_days=7,
                    daily_price=70, discount=0, is_active=True):
        async with async_session() as session:
            plan = SubscriptionPlan(name=name, milk_type=milk_type, volume=volume, duration_days=duration_days,
                                    price=daily_price * duration_days, daily_price=daily_price,
                                    discount=discount, is_active=is_active)
            session.add(plan)
            await session.commit()
            return plan
    return _make


@pytest.fixture
def make_delivery_person():
    async def _make(phone="9000000001", shift="both", approval_status="approved", is_suspended=False):
        async with async_session() as session:
            person = DeliveryPerson(name=f"Rider {phone[-2:]}", phone=phone, delivery_shift=shift,
                                    approval_status=approval_status, is_suspended=is_suspended)
            session.add(person)
            await session.commit()
            return {"person": person, "headers": auth_headers(person.public_id, "delivery")}
    return _make


@pytest.fixture
def delivery_date():
    # two days out keeps every cutoff comfortably in the future
    return store_today() + timedelta(days=2)


@pytest.fixture
def place_order(ac_client, delivery_date):
    async def _place(headers, items, shift="morning", payment_method="upi", when=None):
        payload = {
            "items": [{"product_id": str(p.public_id), "quantity": q} for p, q in items],
            "shipping_address": SHIPPING_ADDRESS,
            "delivery_date": (when or delivery_date).isoformat(),
            "delivery_shift": shift,
            "payment_method": payment_method,
        }
        return await ac_client.post(f"{url_prefix}/orders", json=payload, headers=headers)
    return _place


SUBSCRIPTION_ADDRESS = {
    "full_address": "Flat 4B, Green Meadows, Baner Road",
    "landmark": "Opp. city park",
    "city": "Pune",
    "state": "Maharashtra",
    "pincode": "411045",
    "contact_number": "9876543210",
}


@pytest.fixture
def subscribe(ac_client):
    async def _subscribe(headers, plan, **extra):
        payload = {"plan_id": str(plan.public_id), "delivery_address": SUBSCRIPTION_ADDRESS, **extra}
        return await ac_client.post(f"{url_prefix}/subscriptions", json=payload, headers=headers)
    return _subscribe


@pytest.fixture
def pay_subscription(ac_client, admin):
    """Runs a pending subscription through session, submit and admin verification."""
    async def _pay(headers, subscription_id, txn="UPI20240001", decision="verify"):
        resp = await ac_client.post(f"{url_prefix}/payments/sessions", json={"subscription_id": subscription_id},
                                    headers=headers)
        assert resp.status_code == 201, resp.text
        payment_id = resp.json()["data"]["payment"]["payment_id"]

        resp = await ac_client.post(f"{url_prefix}/payments/sessions/{payment_id}/submit",
                                    json={"upi_transaction_id": txn}, headers=headers)
        assert resp.status_code == 200, resp.text

        return await ac_client.post(f"{url_prefix}/admin/subscriptions/{subscription_id}/payment/{decision}",
                                    headers=admin["headers"])
    return _pay


@pytest.fixture
def active_subscription(subscribe, pay_subscription, make_plan):
    async def _active(headers, **plan_kwargs):
        plan = await make_plan(**plan_kwargs)
        sub = (await subscribe(headers, plan)).json()["data"]["subscription"]
        resp = await pay_subscription(headers, sub["subscription_id"])
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]["subscription"]
    return _active
