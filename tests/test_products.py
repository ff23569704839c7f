from sqlalchemy import select

from milkcart.schema.full_schema import Product

url_prefix = "/api/v1"


async def test_catalog_is_public(ac_client, make_product):
    await make_product(name="Cow Milk 1L", price=60)
    await make_product(name="Paneer 200g", price=90, discount_price=80)
    await make_product(name="Retired Ghee", price=500, is_active=False)

    resp = await ac_client.get(f"{url_prefix}/products")
    assert resp.status_code == 200, resp.text

    body = resp.json()
    assert body["success"] is True
    names = {p["name"] for p in body["data"]["items"]}
    assert names == {"Cow Milk 1L", "Paneer 200g"}


async def test_catalog_pagination_cursor(ac_client, make_product):
    for i in range(5):
        await make_product(name=f"Milk {i}", price=50 + i)

    first = await ac_client.get(f"{url_prefix}/products", params={"limit": 3})
    page = first.json()["data"]
    assert len(page["items"]) == 3
    assert page["has_more"] is True

    second = await ac_client.get(f"{url_prefix}/products", params={"limit": 3, "cursor": page["next_cursor"]})
    rest = second.json()["data"]
    assert len(rest["items"]) == 2
    assert rest["has_more"] is False
    seen = {p["name"] for p in page["items"]} | {p["name"] for p in rest["items"]}
    assert len(seen) == 5


async def test_tampered_cursor_rejected(ac_client):
    resp = await ac_client.get(f"{url_prefix}/products", params={"cursor": "abc.def"})
    assert resp.status_code == 400


async def test_admin_creates_and_updates_product(ac_client, admin, db_session):
    payload = {"name": "Buffalo Milk 1L", "price": 80, "stock_qty": 15, "unit": "1L"}
    resp = await ac_client.post(f"{url_prefix}/admin/products", json=payload, headers=admin["headers"])
    assert resp.status_code == 201, resp.text
    product_id = resp.json()["data"]["product"]["public_id"]

    resp = await ac_client.patch(f"{url_prefix}/admin/products/{product_id}", json={"discount_price": 75},
                                 headers=admin["headers"])
    assert resp.status_code == 200, resp.text

    res = await db_session.execute(select(Product).where(Product.name == "Buffalo Milk 1L"))
    product = res.scalar_one()
    assert product.discount_price == 75
    assert product.effective_price == 75


async def test_discount_above_price_rejected(ac_client, admin):
    payload = {"name": "Curd 500g", "price": 40, "discount_price": 45}
    resp = await ac_client.post(f"{url_prefix}/admin/products", json=payload, headers=admin["headers"])
    assert resp.status_code == 422


async def test_buyer_cannot_reach_admin_routes(ac_client, buyer):
    resp = await ac_client.post(f"{url_prefix}/admin/products", json={"name": "x", "price": 1}, headers=buyer["headers"])
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


async def test_missing_token_is_401(ac_client):
    resp = await ac_client.get(f"{url_prefix}/orders")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "INVALID_AUTH"


async def test_duplicate_product_name_conflicts(ac_client, admin, make_product):
    await make_product(name="Cow Milk 1L")
    resp = await ac_client.post(f"{url_prefix}/admin/products", json={"name": "Cow Milk 1L", "price": 60},
                                headers=admin["headers"])
    assert resp.status_code == 409
