import pytest

import catalog_services
import database
from errors import ConflictError, NotFoundError
from schemas import Coupon, CouponUpdate, OrderCreate, OrderUpdate
from tests.conftest import bearer, login, missing_id

ORDER_BODY = {
    "email": "user@example.com",
    "mobile_number": "01700000000",
    "district": "Dhaka",
    "city": "Dhaka",
    "payment_method": "cod",
    "shipping_method": "courier",
}


@pytest.fixture
def admin_token(client, make_admin):
    make_admin()
    return login(client, "admin@example.com", "admin-pass", admin=True)


@pytest.fixture
def user_token(client, make_user):
    make_user()
    return login(client, "user@example.com", "user-pass")


def test_order_gets_sequential_id_and_line_totals(make_user, make_product):
    user_id = make_user()
    product_id = make_product(price=7.5)
    payload = OrderCreate(**ORDER_BODY, products=[{"product": str(product_id), "quantity": 2}])

    first = catalog_services.create_order_into_db(str(user_id), payload)
    second = catalog_services.create_order_into_db(str(user_id), payload)

    assert first["order_id"] == "ORD-000001"
    assert second["order_id"] == "ORD-000002"
    assert first["status"] == "pending"
    assert first["customer"] == str(user_id)
    assert first["products"] == [{"product": str(product_id), "quantity": 2, "total_price": 15.0}]


def test_order_with_explicit_duplicate_id(make_user, make_product):
    user_id = make_user()
    product_id = make_product()
    payload = OrderCreate(**ORDER_BODY, order_id="X-1", products=[{"product": str(product_id), "quantity": 1}])
    catalog_services.create_order_into_db(str(user_id), payload)
    with pytest.raises(ConflictError):
        catalog_services.create_order_into_db(str(user_id), payload)


def test_order_with_unknown_product(make_user):
    user_id = make_user()
    payload = OrderCreate(**ORDER_BODY, products=[{"product": missing_id(), "quantity": 1}])
    with pytest.raises(NotFoundError):
        catalog_services.create_order_into_db(str(user_id), payload)


def test_order_status_is_a_plain_field(make_user, make_product):
    user_id = make_user()
    product_id = make_product()
    order = catalog_services.create_order_into_db(
        str(user_id), OrderCreate(**ORDER_BODY, products=[{"product": str(product_id), "quantity": 1}])
    )
    delivered = catalog_services.update_order_into_db(order["id"], OrderUpdate(status="delivered"))
    assert delivered["status"] == "delivered"
    back = catalog_services.update_order_into_db(order["id"], OrderUpdate(status="pending"))
    assert back["status"] == "pending"


def test_orders_scoped_to_customer(client, user_token, admin_token, make_user, make_product):
    product_id = str(make_product())
    other_id = make_user(email="other@example.com")
    catalog_services.create_order_into_db(
        str(other_id), OrderCreate(**ORDER_BODY, products=[{"product": product_id, "quantity": 1}])
    )
    res = client.post(
        "/api/orders",
        json={**ORDER_BODY, "products": [{"product": product_id, "quantity": 3}]},
        headers=bearer(user_token),
    )
    assert res.status_code == 200
    mine = res.json()["data"]

    listed = client.get("/api/orders", headers=bearer(user_token)).json()["data"]
    assert [o["id"] for o in listed] == [mine["id"]]
    assert len(client.get("/api/orders", headers=bearer(admin_token)).json()["data"]) == 2

    other_order = [o for o in client.get("/api/orders", headers=bearer(admin_token)).json()["data"] if o["id"] != mine["id"]][0]
    assert client.get(f"/api/orders/{other_order['id']}", headers=bearer(user_token)).status_code == 404

    res = client.patch(f"/api/orders/{mine['id']}", json={"status": "shipped"}, headers=bearer(admin_token))
    assert res.json()["data"]["status"] == "shipped"
    res = client.patch(f"/api/orders/{mine['id']}", json={"status": "lost"}, headers=bearer(admin_token))
    assert res.status_code == 422

    assert client.delete(f"/api/orders/{mine['id']}", headers=bearer(user_token)).status_code == 403
    assert client.delete(f"/api/orders/{mine['id']}", headers=bearer(admin_token)).status_code == 200
    assert client.delete(f"/api/orders/{mine['id']}", headers=bearer(admin_token)).status_code == 404


def test_product_crud(client, admin_token):
    res = client.post("/api/products", json={"name": "Boot", "price": 40}, headers=bearer(admin_token))
    product = res.json()["data"]
    assert product["price"] == 40

    assert client.get("/api/products").json()["data"][0]["name"] == "Boot"
    res = client.patch(f"/api/products/{product['id']}", json={"price": 35.5}, headers=bearer(admin_token))
    assert res.json()["data"]["price"] == 35.5
    assert client.patch(f"/api/products/{product['id']}", json={}, headers=bearer(admin_token)).status_code == 400
    assert client.get("/api/products/not-an-id").status_code == 400

    assert client.delete(f"/api/products/{product['id']}", headers=bearer(admin_token)).status_code == 200
    assert client.get(f"/api/products/{product['id']}").status_code == 404


def test_product_writes_need_admin(client, user_token):
    res = client.post("/api/products", json={"name": "Boot", "price": 40}, headers=bearer(user_token))
    assert res.status_code == 403
    assert client.post("/api/products", json={"name": "Boot", "price": 40}).status_code == 401


def test_coupon_crud(client, admin_token):
    body = {"code": "SAVE10", "discount": 10, "expire_date": "2030-01-01T00:00:00Z"}
    res = client.post("/api/coupons", json=body, headers=bearer(admin_token))
    assert res.status_code == 200
    coupon = res.json()["data"]
    assert coupon["code"] == "SAVE10"

    assert client.post("/api/coupons", json=body, headers=bearer(admin_token)).status_code == 409

    other = client.post("/api/coupons", json={**body, "code": "SAVE20"}, headers=bearer(admin_token)).json()["data"]
    res = client.patch(f"/api/coupons/{other['id']}", json={"code": "SAVE10"}, headers=bearer(admin_token))
    assert res.status_code == 409

    res = client.patch(f"/api/coupons/{coupon['id']}", json={"discount": 15}, headers=bearer(admin_token))
    assert res.json()["data"]["discount"] == 15
    assert client.get(f"/api/coupons/{coupon['id']}").json()["data"]["discount"] == 15
    assert len(client.get("/api/coupons").json()["data"]) == 2

    assert client.delete(f"/api/coupons/{coupon['id']}", headers=bearer(admin_token)).status_code == 200
    assert client.get(f"/api/coupons/{coupon['id']}").status_code == 404


def test_null_fields_in_product_update_are_ignored(client, admin_token, user_token):
    product = client.post("/api/products", json={"name": "Boot", "price": 40}, headers=bearer(admin_token)).json()["data"]

    res = client.patch(f"/api/products/{product['id']}", json={"price": None}, headers=bearer(admin_token))
    assert res.status_code == 400

    res = client.patch(f"/api/products/{product['id']}", json={"price": None, "name": "Hiker"}, headers=bearer(admin_token))
    assert res.json()["data"]["name"] == "Hiker"
    assert res.json()["data"]["price"] == 40

    res = client.post("/api/users/cart", json={"product": product["id"], "quantity": 2}, headers=bearer(user_token))
    assert res.status_code == 200
    assert res.json()["data"]["cart"][0]["total_price"] == 80.0


def test_null_fields_in_order_and_coupon_updates_are_ignored(make_user, make_product):
    user_id = make_user()
    product_id = make_product()
    order = catalog_services.create_order_into_db(
        str(user_id), OrderCreate(**ORDER_BODY, products=[{"product": str(product_id), "quantity": 1}])
    )
    updated = catalog_services.update_order_into_db(order["id"], OrderUpdate(city=None, district=None, status="processing"))
    assert updated["city"] == "Dhaka"
    assert updated["district"] == "Dhaka"
    assert updated["status"] == "processing"

    coupon = catalog_services.create_coupon_into_db(Coupon(code="SAVE5", discount=5, expire_date="2030-01-01T00:00:00Z"))
    updated = catalog_services.update_coupon_into_db(coupon["id"], CouponUpdate(code=None, discount=7))
    assert updated["code"] == "SAVE5"
    assert updated["discount"] == 7


def test_duplicate_order_id_from_unique_index_is_a_conflict(db, make_user, make_product, monkeypatch):
    database.ensure_indexes()
    user_id = make_user()
    product_id = make_product()
    payload = OrderCreate(**ORDER_BODY, order_id="RACE-1", products=[{"product": str(product_id), "quantity": 1}])
    catalog_services.create_order_into_db(str(user_id), payload)

    # the existence check misses the order, as it would for a concurrent request
    real_get_collection = catalog_services.get_collection

    class NoMatch:
        def find_one(self, *args, **kwargs):
            return None

    def no_existing_order(name):
        return NoMatch() if name == "order" else real_get_collection(name)

    monkeypatch.setattr(catalog_services, "get_collection", no_existing_order)
    with pytest.raises(ConflictError):
        catalog_services.create_order_into_db(str(user_id), payload)
