import os
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header
from fastapi.middleware.cors import CORSMiddleware

import auth_services
import catalog_services
import database
import user_services
from config import get_settings
from errors import ForbiddenError, UnauthorizedError, register_error_handlers, send_response
from schemas import (
    AddToCartInput,
    AdminCreate,
    ChangePasswordInput,
    Coupon,
    CouponUpdate,
    LoginInput,
    OrderCreate,
    OrderUpdate,
    Product,
    ProductUpdate,
    UserCreate,
    UserUpdate,
)
from security import decode_token

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    database.ensure_indexes()
    if database.db is not None and settings.default_admin_email and settings.default_admin_password:
        auth_services.seed_default_admin(settings.default_admin_email, settings.default_admin_password)
    logger.info("Shop API started")
    yield


app = FastAPI(title="Shop API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)


# Dependency to get the caller's claims

def get_current_claims(authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("You are not authorized!")
    token = authorization.split(" ", 1)[1]
    return decode_token(token)


def auth(*roles: str):
    """Require a valid token for one of `roles` and a live account behind it."""

    def dependency(claims: Dict[str, Any] = Depends(get_current_claims)) -> Dict[str, Any]:
        if roles and claims.get("role") not in roles:
            raise ForbiddenError("You are not authorized!")
        auth_services.load_current_account(claims)
        return claims

    return dependency


# Routes
@app.get("/")
def read_root():
    return {"message": "Shop API"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Available"
            response["connection_status"] = "Connected"
            response["collections"] = database.db.list_collection_names()
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# Auth
@app.post("/api/auth/admin/login")
def login_admin(payload: LoginInput):
    token = auth_services.login_admin(payload.email, payload.password)
    return send_response("Admin logged in successfully!", {"accessToken": token})


@app.post("/api/auth/login")
def login_user(payload: LoginInput):
    token = auth_services.login_user(payload.email, payload.password)
    return send_response("User logged in successfully!", {"accessToken": token})


@app.post("/api/auth/admin/change-password")
def change_password_of_admin(payload: ChangePasswordInput, claims: dict = Depends(auth("admin"))):
    result = auth_services.change_password_of_admin(claims, payload.oldPassword, payload.newPassword)
    return send_response("Password changed successfully!", result)


@app.post("/api/auth/change-password")
def change_password_of_user(payload: ChangePasswordInput, claims: dict = Depends(auth("user"))):
    result = auth_services.change_password_of_user(claims, payload.oldPassword, payload.newPassword)
    return send_response("Password changed successfully!", result)


@app.get("/api/auth/me")
def get_me(claims: dict = Depends(auth("admin", "user"))):
    return send_response("Profile fetched successfully!", auth_services.get_me(claims))


@app.post("/api/admins")
def create_admin(payload: AdminCreate, claims: dict = Depends(auth("admin"))):
    result = auth_services.create_admin(payload.name, payload.email, payload.password)
    return send_response("Admin created successfully!", result)


# Users
@app.post("/api/users")
def create_user(payload: UserCreate):
    return send_response("User created successfully!", user_services.create_user_into_db(payload))


@app.get("/api/users")
def get_all_users(claims: dict = Depends(auth("admin"))):
    return send_response("Users fetched successfully!", user_services.get_all_users_from_db())


@app.get("/api/users/{user_id}")
def get_single_user(user_id: str, claims: dict = Depends(auth("admin"))):
    return send_response("User fetched successfully!", user_services.get_single_user_from_db(user_id))


@app.patch("/api/users/{user_id}")
def update_user(user_id: str, payload: UserUpdate, claims: dict = Depends(auth("admin"))):
    return send_response("User updated successfully!", user_services.update_user_into_db(user_id, payload))


# Cart
@app.post("/api/users/cart")
def add_product_to_cart(payload: AddToCartInput, claims: dict = Depends(auth("user"))):
    result = user_services.add_product_to_cart(claims["id"], payload.product, payload.quantity)
    return send_response("Product added to cart successfully!", result)


@app.delete("/api/users/cart/{product_id}")
def remove_product_from_cart(product_id: str, claims: dict = Depends(auth("user"))):
    result = user_services.remove_product_from_cart(claims["id"], product_id)
    return send_response("Product removed from cart successfully!", result)


@app.patch("/api/users/cart/{product_id}/{quantity}")
def manipulate_quantity_in_cart(product_id: str, quantity: int, claims: dict = Depends(auth("user"))):
    result = user_services.manipulate_quantity_in_cart(claims["id"], product_id, quantity)
    return send_response("Quantity manipulated successfully!", result)


# Products
@app.post("/api/products")
def create_product(payload: Product, claims: dict = Depends(auth("admin"))):
    return send_response("Product created successfully!", catalog_services.create_product_into_db(payload))


@app.get("/api/products")
def get_all_products():
    return send_response("Products fetched successfully!", catalog_services.get_all_products_from_db())


@app.get("/api/products/{product_id}")
def get_single_product(product_id: str):
    return send_response("Product fetched successfully!", catalog_services.get_single_product_from_db(product_id))


@app.patch("/api/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, claims: dict = Depends(auth("admin"))):
    return send_response("Product updated successfully!", catalog_services.update_product_into_db(product_id, payload))


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, claims: dict = Depends(auth("admin"))):
    return send_response("Product deleted successfully!", catalog_services.delete_product_from_db(product_id))


# Orders
@app.post("/api/orders")
def create_order(payload: OrderCreate, claims: dict = Depends(auth("user"))):
    return send_response("Order placed successfully!", catalog_services.create_order_into_db(claims["id"], payload))


@app.get("/api/orders")
def get_all_orders(claims: dict = Depends(auth("admin", "user"))):
    customer_id = claims["id"] if claims["role"] == "user" else None
    return send_response("Orders fetched successfully!", catalog_services.get_all_orders_from_db(customer_id))


@app.get("/api/orders/{order_id}")
def get_single_order(order_id: str, claims: dict = Depends(auth("admin", "user"))):
    customer_id = claims["id"] if claims["role"] == "user" else None
    return send_response("Order fetched successfully!", catalog_services.get_single_order_from_db(order_id, customer_id))


@app.patch("/api/orders/{order_id}")
def update_order(order_id: str, payload: OrderUpdate, claims: dict = Depends(auth("admin"))):
    return send_response("Order updated successfully!", catalog_services.update_order_into_db(order_id, payload))


@app.delete("/api/orders/{order_id}")
def delete_order(order_id: str, claims: dict = Depends(auth("admin"))):
    return send_response("Order deleted successfully!", catalog_services.delete_order_from_db(order_id))


# Coupons
@app.post("/api/coupons")
def create_coupon(payload: Coupon, claims: dict = Depends(auth("admin"))):
    return send_response("Coupon created successfully!", catalog_services.create_coupon_into_db(payload))


@app.get("/api/coupons")
def get_all_coupons():
    return send_response("Coupons fetched successfully!", catalog_services.get_all_coupons_from_db())


@app.get("/api/coupons/{coupon_id}")
def get_single_coupon(coupon_id: str):
    return send_response("Coupon fetched successfully!", catalog_services.get_single_coupon_from_db(coupon_id))


@app.patch("/api/coupons/{coupon_id}")
def update_coupon(coupon_id: str, payload: CouponUpdate, claims: dict = Depends(auth("admin"))):
    return send_response("Coupon updated successfully!", catalog_services.update_coupon_into_db(coupon_id, payload))


@app.delete("/api/coupons/{coupon_id}")
def delete_coupon(coupon_id: str, claims: dict = Depends(auth("admin"))):
    return send_response("Coupon deleted successfully!", catalog_services.delete_coupon_from_db(coupon_id))


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
