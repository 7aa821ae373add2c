"""Default CRUD for products, orders and coupons."""

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from database import create_document, get_collection, get_documents, get_next_sequence, now, serialize_doc, to_object_id
from errors import BadRequestError, ConflictError, NotFoundError
from schemas import Coupon, CouponUpdate, Order, OrderCreate, OrderUpdate, Product, ProductUpdate

logger = logging.getLogger(__name__)

ORDER_PREFIX = "ORD-"


def _get_one(collection: str, doc_id: str, label: str, query: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    doc = get_collection(collection).find_one({"_id": to_object_id(doc_id, f"{label.lower()} id"), **(query or {})})
    if not doc:
        raise NotFoundError(f"{label} not found")
    return serialize_doc(doc)


def _update(collection: str, doc_id: str, label: str, payload: BaseModel) -> Dict[str, Any]:
    obj_id = to_object_id(doc_id, f"{label.lower()} id")
    update_dict = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not update_dict:
        raise BadRequestError("No fields to update")
    update_dict["updated_at"] = now()
    try:
        res = get_collection(collection).update_one({"_id": obj_id}, {"$set": update_dict})
    except DuplicateKeyError:
        raise ConflictError(f"{label} already exists")
    if res.matched_count == 0:
        raise NotFoundError(f"{label} not found")
    return serialize_doc(get_collection(collection).find_one({"_id": obj_id}))


def _delete(collection: str, doc_id: str, label: str) -> Dict[str, Any]:
    res = get_collection(collection).delete_one({"_id": to_object_id(doc_id, f"{label.lower()} id")})
    if res.deleted_count == 0:
        raise NotFoundError(f"{label} not found")
    return {"id": doc_id}


# Products

def create_product_into_db(payload: Product) -> Dict[str, Any]:
    product_id = create_document("product", payload)
    return _get_one("product", product_id, "Product")


def get_all_products_from_db() -> List[Dict[str, Any]]:
    return [serialize_doc(d) for d in get_documents("product")]


def get_single_product_from_db(product_id: str) -> Dict[str, Any]:
    return _get_one("product", product_id, "Product")


def update_product_into_db(product_id: str, payload: ProductUpdate) -> Dict[str, Any]:
    return _update("product", product_id, "Product", payload)


def delete_product_from_db(product_id: str) -> Dict[str, Any]:
    return _delete("product", product_id, "Product")


# Orders

def create_order_into_db(customer_id: str, payload: OrderCreate) -> Dict[str, Any]:
    lines = []
    for line in payload.products:
        pid = to_object_id(line.product, "product id")
        product = get_collection("product").find_one({"_id": pid})
        if not product:
            raise NotFoundError("Product not found")
        lines.append({
            "product": str(pid),
            "quantity": line.quantity,
            "total_price": round(float(product.get("price", 0)) * line.quantity, 2),
        })

    order_id = payload.order_id or f"{ORDER_PREFIX}{get_next_sequence('order'):06d}"
    if get_collection("order").find_one({"order_id": order_id}):
        raise ConflictError("Order already exists with this order id")

    order = Order(
        **payload.model_dump(exclude={"order_id", "products"}),
        order_id=order_id,
        customer=customer_id,
        products=lines,
    )
    doc = order.model_dump()
    doc["customer"] = ObjectId(doc["customer"])
    for line in doc["products"]:
        line["product"] = ObjectId(line["product"])
    created_id = create_document("order", doc)
    logger.info("Order %s placed by %s", order_id, customer_id)
    return _get_one("order", created_id, "Order")


def get_all_orders_from_db(customer_id: Optional[str] = None) -> List[Dict[str, Any]]:
    query = {"customer": to_object_id(customer_id, "user id")} if customer_id else {}
    return [serialize_doc(d) for d in get_documents("order", query)]


def get_single_order_from_db(order_id: str, customer_id: Optional[str] = None) -> Dict[str, Any]:
    query = {"customer": to_object_id(customer_id, "user id")} if customer_id else None
    return _get_one("order", order_id, "Order", query)


def update_order_into_db(order_id: str, payload: OrderUpdate) -> Dict[str, Any]:
    return _update("order", order_id, "Order", payload)


def delete_order_from_db(order_id: str) -> Dict[str, Any]:
    return _delete("order", order_id, "Order")


# Coupons

def create_coupon_into_db(payload: Coupon) -> Dict[str, Any]:
    if get_collection("coupon").find_one({"code": payload.code}):
        raise ConflictError("Coupon already exists with this code")
    coupon_id = create_document("coupon", payload)
    return _get_one("coupon", coupon_id, "Coupon")


def get_all_coupons_from_db() -> List[Dict[str, Any]]:
    return [serialize_doc(d) for d in get_documents("coupon")]


def get_single_coupon_from_db(coupon_id: str) -> Dict[str, Any]:
    return _get_one("coupon", coupon_id, "Coupon")


def update_coupon_into_db(coupon_id: str, payload: CouponUpdate) -> Dict[str, Any]:
    if payload.code and get_collection("coupon").find_one({"code": payload.code, "_id": {"$ne": to_object_id(coupon_id, "coupon id")}}):
        raise ConflictError("Coupon already exists with this code")
    return _update("coupon", coupon_id, "Coupon", payload)


def delete_coupon_from_db(coupon_id: str) -> Dict[str, Any]:
    return _delete("coupon", coupon_id, "Coupon")
