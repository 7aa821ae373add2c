import logging
from typing import Any, Callable, Dict, List

from bson import ObjectId

from database import create_document, get_collection, get_documents, now, serialize_doc, to_object_id
from errors import BadRequestError, ConflictError, NotFoundError
from schemas import User, UserCreate, UserUpdate
from security import hash_password

logger = logging.getLogger(__name__)

HIDDEN_FIELDS = {"password_hash": 0}
CART_WRITE_ATTEMPTS = 3


def _get_user_or_404(user_id: ObjectId) -> Dict[str, Any]:
    user = get_collection("user").find_one({"_id": user_id}, HIDDEN_FIELDS)
    if not user:
        raise NotFoundError("User not found")
    return serialize_doc(user)


def create_user_into_db(payload: UserCreate) -> Dict[str, Any]:
    email = payload.email.lower()
    if get_collection("user").find_one({"email": email}):
        raise ConflictError("User already exists with this email")
    user = User(
        name=payload.name,
        email=email,
        password_hash=hash_password(payload.password),
        phone=payload.phone,
        address=payload.address,
    )
    user_id = create_document("user", user)
    logger.info("User %s created", email)
    return _get_user_or_404(ObjectId(user_id))


def get_all_users_from_db() -> List[Dict[str, Any]]:
    return [serialize_doc(u) for u in get_documents("user", projection=HIDDEN_FIELDS)]


def get_single_user_from_db(user_id: str) -> Dict[str, Any]:
    return _get_user_or_404(to_object_id(user_id, "user id"))


def update_user_into_db(user_id: str, payload: UserUpdate) -> Dict[str, Any]:
    obj_id = to_object_id(user_id, "user id")
    update_dict = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not update_dict:
        raise BadRequestError("No fields to update")
    update_dict["updated_at"] = now()
    res = get_collection("user").update_one({"_id": obj_id}, {"$set": update_dict})
    if res.matched_count == 0:
        raise NotFoundError("User not found")
    return _get_user_or_404(obj_id)


# Cart
#
# Cart writes are compare-and-swap on cart_version: read the user, build the
# new cart, write it only if no other request bumped the version meanwhile.

def _get_product_or_404(product_id: ObjectId) -> Dict[str, Any]:
    product = get_collection("product").find_one({"_id": product_id})
    if not product:
        raise NotFoundError("Product not found")
    return product


def _line_total(product: Dict[str, Any], quantity: int) -> float:
    return round(float(product.get("price", 0)) * quantity, 2)


def _write_cart(user_id: ObjectId, mutate: Callable[[List[Dict[str, Any]]], List[Dict[str, Any]]]) -> Dict[str, Any]:
    users = get_collection("user")
    for _ in range(CART_WRITE_ATTEMPTS):
        user = users.find_one({"_id": user_id}, {"cart": 1, "cart_version": 1})
        if not user:
            raise NotFoundError("User not found")
        new_cart = mutate([dict(item) for item in user.get("cart", [])])
        version = user.get("cart_version")
        version_filter = version if version is not None else {"$exists": False}
        res = users.update_one(
            {"_id": user_id, "cart_version": version_filter},
            {"$set": {"cart": new_cart, "cart_version": (version or 0) + 1, "updated_at": now()}},
        )
        if res.matched_count:
            return _get_user_or_404(user_id)
        logger.warning("Concurrent cart update for user %s, retrying", user_id)
    raise ConflictError("The cart was modified by another request, please try again")


def add_product_to_cart(user_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
    if quantity < 1:
        raise BadRequestError("Quantity must be at least 1")
    uid = to_object_id(user_id, "user id")
    product = _get_product_or_404(to_object_id(product_id, "product id"))

    def mutate(cart):
        for item in cart:
            if item.get("product") == product["_id"]:
                item["quantity"] = int(item.get("quantity", 0)) + quantity
                item["total_price"] = _line_total(product, item["quantity"])
                return cart
        cart.append({"product": product["_id"], "quantity": quantity, "total_price": _line_total(product, quantity)})
        return cart

    return _write_cart(uid, mutate)


def remove_product_from_cart(user_id: str, product_id: str) -> Dict[str, Any]:
    uid = to_object_id(user_id, "user id")
    pid = to_object_id(product_id, "product id")
    res = get_collection("user").update_one(
        {"_id": uid},
        {"$pull": {"cart": {"product": pid}}, "$inc": {"cart_version": 1}, "$set": {"updated_at": now()}},
    )
    if res.matched_count == 0:
        raise NotFoundError("User not found")
    return _get_user_or_404(uid)


def manipulate_quantity_in_cart(user_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
    """Set a line's quantity outright. Zero or less drops the line."""
    uid = to_object_id(user_id, "user id")
    pid = to_object_id(product_id, "product id")
    product = _get_product_or_404(pid) if quantity > 0 else None

    def mutate(cart):
        if not any(item.get("product") == pid for item in cart):
            raise NotFoundError("Product is not in the cart")
        if product is None:
            return [item for item in cart if item.get("product") != pid]
        for item in cart:
            if item.get("product") == pid:
                item["quantity"] = quantity
                item["total_price"] = _line_total(product, quantity)
        return cart

    return _write_cart(uid, mutate)
