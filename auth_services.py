import logging
from typing import Any, Dict

from bson import ObjectId

from database import create_document, get_collection, now, serialize_doc
from errors import ConflictError, ForbiddenError, NotFoundError, UnauthorizedError
from schemas import Admin
from security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

BLOCKED_MESSAGE = "You are blocked by the authority! Please contact them to know the issue!"
DELETED_MESSAGE = "You are unauthorized to login! Please contact to the authority."


def _check_user_gates(user: Dict[str, Any]) -> None:
    if user.get("status") == "blocked":
        raise ForbiddenError(BLOCKED_MESSAGE)
    if user.get("is_deleted"):
        raise ForbiddenError(DELETED_MESSAGE)


def _issue_token(account: Dict[str, Any], role: str) -> str:
    return create_access_token({"id": str(account["_id"]), "email": account["email"], "role": role})


def _find_by_claims(collection: str, claims: Dict[str, Any]) -> Dict[str, Any]:
    account_id = claims.get("id")
    email = claims.get("email")
    if not account_id or not email or not ObjectId.is_valid(account_id):
        raise UnauthorizedError("Invalid token")
    return get_collection(collection).find_one({"_id": ObjectId(account_id), "email": email})


def login_admin(email: str, password: str) -> str:
    admin = get_collection("admin").find_one({"email": email.lower()})
    if not admin:
        raise NotFoundError("The admin is not found")
    if not verify_password(password, admin.get("password_hash", "")):
        logger.warning("Rejected admin login for %s", admin["email"])
        raise ForbiddenError("Invalid credentials")
    logger.info("Admin %s logged in", admin["email"])
    return _issue_token(admin, "admin")


def login_user(email: str, password: str) -> str:
    user = get_collection("user").find_one({"email": email.lower()})
    if not user:
        raise NotFoundError("The user is not found!")
    _check_user_gates(user)
    if not verify_password(password, user.get("password_hash", "")):
        logger.warning("Rejected user login for %s", user["email"])
        raise ForbiddenError("Invalid credentials!")
    logger.info("User %s logged in", user["email"])
    return _issue_token(user, "user")


def load_current_account(claims: Dict[str, Any]) -> Dict[str, Any]:
    """Re-read the account behind a decoded token.

    Token claims only name an account. Blocking, deletion or removal that
    happened after the token was issued is caught here, before any route
    touches the service layer.
    """
    role = claims.get("role")
    if role == "admin":
        admin = _find_by_claims("admin", claims)
        if not admin:
            raise NotFoundError("The admin is not found!")
        return admin
    if role != "user":
        raise UnauthorizedError("Invalid token")
    user = _find_by_claims("user", claims)
    if not user:
        raise NotFoundError("The user is not found!")
    _check_user_gates(user)
    return user


def _change_password(collection: str, account: Dict[str, Any], old_password: str, new_password: str) -> Dict[str, Any]:
    if not verify_password(old_password, account.get("password_hash", "")):
        raise ForbiddenError("Password does not match!")
    get_collection(collection).update_one(
        {"_id": account["_id"]},
        {"$set": {"password_hash": hash_password(new_password), "password_changed_at": now(), "updated_at": now()}},
    )
    logger.info("Password changed for %s %s", collection, account["email"])
    return {"id": str(account["_id"]), "email": account["email"]}


def change_password_of_admin(claims: Dict[str, Any], old_password: str, new_password: str) -> Dict[str, Any]:
    admin = _find_by_claims("admin", claims)
    if not admin:
        raise NotFoundError("The admin is not found!")
    return _change_password("admin", admin, old_password, new_password)


def change_password_of_user(claims: Dict[str, Any], old_password: str, new_password: str) -> Dict[str, Any]:
    user = _find_by_claims("user", claims)
    if not user:
        raise NotFoundError("The user is not found!")
    if user.get("status") == "blocked":
        raise ForbiddenError(BLOCKED_MESSAGE)
    return _change_password("user", user, old_password, new_password)


def get_me(claims: Dict[str, Any]) -> Dict[str, Any]:
    if claims.get("role") == "admin":
        admin = _find_by_claims("admin", claims)
        if not admin:
            raise NotFoundError("Admin not found")
        admin.pop("password_hash", None)
        return serialize_doc(admin)

    if claims.get("role") != "user":
        raise UnauthorizedError("Invalid token")
    user = _find_by_claims("user", claims)
    if not user:
        raise NotFoundError("User not found")
    user.pop("password_hash", None)
    user["cart"] = populate_cart(user.get("cart", []))
    return serialize_doc(user)


def populate_cart(cart):
    """Replace each line's product id with the product document, or None if it is gone."""
    ids = [item["product"] for item in cart if isinstance(item.get("product"), ObjectId)]
    products = {p["_id"]: p for p in get_collection("product").find({"_id": {"$in": ids}})} if ids else {}
    return [{**item, "product": products.get(item.get("product"))} for item in cart]


def create_admin(name: str, email: str, password: str) -> Dict[str, Any]:
    email = email.lower()
    if get_collection("admin").find_one({"email": email}):
        raise ConflictError("Admin already exists with this email")
    admin = Admin(name=name, email=email, password_hash=hash_password(password))
    admin_id = create_document("admin", admin)
    logger.info("Admin %s created", email)
    created = get_collection("admin").find_one({"_id": ObjectId(admin_id)}, {"password_hash": 0})
    return serialize_doc(created)


def seed_default_admin(email: str, password: str) -> None:
    if get_collection("admin").find_one({"email": email.lower()}):
        return
    create_admin("Administrator", email, password)
