from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict

from jose import JWTError, jwt
from passlib.context import CryptContext

from config import get_settings
from errors import UnauthorizedError

ALGORITHM = "HS256"


@lru_cache()
def _crypt_context(rounds: int) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def hash_password(password: str) -> str:
    return _crypt_context(get_settings().bcrypt_salt_rounds).hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    # bcrypt reads the cost from the hash itself, any context verifies it
    return _crypt_context(get_settings().bcrypt_salt_rounds).verify(plain_password, hashed_password)


def create_access_token(claims: Dict[str, Any]) -> str:
    settings = get_settings()
    issued = datetime.now(timezone.utc)
    to_encode = dict(claims)
    to_encode.update({"iat": issued, "exp": issued + settings.jwt_access_expiration})
    return jwt.encode(to_encode, settings.jwt_access_secret, algorithm=ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, get_settings().jwt_access_secret, algorithms=[ALGORITHM])
    except JWTError:
        raise UnauthorizedError("Invalid or expired token")
