import os
import re
import logging
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

REQUIRED_VARS = ("JWT_ACCESS_SECRET", "JWT_ACCESS_EXPIRATION", "BCRYPT_SALT_ROUNDS")

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_UNITS = {"": "seconds", "s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class Settings:
    jwt_access_secret: str
    jwt_access_expiration: timedelta
    bcrypt_salt_rounds: int
    default_admin_email: Optional[str] = None
    default_admin_password: Optional[str] = None


def parse_duration(value: str) -> timedelta:
    """Parse "7d", "12h", "30m", "45s" or a bare number of seconds."""
    match = _DURATION_RE.match(value or "")
    if not match:
        raise ConfigError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_UNITS[unit]: int(amount)})


@lru_cache()
def get_settings() -> Settings:
    missing = [name for name in REQUIRED_VARS if not os.getenv(name)]
    if missing:
        logger.error("Missing configuration: %s", ", ".join(missing))
        raise ConfigError(f"Missing environment variables: {', '.join(missing)}")

    try:
        rounds = int(os.environ["BCRYPT_SALT_ROUNDS"])
    except ValueError:
        raise ConfigError("BCRYPT_SALT_ROUNDS must be an integer")
    if not 4 <= rounds <= 31:
        raise ConfigError("BCRYPT_SALT_ROUNDS must be between 4 and 31")

    return Settings(
        jwt_access_secret=os.environ["JWT_ACCESS_SECRET"],
        jwt_access_expiration=parse_duration(os.environ["JWT_ACCESS_EXPIRATION"]),
        bcrypt_salt_rounds=rounds,
        default_admin_email=(os.getenv("DEFAULT_ADMIN_EMAIL") or "").strip().lower() or None,
        default_admin_password=os.getenv("DEFAULT_ADMIN_PASSWORD") or None,
    )
