import secrets
import string

from passlib.context import CryptContext
from passlib.exc import PasswordSizeError

from app.core.config import settings
from app.core.errors import PasswordHashError
from app.core.logging import get_logger

logger = get_logger(__name__)

BCRYPT_MIN_ROUNDS = 4
BCRYPT_MAX_ROUNDS = 31
BCRYPT_MAX_BYTES = 72

ALPHANUMERIC = string.ascii_letters + string.digits

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(plain: str, rounds: int | None = None) -> str:
    cost = settings.BCRYPT_ROUNDS if rounds is None else rounds
    if not BCRYPT_MIN_ROUNDS <= cost <= BCRYPT_MAX_ROUNDS:
        raise PasswordHashError(
            f"bcrypt cost must be between {BCRYPT_MIN_ROUNDS} and {BCRYPT_MAX_ROUNDS}, got {cost}"
        )
    # bcrypt ignores everything past 72 bytes; refuse instead of truncating
    if len(plain.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise PasswordHashError("Password exceeds the maximum supported length")
    try:
        return pwd_context.handler("bcrypt").using(rounds=cost, truncate_error=True).hash(plain)
    except PasswordSizeError as exc:
        raise PasswordHashError("Password exceeds the maximum supported length") from exc
    except ValueError as exc:
        logger.error("password_hash_failed", error=str(exc))
        raise PasswordHashError("Failed to hash password") from exc


def verify_password(plain: str, hashed: str) -> bool:
    # hash_password never stores more than 72 bytes, so longer input cannot match
    if len(plain.encode("utf-8")) > BCRYPT_MAX_BYTES:
        return False
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        # unknown or corrupt hash
        return False


def random_string(length: int, alphabet: str = ALPHANUMERIC) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))
