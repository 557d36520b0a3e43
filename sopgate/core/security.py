from passlib.context import CryptContext

from sopgate.core.config import get_settings

settings = get_settings()

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash.

    Malformed or foreign hashes count as a mismatch instead of raising.
    """
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def dummy_verify() -> None:
    """Spend the time of one verification so unknown users are not distinguishable."""
    pwd_context.dummy_verify()


def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)
