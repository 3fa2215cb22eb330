from passlib.context import CryptContext

# -----------------------------
# Hashing for admin account passwords and session secrets
# -----------------------------

# Both are stored only as bcrypt hashes (see models.Admin and models.AdminSession)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash an admin password or session secret for storage."""
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """Verify *password* against *hashed*; malformed hashes never verify."""
    if not password or not hashed:
        return False
    try:
        return pwd_context.verify(password, hashed)
    except (ValueError, TypeError):
        return False


__all__ = [
    "pwd_context",
    "hash_password",
    "verify_password",
]
