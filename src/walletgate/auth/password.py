"""Password hashing utilities.

Learn: bcrypt is adaptive (the work factor is baked into every hash as
"$2b$<rounds>$...") and salts automatically. At rounds=12 a hash or a
check costs ~100-250ms on modern hardware, which is the point.
bcrypt.checkpw compares in constant time, so a wrong password gives no
timing hint about how many bytes matched.

Hashes made with a different work factor still verify; needs_rehash()
tells the login path to transparently upgrade them.
"""

import secrets

import bcrypt

DEFAULT_ROUNDS = 12

# bcrypt only looks at the first 72 bytes
_MAX_BYTES = 72


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash a password with bcrypt at the given work factor."""
    pw_bytes = password.encode("utf-8")[:_MAX_BYTES]
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its bcrypt hash.

    Unparseable hashes simply fail.
    """
    try:
        pw_bytes = password.encode("utf-8")[:_MAX_BYTES]
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def hash_rounds(password_hash: str) -> int | None:
    """Work factor recorded in a "$2b$12$..." hash, or None if unreadable."""
    try:
        return int(password_hash.split("$")[2])
    except (IndexError, ValueError, AttributeError):
        return None


def needs_rehash(password_hash: str, rounds: int = DEFAULT_ROUNDS) -> bool:
    """Check if a hash was made with a different work factor."""
    return hash_rounds(password_hash) != rounds


def random_password() -> str:
    """A 256-bit random secret for accounts that never log in by password."""
    return secrets.token_hex(32)
