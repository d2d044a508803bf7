"""Account value type and field validation.

Learn: there are no ORM lifecycle hooks here. Format checks (email
shape, wallet address regex) are plain functions that CredentialVerifier
calls before it touches the directory, not save hooks. Hashing is not a
field hook either — see CredentialVerifier.set_password for when a hash
is computed.
"""

import re
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from walletgate.errors import ValidationError

WALLET_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class Role(str, Enum):
    """Fixed set of account roles."""

    USER = "user"
    WALLET_USER = "web3_user"
    ADMIN = "admin"


@dataclass(frozen=True)
class Account:
    """A persisted identity record, as returned by an AccountDirectory.

    Immutable: changes go through AccountDirectory.update(), which hands
    back a new Account.
    """

    id: str
    email: str
    password_hash: str
    role: Role = Role.USER
    wallet_address: Optional[str] = None
    wallet_verified: bool = False
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def with_changes(self, **changes) -> "Account":
        return replace(self, **changes)


@dataclass
class NewAccount:
    """Fields needed to create an account; the directory assigns id and timestamps."""

    email: str
    password_hash: str
    role: Role = Role.USER
    wallet_address: Optional[str] = None
    wallet_verified: bool = False
    active: bool = True


# Fields AccountDirectory.update() accepts
UPDATABLE_FIELDS = frozenset(
    {"email", "password_hash", "role", "wallet_address", "wallet_verified", "active"}
)


def normalize_email(email: str) -> str:
    """Trim + lowercase, then check the email shape."""
    value = (email or "").strip().lower()
    if not EMAIL_RE.match(value) or len(value) > 255:
        raise ValidationError("Invalid email address", field="email")
    return value


def normalize_wallet_address(address: str) -> str:
    """Check the 0x + 40 hex form and return the lowercase canonical form.

    Addresses are compared case-insensitively (EIP-55 checksum casing is
    presentation only), so the directory always stores lowercase.
    """
    value = (address or "").strip()
    if not WALLET_ADDRESS_RE.match(value):
        raise ValidationError("Invalid wallet address", field="address")
    return value.lower()


def synthesize_wallet_email(address: str, domain: str, suffix: str = "") -> str:
    """Placeholder email for a wallet-only account.

    Unique because the (normalized) address is unique, as long as nobody
    else holds it. ``suffix`` yields ``<address>+<suffix>@<domain>`` for
    the case where somebody does.
    """
    local = normalize_wallet_address(address)
    if suffix:
        local = f"{local}+{suffix}"
    return f"{local}@{domain.lower()}"
