"""Account records and the directory port that stores them."""

from walletgate.accounts.directory import (
    AccountDirectory,
    DuplicateAccountError,
    InMemoryAccountDirectory,
)
from walletgate.accounts.models import Account, NewAccount, Role

__all__ = [
    "Account",
    "AccountDirectory",
    "DuplicateAccountError",
    "InMemoryAccountDirectory",
    "NewAccount",
    "Role",
]
