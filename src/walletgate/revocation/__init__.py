"""Token revocation (denylist) stores."""

from walletgate.revocation.store import InMemoryRevocationStore, RevocationStore

__all__ = ["InMemoryRevocationStore", "RevocationStore"]
