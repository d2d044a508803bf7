"""Authentication and authorization.

Learn: Two ways in, one token format out:
1. Password accounts → email/password → JWT access/refresh pair
2. Wallet accounts → signed message → JWT access/refresh pair

Every request then resolves a bearer token to an AuthenticatedIdentity
(signature, expiry, revocation, account still active) and runs it
through a gate chain (auth, role, wallet, verified wallet).
"""
