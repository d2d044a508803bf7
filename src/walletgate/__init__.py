"""WalletGate — authentication and authorization core.

Verifies password and Ethereum-wallet credentials, issues and rotates
bearer tokens, and gates endpoint access by role and wallet state.
"""

__version__ = "0.1.0"
