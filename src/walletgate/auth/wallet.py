"""Ethereum personal-message signature verification.

Learn: a wallet proves control of an address by signing a message with
EIP-191 "personal_sign": the message is prefixed with
"\\x19Ethereum Signed Message:\\n<length>" before hashing, so a signature
over a login nonce can never double as a transaction signature.
Recovering the public key from (message, signature) yields the signer's
address; if that is not the claimed address, the claim is false.

Nonce freshness (replay protection) is the caller's concern. This module
only binds signature -> message -> address.
"""

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as KeyValidationError
from eth_utils import ValidationError as EthValidationError

from walletgate.accounts.models import normalize_wallet_address
from walletgate.errors import SignatureMismatchError, ValidationError


def recover_signer(message: str, signature: str) -> str:
    """Recover the checksummed signer address of a personal-sign signature."""
    if not message:
        raise ValidationError("Message is required", field="message")
    if not signature:
        raise ValidationError("Signature is required", field="signature")
    try:
        return Account.recover_message(encode_defunct(text=message), signature=signature)
    except (
        BadSignature, KeyValidationError, EthValidationError, ValueError, TypeError
    ) as e:
        # Undecodable or out-of-range signatures cannot prove anything
        raise SignatureMismatchError(f"Unrecoverable signature: {e}") from e


def verify_wallet_signature(message: str, signature: str, claimed_address: str) -> str:
    """Check that ``signature`` over ``message`` was made by ``claimed_address``.

    Returns the recovered address in normalized (lowercase) form.
    Raises SignatureMismatchError when it was not.
    """
    claimed = normalize_wallet_address(claimed_address)
    recovered = recover_signer(message, signature).lower()
    if recovered != claimed:
        raise SignatureMismatchError(
            f"Signature recovers to {recovered}, not {claimed}"
        )
    return recovered
