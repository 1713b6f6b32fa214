"""Wallet signature and API key hashing utilities built on eth-account."""
from __future__ import annotations

import base64
import hashlib
import secrets

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import is_hex_address, to_checksum_address

from roaster_api.core.errors import InvalidAddress, SignatureInvalid, SignatureMismatch

API_KEY_PREFIX = "rk_"
API_KEY_RANDOM_BYTES = 24
NONCE_BYTES = 16


def normalize_address(value: object) -> str:
    """Return the EIP-55 checksummed form of a wallet address.

    Raises:
        InvalidAddress: If `value` is not a 20-byte hex address.
    """
    if not isinstance(value, str) or not is_hex_address(value.strip()):
        raise InvalidAddress()
    return to_checksum_address(value.strip())


def verify_wallet_signature(message: str, signature: str, claimed_address: str) -> str:
    """Recover the signer of an EIP-191 personal message and match it.

    Args:
        message: Exact text the wallet was asked to sign.
        signature: Hex-encoded 65-byte signature.
        claimed_address: Address the caller says produced the signature.

    Returns:
        The checksummed signer address.

    Raises:
        SignatureInvalid: If the signature cannot be decoded or recovered.
        SignatureMismatch: If the recovered signer differs from the claim.
    """
    expected = normalize_address(claimed_address)
    try:
        recovered = Account.recover_message(encode_defunct(text=message), signature=signature)
    except Exception as err:
        raise SignatureInvalid() from err

    if to_checksum_address(recovered) != expected:
        raise SignatureMismatch()
    return expected


def hash_api_key(raw_key: str, salt: str) -> str:
    """Return the hex SHA-256 digest of a raw API key concatenated with the salt."""
    return hashlib.sha256((raw_key + salt).encode("utf-8")).hexdigest()


def generate_api_key() -> str:
    """Return a fresh raw API key (prefix + 24 random bytes, URL-safe base64)."""
    token = base64.urlsafe_b64encode(secrets.token_bytes(API_KEY_RANDOM_BYTES))
    return API_KEY_PREFIX + token.decode().rstrip("=")


def generate_nonce() -> str:
    """Return a hex-encoded 16-byte challenge nonce."""
    return secrets.token_hex(NONCE_BYTES)
