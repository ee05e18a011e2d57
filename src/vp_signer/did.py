"""
did:eth identifiers derived from secp256k1 public keys.

The address is the last 20 bytes of the keccak-256 hash of the raw public key,
rendered with the EIP-55 mixed-case checksum.
https://eips.ethereum.org/EIPS/eip-55
"""

from __future__ import annotations

import re

from eth_utils import keccak


DID_PREFIX = "did:eth:"

_DID_ETH_PATTERN = re.compile(r"^did:eth:0x[0-9a-fA-F]{40}$")


class InvalidPublicKeyError(ValueError):
    """Raised when a public key cannot be decoded."""


def _strip_hex_prefix(value: str) -> str:
    if value.startswith(("0x", "0X")):
        return value[2:]
    return value


def address_from_public_key(public_key_hex: str) -> str:
    """Compute the lowercase address (40 hex characters, no prefix) of a public key.

    Args:
        public_key_hex: The raw public key, hex encoded.

    Returns:
        The last 40 hex characters of keccak256(public key bytes).

    Raises:
        InvalidPublicKeyError: If the key is not valid hex.
    """
    try:
        raw = bytes.fromhex(_strip_hex_prefix(public_key_hex))
    except (AttributeError, TypeError, ValueError) as e:
        raise InvalidPublicKeyError(f"Public key is not hex encoded: {public_key_hex!r}") from e
    if not raw:
        raise InvalidPublicKeyError("Public key is empty")

    return keccak(raw).hex()[-40:]


def to_checksum_address(address: str) -> str:
    """Apply the EIP-55 checksum to a hex address.

    Each character of the lowercase address is uppercased when the matching
    nibble of keccak256(lowercase address as ASCII) is 8 or higher.

    Args:
        address: 40 hex characters, with or without the 0x prefix.

    Returns:
        The 0x-prefixed checksummed address.
    """
    address = _strip_hex_prefix(address).lower()
    digest = keccak(text=address).hex()

    checksummed = "".join(
        char.upper() if int(digest[i], 16) >= 8 else char
        for i, char in enumerate(address)
    )
    return "0x" + checksummed


def derive_did(public_key_hex: str) -> str:
    """Derive the did:eth identifier that belongs to a public key.

    did:eth:0x + EIP-55 checksummed address.
    """
    return DID_PREFIX + to_checksum_address(address_from_public_key(public_key_hex))


def is_did_eth(value: str | None) -> bool:
    """Check whether a value has the shape of a did:eth identifier."""
    return bool(value) and _DID_ETH_PATTERN.match(value) is not None
