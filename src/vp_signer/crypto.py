"""
Crypto provider capability and a local secp256k1 implementation.

The signers never touch key material: they hand payloads to a provider that
resolves an (account, key) index pair to a derived key.

LocalCryptoProvider:
- BIP-39 mnemonic, BIP-44 Ethereum derivation path m/44'/60'/{account}'/0/{key}
- ECDSA secp256k1 over SHA-256 of the UTF-8 payload
- Signatures encoded as hex r||s (64 bytes)
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol, runtime_checkable

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from eth_account import Account


logger = logging.getLogger(__name__)

DERIVATION_PATH = "m/44'/60'/{account_id}'/0/{key_id}"


@runtime_checkable
class CryptoProvider(Protocol):
    """Key custody capability consumed by the signers."""

    @property
    def algorithm_name(self) -> str:
        """Name of the signature scheme, e.g. Secp256k1."""
        ...

    def sign_payload(self, account_id: int, key_id: int, payload: str) -> str:
        ...

    def verify_payload(self, payload: str, public_key: str, signature: str) -> bool:
        ...

    def derive_address(self, account_id: int, key_id: int) -> str:
        ...

    def derive_public_key(self, account_id: int, key_id: int) -> str:
        ...


class LocalCryptoProvider:
    """Crypto provider holding an HD wallet in memory.

    Keys are derived lazily and cached per (account, key) pair. The mnemonic
    and the cache are guarded by a lock so a shared provider derives every
    key from one wallet.
    """

    def __init__(self, mnemonic: str | None = None, passphrase: str = "") -> None:
        """Initialize the provider.

        Args:
            mnemonic: BIP-39 mnemonic. A fresh 12 word mnemonic is generated if
                not provided.
            passphrase: Optional BIP-39 passphrase.
        """
        Account.enable_unaudited_hdwallet_features()
        self._mnemonic = mnemonic
        self._passphrase = passphrase
        self._keys: dict[tuple[int, int], tuple[ec.EllipticCurvePrivateKey, str]] = {}
        self._lock = threading.RLock()

    @property
    def algorithm_name(self) -> str:
        return "Secp256k1"

    @property
    def mnemonic(self) -> str:
        """The wallet mnemonic, generated on first use if none was given."""
        with self._lock:
            if self._mnemonic is None:
                _, self._mnemonic = Account.create_with_mnemonic(passphrase=self._passphrase)
                logger.debug("Generated a new mnemonic for LocalCryptoProvider")
            return self._mnemonic

    def _derive(self, account_id: int, key_id: int) -> tuple[ec.EllipticCurvePrivateKey, str]:
        """Derive the private key and checksummed address for a key pair index."""
        with self._lock:
            cached = self._keys.get((account_id, key_id))
            if cached is not None:
                return cached

            account = Account.from_mnemonic(
                self.mnemonic,
                passphrase=self._passphrase,
                account_path=DERIVATION_PATH.format(account_id=account_id, key_id=key_id),
            )
            private_key = ec.derive_private_key(
                int.from_bytes(bytes(account.key), byteorder="big"),
                ec.SECP256K1(),
            )
            derived = (private_key, account.address)
            self._keys[(account_id, key_id)] = derived
            return derived

    def derive_address(self, account_id: int, key_id: int) -> str:
        """Return the 0x-prefixed EIP-55 address of a derived key."""
        return self._derive(account_id, key_id)[1]

    def derive_public_key(self, account_id: int, key_id: int) -> str:
        """Return the uncompressed public key as hex x||y (no 04 prefix)."""
        private_key, _ = self._derive(account_id, key_id)
        point = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.X962,
            format=serialization.PublicFormat.UncompressedPoint,
        )
        return point[1:].hex()

    def sign_payload(self, account_id: int, key_id: int, payload: str) -> str:
        """Sign a payload with a derived key.

        Args:
            account_id: BIP-44 account index.
            key_id: BIP-44 address index.
            payload: The string to sign.

        Returns:
            Hex encoded r||s signature (128 characters).
        """
        private_key, _ = self._derive(account_id, key_id)
        der_signature = private_key.sign(
            payload.encode("utf-8"),
            ec.ECDSA(hashes.SHA256()),
        )
        r, s = decode_dss_signature(der_signature)
        return r.to_bytes(32, byteorder="big").hex() + s.to_bytes(32, byteorder="big").hex()

    def verify_payload(self, payload: str, public_key: str, signature: str) -> bool:
        """Verify a payload signature against a public key.

        Args:
            payload: The signed string.
            public_key: Hex public key, x||y or 04||x||y.
            signature: Hex r||s signature (DER hex is accepted too).

        Returns:
            True if the signature is valid. Malformed keys and signatures are
            reported as invalid.
        """
        try:
            ec_public_key = self._load_public_key(public_key)
            der_signature = self._to_der(signature)
        except (AttributeError, TypeError, ValueError) as e:
            logger.debug("Rejecting malformed key or signature: %s", e)
            return False

        try:
            ec_public_key.verify(
                der_signature,
                payload.encode("utf-8"),
                ec.ECDSA(hashes.SHA256()),
            )
            return True
        except InvalidSignature:
            return False

    def _load_public_key(self, public_key: str) -> ec.EllipticCurvePublicKey:
        raw = bytes.fromhex(public_key[2:] if public_key.startswith("0x") else public_key)
        if len(raw) == 64:
            raw = b"\x04" + raw
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), raw)

    def _to_der(self, signature: str) -> bytes:
        signature_bytes = bytes.fromhex(signature)
        if len(signature_bytes) == 64:
            # Raw r||s
            r = int.from_bytes(signature_bytes[:32], byteorder="big")
            s = int.from_bytes(signature_bytes[32:], byteorder="big")
            return encode_dss_signature(r, s)
        if not signature_bytes or signature_bytes[0] != 0x30:
            raise ValueError("Signature is neither raw r||s nor DER encoded")
        return signature_bytes
