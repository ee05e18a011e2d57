"""
VP Signer - proofs for Verifiable Credentials and Presentations.

Supports:
- did:eth identifiers derived from secp256k1 public keys (EIP-55 checksum)
- Credential and Challenge Request signing over canonical JSON
- Presentation ownership proofs with strict credential/proof matching
- A local HD wallet crypto provider (BIP-39 / BIP-44, ECDSA secp256k1)
"""

from vp_signer.crypto import CryptoProvider, LocalCryptoProvider
from vp_signer.did import InvalidPublicKeyError, derive_did, to_checksum_address
from vp_signer.generators import (
    ChallengeRequestGenerator,
    VerifiableCredentialGenerator,
    VerifiablePresentationGenerator,
)
from vp_signer.models import (
    ChallengeRequest,
    KeySet,
    ModelError,
    Proof,
    VerifiableCredential,
    VerifiablePresentation,
    canonical_json,
)
from vp_signer.signers import (
    ChallengeRequestSigner,
    VerifiableCredentialSigner,
    VerifiablePresentationSigner,
)

__version__ = "0.1.0"

__all__ = [
    "CryptoProvider",
    "LocalCryptoProvider",
    "InvalidPublicKeyError",
    "derive_did",
    "to_checksum_address",
    "ChallengeRequest",
    "KeySet",
    "ModelError",
    "Proof",
    "VerifiableCredential",
    "VerifiablePresentation",
    "canonical_json",
    "ChallengeRequestSigner",
    "VerifiableCredentialSigner",
    "VerifiablePresentationSigner",
    "ChallengeRequestGenerator",
    "VerifiableCredentialGenerator",
    "VerifiablePresentationGenerator",
]
