"""
Signers for Verifiable Credentials, Presentations and Challenge Requests.

Payloads are the canonical JSON of a private copy of the model with the
proof's signatureValue removed, so signer and verifier always rebuild the
same bytes. Ownership proofs on a presentation sign the canonical JSON of
the credential followed by the proof nonce and creation timestamp.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from vp_signer.crypto import CryptoProvider
from vp_signer.did import InvalidPublicKeyError, derive_did
from vp_signer.models import (
    ChallengeRequest,
    KeySet,
    Proof,
    VerifiableCredential,
    VerifiablePresentation,
    format_timestamp,
)


logger = logging.getLogger(__name__)

SIGNATURE_TYPE_SUFFIX = "Signature2019"


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)


def random_id() -> str:
    """Default id factory: a random UUID4 string."""
    return str(uuid.uuid4())


def ownership_payload(credential: VerifiableCredential, nonce: str | None, created: datetime) -> str:
    """Build the payload that an ownership proof signs."""
    return credential.to_json() + (nonce or "") + format_timestamp(created)


class VerifiableCredentialSigner:
    """Signs and verifies a single Verifiable Credential.

    Issuer binding is off by default: only the provider's signature check
    applies. With bind_issuer=True the DID derived from the proof's public key
    must also equal the credential issuer.
    """

    def __init__(self, crypto_provider: CryptoProvider, bind_issuer: bool = False) -> None:
        self._crypto_provider = crypto_provider
        self.bind_issuer = bind_issuer

    @property
    def signature_type(self) -> str:
        return self._crypto_provider.algorithm_name + SIGNATURE_TYPE_SUFFIX

    @property
    def crypto_provider(self) -> CryptoProvider:
        return self._crypto_provider

    def sign_verifiable_credential(
        self, model: VerifiableCredential, account_id: int, key_id: int
    ) -> str:
        """Sign a credential and return the signature value.

        The caller's model is left untouched. Use 0 for account_id and key_id
        when a single key is used for every sign action.

        Args:
            model: The credential to sign.
            account_id: Account index of the signing key.
            key_id: Key index of the signing key.

        Returns:
            The signature produced by the crypto provider.
        """
        unsigned = model.copy()
        unsigned.proof.signature_value = None
        return self._crypto_provider.sign_payload(account_id, key_id, unsigned.to_json())

    def verify_verifiable_credential(self, model: VerifiableCredential) -> bool:
        """Verify a credential against the signature value in its proof."""
        public_key = model.proof.verification_method
        signature = model.proof.signature_value
        if signature is None:
            logger.debug("Credential %s has no signature value", model.id)
            return False

        if self.bind_issuer and not self._issuer_matches(model):
            logger.debug("Credential %s: issuer does not own the signing key", model.id)
            return False

        unsigned = model.copy()
        unsigned.proof.signature_value = None
        return self._crypto_provider.verify_payload(unsigned.to_json(), public_key, signature)

    def _issuer_matches(self, model: VerifiableCredential) -> bool:
        try:
            return derive_did(model.proof.verification_method) == model.issuer
        except InvalidPublicKeyError:
            return False


class VerifiablePresentationSigner:
    """Generates and verifies ownership proofs on a Verifiable Presentation.

    Only proof sets are supported: one proof per (credential, key) pair.
    https://w3c-dvcg.github.io/ld-proofs/#proof-sets
    """

    def __init__(
        self,
        crypto_provider: CryptoProvider,
        credential_signer: VerifiableCredentialSigner,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        """Initialize the presentation signer.

        Args:
            crypto_provider: Provider used for ownership signatures.
            credential_signer: Signer used to check each credential.
            clock: Source of proof creation timestamps. Defaults to UTC now.
            id_factory: Source of proof nonces when no correspondence id is
                given. Defaults to random UUIDs.
        """
        self._crypto_provider = crypto_provider
        self._credential_signer = credential_signer
        self._clock = clock or utc_now
        self._id_factory = id_factory or random_id

    @property
    def signature_type(self) -> str:
        return self._crypto_provider.algorithm_name + SIGNATURE_TYPE_SUFFIX

    @property
    def crypto_provider(self) -> CryptoProvider:
        return self._crypto_provider

    def generate_proofs(
        self,
        presentation: VerifiablePresentation | Mapping[str, Any],
        key_sets: Iterable[KeySet | tuple[int, int] | Mapping[str, int]],
        correspondence_id: str | None = None,
    ) -> list[Proof]:
        """Create ownership proofs for the credentials of a presentation.

        A key set proves ownership over a credential when its address ends
        the credential issuer (self attested) or the credential subject id
        (attested by a third party). Other pairs are skipped.

        Args:
            presentation: The presentation, or its parameters as a mapping
                holding a verifiableCredential list.
            key_sets: The (account, key) pairs to try for every credential.
            correspondence_id: Nonce binding the proofs to a session. A fresh
                id is used per proof if not provided.

        Returns:
            Proofs in credential-major, key-set-minor order.
        """
        credentials = self._credentials_of(presentation)
        key_sets = [KeySet.coerce(k) for k in key_sets]

        proofs: list[Proof] = []
        for credential in credentials:
            subject_id = credential.subject_id
            for key_set in key_sets:
                address = self._crypto_provider.derive_address(key_set.account_id, key_set.key_id)
                if not credential.issuer.endswith(address) and not (
                    subject_id and subject_id.endswith(address)
                ):
                    continue

                nonce = correspondence_id or self._id_factory()
                created = self._clock()
                payload = ownership_payload(credential, nonce, created)
                signature_value = self._crypto_provider.sign_payload(
                    key_set.account_id, key_set.key_id, payload
                )
                public_key = self._crypto_provider.derive_public_key(
                    key_set.account_id, key_set.key_id
                )
                proofs.append(
                    Proof(
                        type=self.signature_type,
                        created=created,
                        verification_method=public_key,
                        nonce=nonce,
                        signature_value=signature_value,
                    )
                )

        logger.debug(
            "Generated %d ownership proofs for %d credentials and %d key sets",
            len(proofs),
            len(credentials),
            len(key_sets),
        )
        return proofs

    def verify_verifiable_presentation(
        self,
        model: VerifiablePresentation,
        skip_ownership_validation: bool = False,
        correspondence_id: str | None = None,
    ) -> bool:
        """Verify every credential signature and, optionally, ownership.

        With ownership validation every credential must consume exactly one
        proof whose public key derives the credential subject DID, and no
        proof may be left over.

        Args:
            model: The presentation to verify. It is never modified.
            skip_ownership_validation: Only check the credential signatures.
            correspondence_id: If given, every ownership proof nonce must
                equal it.

        Returns:
            True if the presentation is valid.
        """
        proof_pool = list(model.proof)

        for credential in model.verifiable_credential:
            if not self._credential_signer.verify_verifiable_credential(credential):
                logger.debug("Credential %s has an invalid signature", credential.id)
                return False

            if skip_ownership_validation:
                continue

            proof = self._match_and_remove(proof_pool, credential)
            if proof is None:
                logger.debug("No ownership proof for subject %s", credential.subject_id)
                return False

            payload = ownership_payload(credential, proof.nonce, proof.created)
            if not self._crypto_provider.verify_payload(
                payload, proof.verification_method, proof.signature_value
            ):
                logger.debug("Invalid ownership signature for subject %s", credential.subject_id)
                return False

            if correspondence_id is not None and proof.nonce != correspondence_id:
                logger.debug("Ownership proof nonce does not match the correspondence id")
                return False

        if not skip_ownership_validation and proof_pool:
            logger.debug("%d ownership proofs were not matched to a credential", len(proof_pool))
            return False

        return True

    def _match_and_remove(
        self, proof_pool: list[Proof], credential: VerifiableCredential
    ) -> Proof | None:
        """Pop the first proof whose public key derives the subject DID."""
        subject_id = credential.subject_id
        if not subject_id:
            return None

        for index, proof in enumerate(proof_pool):
            try:
                proof_did = derive_did(proof.verification_method)
            except InvalidPublicKeyError:
                continue
            if proof_did == subject_id:
                return proof_pool.pop(index)
        return None

    def _credentials_of(
        self, presentation: VerifiablePresentation | Mapping[str, Any]
    ) -> list[VerifiableCredential]:
        if isinstance(presentation, VerifiablePresentation):
            return list(presentation.verifiable_credential)
        return [
            vc if isinstance(vc, VerifiableCredential) else VerifiableCredential.from_dict(vc)
            for vc in presentation["verifiableCredential"]
        ]


class ChallengeRequestSigner:
    """Signs and verifies Challenge Requests."""

    def __init__(self, crypto_provider: CryptoProvider) -> None:
        self._crypto_provider = crypto_provider

    @property
    def signature_type(self) -> str:
        return self._crypto_provider.algorithm_name + SIGNATURE_TYPE_SUFFIX

    @property
    def crypto_provider(self) -> CryptoProvider:
        return self._crypto_provider

    def sign_challenge_request(self, model: ChallengeRequest, account_id: int, key_id: int) -> str:
        """Sign a challenge request and return the signature value."""
        unsigned = model.copy()
        unsigned.proof.signature_value = None
        return self._crypto_provider.sign_payload(account_id, key_id, unsigned.to_json())

    def verify_challenge_request(self, model: ChallengeRequest) -> bool:
        """Verify a challenge request against the signature value in its proof."""
        if model.proof.signature_value is None:
            return False

        unsigned = model.copy()
        unsigned.proof.signature_value = None
        return self._crypto_provider.verify_payload(
            unsigned.to_json(),
            model.proof.verification_method,
            model.proof.signature_value,
        )
