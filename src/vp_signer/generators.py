"""
Generators that assemble and sign complete models.

Each generator builds the proof (type, timestamp, public key and nonce),
asks the matching signer for the signature value and returns a new model.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping

from vp_signer.models import (
    ChallengeRequest,
    KeySet,
    Proof,
    VerifiableCredential,
    VerifiablePresentation,
    format_timestamp,
)
from vp_signer.signers import (
    ChallengeRequestSigner,
    VerifiableCredentialSigner,
    VerifiablePresentationSigner,
    random_id,
    utc_now,
)


logger = logging.getLogger(__name__)


def _without_proof(params: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in params.items() if k != "proof"}


class VerifiableCredentialGenerator:
    """Creates signed Verifiable Credentials."""

    def __init__(
        self,
        signer: VerifiableCredentialSigner,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._signer = signer
        self._clock = clock or utc_now
        self._id_factory = id_factory or random_id

    def generate_verifiable_credential(
        self, params: Mapping[str, Any], account_id: int, key_id: int
    ) -> VerifiableCredential:
        """Create and sign a credential.

        Args:
            params: Credential fields in their JSON form. A proof, if present,
                is replaced.
            account_id: Account index of the issuer key.
            key_id: Key index of the issuer key.

        Returns:
            The signed credential.
        """
        created = self._clock()
        data = _without_proof(params)
        data.setdefault("issuanceDate", format_timestamp(created))
        data["proof"] = Proof(
            type=self._signer.signature_type,
            created=created,
            verification_method=self._signer.crypto_provider.derive_public_key(account_id, key_id),
            nonce=self._id_factory(),
        ).to_dict()

        credential = VerifiableCredential.from_dict(data)
        credential.proof.signature_value = self._signer.sign_verifiable_credential(
            credential, account_id, key_id
        )
        return credential


class VerifiablePresentationGenerator:
    """Creates Verifiable Presentations carrying ownership proofs."""

    def __init__(self, signer: VerifiablePresentationSigner) -> None:
        self._signer = signer

    def generate_verifiable_presentation(
        self,
        params: Mapping[str, Any],
        key_sets: Iterable[KeySet | tuple[int, int] | Mapping[str, int]],
        correspondence_id: str | None = None,
    ) -> VerifiablePresentation:
        """Create a presentation with one ownership proof per eligible key set.

        Args:
            params: Presentation fields in their JSON form, holding at least
                verifiableCredential. Existing proofs are replaced.
            key_sets: The (account, key) pairs of the holder.
            correspondence_id: Session nonce for the proofs.

        Returns:
            The presentation with its proofs attached.
        """
        presentation = VerifiablePresentation.from_dict(_without_proof(params))
        presentation.proof = self._signer.generate_proofs(
            presentation, key_sets, correspondence_id
        )
        if not presentation.proof:
            logger.warning("None of the key sets can prove ownership of the credentials")
        return presentation


class ChallengeRequestGenerator:
    """Creates signed Challenge Requests."""

    def __init__(
        self,
        signer: ChallengeRequestSigner,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._signer = signer
        self._clock = clock or utc_now
        self._id_factory = id_factory or random_id

    def generate_challenge_request(
        self, params: Mapping[str, Any], account_id: int, key_id: int
    ) -> ChallengeRequest:
        """Create and sign a challenge request.

        A correspondenceId is generated when params do not carry one.
        """
        data = _without_proof(params)
        if not data.get("correspondenceId"):
            data["correspondenceId"] = self._id_factory()
        data["proof"] = Proof(
            type=self._signer.signature_type,
            created=self._clock(),
            verification_method=self._signer.crypto_provider.derive_public_key(account_id, key_id),
            nonce=self._id_factory(),
        ).to_dict()

        challenge_request = ChallengeRequest.from_dict(data)
        challenge_request.proof.signature_value = self._signer.sign_challenge_request(
            challenge_request, account_id, key_id
        )
        return challenge_request
