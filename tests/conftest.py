"""Shared fixtures for VP Signer tests."""

from unittest.mock import Mock

import pytest

from vp_signer import (
    LocalCryptoProvider,
    VerifiableCredential,
    VerifiableCredentialGenerator,
    VerifiableCredentialSigner,
    VerifiablePresentationSigner,
    derive_did,
)

from helpers import FIXED_TIME, HOLDER_KEY, ISSUER_KEY, TEST_MNEMONIC, make_credential_params


@pytest.fixture(scope="session")
def provider():
    """Local HD wallet provider with a well known test mnemonic."""
    return LocalCryptoProvider(TEST_MNEMONIC)


@pytest.fixture
def stub_provider():
    """Provider stub whose calls can be asserted."""
    stub = Mock(spec=LocalCryptoProvider)
    stub.algorithm_name = "Secp256k1"
    return stub


@pytest.fixture
def credential_signer(provider):
    return VerifiableCredentialSigner(provider)


@pytest.fixture
def presentation_signer(provider, credential_signer):
    return VerifiablePresentationSigner(
        provider,
        credential_signer,
        clock=lambda: FIXED_TIME,
        id_factory=lambda: "50d2df25-b223-4bed-b9f5-3f16ea299fa1",
    )


@pytest.fixture
def did_of(provider):
    """DID of a wallet key."""

    def _did_of(key: tuple[int, int]) -> str:
        return derive_did(provider.derive_public_key(*key))

    return _did_of


@pytest.fixture
def issue_credential(credential_signer, did_of):
    """Issue a credential signed by the issuer key to a subject key."""
    generator = VerifiableCredentialGenerator(
        credential_signer,
        clock=lambda: FIXED_TIME,
        id_factory=lambda: "1e66fc69-05c6-4692-aa84-80eaacbf4bcc",
    )

    def _issue(subject_key: tuple[int, int] | None = HOLDER_KEY, name: str = "John") -> VerifiableCredential:
        subject_id = did_of(subject_key) if subject_key is not None else None
        params = make_credential_params(did_of(ISSUER_KEY), subject_id, name)
        return generator.generate_verifiable_credential(params, *ISSUER_KEY)

    return _issue
